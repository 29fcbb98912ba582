"""
Phonetic encoding for noisy species tokens.

Two independent encodings are derived from a normalized token:

    cologne:  consonant skeleton ("Kölner Phonetik"), tolerant of spelling
              variants that sound alike ("fink" / "vink" -> "364")
    phonemes: IPA-like Dutch phoneme tokens, space separated, which keep the
              vowel information the consonant skeleton throws away
              ("vijf" -> "v ɛi f", "vink" -> "v ɪ ŋk")

Either encoding may be ``None``. A missing code means the encoder has no
opinion about the token; it is never treated as a mismatch.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from abydos.phonetic import Koelner
from loguru import logger
from rapidfuzz.distance import Levenshtein

from .text_normalizer import normalize


@dataclass(frozen=True)
class PhoneticCodes:
    """Consonant skeleton and phoneme string of one normalized alias."""
    cologne: Optional[str] = None
    phonemes: Optional[str] = None

    @property
    def compact_phonemes(self) -> Optional[str]:
        """Phoneme string without separators, used as a lookup key."""
        if not self.phonemes:
            return None
        return self.phonemes.replace(" ", "")

    def lookup_keys(self) -> List[str]:
        """Keys under which a record is filed in the phonetic map."""
        keys = []
        if self.cologne:
            keys.append(f"cologne:{self.cologne}")
        compact = self.compact_phonemes
        if compact:
            keys.append(f"phonemes:{compact}")
        return keys


# ---------------------------------------------------------------------------
# Cologne phonetics
# ---------------------------------------------------------------------------

_KOELNER = Koelner()


def cologne_code(text: str) -> Optional[str]:
    """
    Compute the Cologne phonetic code of a text.

    The text is normalized first (diacritics stripped, ``ß`` read as ``s``);
    characters outside A-Z are ignored by the encoder, so the words of a
    multi-word alias are coded as one run.

    Returns:
        Code string such as ``"3412"``, or ``None`` when nothing is encodable
    """
    code = _KOELNER.encode(normalize(text).replace("ß", "s"))
    return code or None


# ---------------------------------------------------------------------------
# Dutch phonemizer
# ---------------------------------------------------------------------------

_MULTI_CHAR = (
    ("sch", "sx"),
    ("ng", "ŋ"),
    ("nk", "ŋk"),
    ("sj", "ʃ"),
    ("tj", "c"),
    ("ch", "x"),
    ("aa", "aː"),
    ("ee", "eː"),
    ("oo", "oː"),
    ("uu", "y"),
    ("oe", "u"),
    ("ie", "i"),
    ("ui", "œy"),
    ("ou", "ʌu"),
    ("au", "ʌu"),
    ("ij", "ɛi"),
    ("ei", "ɛi"),
    ("eu", "øː"),
)
# Longest patterns first; equal lengths keep table order.
_MULTI_CHAR_SORTED = tuple(sorted(_MULTI_CHAR, key=lambda kv: -len(kv[0])))

_SINGLE_CHAR = {
    "a": "ɑ", "e": "ə", "i": "ɪ", "o": "ɔ", "u": "ʏ",
    "b": "b", "c": "k", "d": "d", "f": "f", "g": "x",
    "h": "ɦ", "j": "j", "k": "k", "l": "l", "m": "m",
    "n": "n", "p": "p", "q": "k", "r": "r", "s": "s",
    "t": "t", "v": "v", "w": "ʋ", "x": "ks", "y": "i",
    "z": "z",
}

VOWEL_PHONEMES = frozenset({
    "ɑ", "ə", "ɪ", "ɔ", "ʏ",
    "aː", "eː", "i", "iː", "oː", "y", "u",
    "ɛi", "œy", "ʌu", "øː",
})


def phonemize(text: str) -> Optional[str]:
    """
    Convert Dutch text to space-separated IPA-like phoneme tokens.

    Greedy longest match: multi-character patterns are tried before the
    single-character table, unmapped characters pass through verbatim and
    whitespace is skipped.

    Examples:
        phonemize("vijf") -> "v ɛi f"
        phonemize("blauwe kiekendief") -> "b l ʌu ʋ ə k i k ə n d i f"
    """
    rest = normalize(text)
    if not rest:
        return None

    phonemes: List[str] = []
    pos = 0
    while pos < len(rest):
        ch = rest[pos]
        if ch.isspace():
            pos += 1
            continue

        for pattern, ipa in _MULTI_CHAR_SORTED:
            if rest.startswith(pattern, pos):
                phonemes.append(ipa)
                pos += len(pattern)
                break
        else:
            phonemes.append(_SINGLE_CHAR.get(ch, ch))
            pos += 1

    return " ".join(phonemes) if phonemes else None


def _tokens(phonemes: Optional[str]) -> List[str]:
    return phonemes.split() if phonemes else []


def phoneme_distance(phonemes1: Optional[str], phonemes2: Optional[str]) -> int:
    """
    Weighted edit distance over phoneme tokens.

    Insertion and deletion cost 1. Substitution costs 1 within a class
    (vowel/vowel, consonant/consonant) and 2 across classes.
    """
    p1 = _tokens(phonemes1)
    p2 = _tokens(phonemes2)
    if not p1:
        return len(p2)
    if not p2:
        return len(p1)

    previous = list(range(len(p2) + 1))
    for i, a in enumerate(p1, start=1):
        current = [i] + [0] * len(p2)
        a_vowel = a in VOWEL_PHONEMES
        for j, b in enumerate(p2, start=1):
            if a == b:
                current[j] = previous[j - 1]
                continue
            substitution = 1 if a_vowel == (b in VOWEL_PHONEMES) else 2
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + substitution,
            )
        previous = current
    return previous[-1]


def phoneme_similarity(phonemes1: Optional[str], phonemes2: Optional[str]) -> float:
    """Normalized similarity ``1 - d / max_len`` in [0, 1]; 1.0 for two empty inputs."""
    max_len = max(len(_tokens(phonemes1)), len(_tokens(phonemes2)))
    if max_len == 0:
        return 1.0
    similarity = 1.0 - phoneme_distance(phonemes1, phonemes2) / max_len
    return max(0.0, similarity)


def cologne_similarity(code1: Optional[str], code2: Optional[str]) -> float:
    """Normalized Levenshtein similarity of two Cologne codes, 0.0 if either is missing."""
    if not code1 or not code2:
        return 0.0
    return Levenshtein.normalized_similarity(code1, code2)


class PhoneticEncoder:
    """Derives both phonetic codes for a normalized alias."""

    def encode(self, text: str) -> PhoneticCodes:
        """
        Encode text into ``PhoneticCodes``.

        Never raises: an encoding that fails is logged and left as ``None``.
        """
        return PhoneticCodes(
            cologne=self._safe(cologne_code, text),
            phonemes=self._safe(phonemize, text),
        )

    @staticmethod
    def _safe(encoder, text: str) -> Optional[str]:
        try:
            return encoder(text)
        except Exception as e:
            logger.debug(f"{encoder.__name__} failed for {text!r}: {e}")
            return None
