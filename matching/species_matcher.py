"""
Query-time species ranking.

Matching Strategies:
    1. Exact lookup of the normalized token (score = weight)
    2. Phonetic: records sharing the Cologne code or the phoneme string,
       scored by phoneme similarity x weight
    3. Fuzzy fallback (optional): first-character buckets within a length
       window, scored 0.45 * string + 0.35 * Cologne + 0.20 * phoneme similarity

Results are one candidate per species, best score first.
"""
from typing import Dict, List, Optional, Tuple

from loguru import logger
from rapidfuzz import fuzz, process

from config.config import MatcherConfig
from index.models import AliasRecord, MatchCandidate, alias_sequence, species_sort_key
from matching.phonetic_encoder import (
    PhoneticCodes,
    PhoneticEncoder,
    cologne_similarity,
    phoneme_similarity,
)
from matching.signatures import SignatureBuilder, hamming_distance, minhash_similarity
from matching.text_normalizer import normalize
from services.hotpatch_cache import HotPatchCache

STRATEGY_EXACT = "exact"
STRATEGY_PHONETIC = "phonetic"
STRATEGY_FUZZY = "fuzzy"

FUZZY_WEIGHTS = (0.45, 0.35, 0.20)


class SpeciesMatcher:
    """
    Ranks species candidates for a noisy token against the hot-patch cache.

    Usage:
        matcher = SpeciesMatcher(cache)
        for candidate in matcher.query("aalscholfer"):
            print(candidate.species_id, candidate.score)
    """

    def __init__(
        self,
        cache: HotPatchCache,
        encoder: Optional[PhoneticEncoder] = None,
        config: Optional[MatcherConfig] = None,
        signature_builder: Optional[SignatureBuilder] = None,
    ) -> None:
        self.cache = cache
        self.encoder = encoder or PhoneticEncoder()
        self.config = config or MatcherConfig()
        self.signature_builder = signature_builder or SignatureBuilder()

    def query(self, token: str, top_n: Optional[int] = None) -> List[MatchCandidate]:
        """
        Rank candidate species for a token.

        Args:
            token: Raw spoken or typed text
            top_n: Maximum number of candidates (config default when omitted)

        Returns:
            Candidates sorted by descending score, empty when nothing matches
        """
        limit = top_n or self.config.top_n
        norm = normalize(token)
        if not norm:
            return []

        exact = self.cache.find_exact(norm)
        if exact:
            return self._rank(((r, r.weight) for r in exact), STRATEGY_EXACT, limit)

        codes = self.encoder.encode(norm)
        phonetic = self._phonetic_candidates(codes, limit)
        if phonetic:
            return phonetic

        if self.config.fuzzy_fallback:
            return self._fuzzy_candidates(norm, codes, limit)
        return []

    def _phonetic_candidates(self, codes: PhoneticCodes, limit: int) -> List[MatchCandidate]:
        scored = []
        for record in self.cache.find_by_phonetic(codes):
            if codes.phonemes and record.phonetic.phonemes:
                similarity = phoneme_similarity(codes.phonemes, record.phonetic.phonemes)
            else:
                similarity = cologne_similarity(codes.cologne, record.phonetic.cologne)
            scored.append((record, similarity * record.weight))
        return self._rank(scored, STRATEGY_PHONETIC, limit)

    def _fuzzy_candidates(self, norm: str, codes: PhoneticCodes, limit: int) -> List[MatchCandidate]:
        window = max(2, len(norm) // 3)
        shortlist = [
            key for key in self.cache.norms()
            if key[:1] == norm[:1] and abs(len(key) - len(norm)) <= window
        ]
        if not shortlist:
            return []

        w_text, w_cologne, w_phoneme = FUZZY_WEIGHTS
        scored = []
        for key, text_score, _ in process.extract(norm, shortlist, scorer=fuzz.ratio, limit=limit * 4):
            for record in self.cache.find_exact(key):
                score = (
                    w_text * text_score / 100.0
                    + w_cologne * cologne_similarity(codes.cologne, record.phonetic.cologne)
                    + w_phoneme * phoneme_similarity(codes.phonemes, record.phonetic.phonemes)
                )
                if score >= self.config.fuzzy_threshold:
                    scored.append((record, score * record.weight))

        if scored:
            logger.debug(f"Fuzzy fallback for '{norm}': {len(scored)} candidates")
        return self._rank(scored, STRATEGY_FUZZY, limit)

    @staticmethod
    def _rank(scored, strategy: str, limit: int) -> List[MatchCandidate]:
        best: Dict[str, Tuple[AliasRecord, float]] = {}
        for record, score in scored:
            current = best.get(record.species_id)
            if current is None or score > current[1] or (
                score == current[1] and alias_sequence(record.alias_id) < alias_sequence(current[0].alias_id)
            ):
                best[record.species_id] = (record, score)

        ordered = sorted(
            best.values(),
            key=lambda item: (-item[1], species_sort_key(item[0].species_id), alias_sequence(item[0].alias_id)),
        )
        return [MatchCandidate(record=r, score=s, strategy=strategy) for r, s in ordered[:limit]]

    def near_duplicates(
        self,
        text: str,
        min_similarity: float = 0.5,
        max_hamming: Optional[int] = None,
    ) -> List[Tuple[AliasRecord, float, int]]:
        """
        Records whose signature resembles the text.

        Returns:
            (record, MinHash similarity, SimHash Hamming distance) tuples,
            most similar first. Records without signatures are ignored.
        """
        norm = normalize(text)
        if not norm:
            return []
        probe = self.signature_builder.build(norm)

        found = []
        for record in self.cache.records():
            signature = record.signature
            if signature is None or signature.q != probe.q or len(signature.minhash64) != len(probe.minhash64):
                continue
            similarity = minhash_similarity(probe.minhash64, signature.minhash64)
            distance = hamming_distance(probe.simhash64, signature.simhash64)
            if similarity < min_similarity:
                continue
            if max_hamming is not None and distance > max_hamming:
                continue
            found.append((record, similarity, distance))

        found.sort(key=lambda item: (-item[1], item[2], item[0].alias_id))
        return found
