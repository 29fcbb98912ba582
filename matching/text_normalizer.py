"""Text normalization shared by indexing and querying."""

import re
import unicodedata

_NON_ALNUM_RUN = re.compile(r"[\W_]+")


def normalize(text: str) -> str:
    """
    Reduce text to the key used for alias indexing.

    Lowercases, strips diacritics (NFD decomposition with combining marks
    dropped), replaces every run of non-letter/non-digit characters with a
    single space and trims the result. The function is total and idempotent:
    ``normalize(normalize(x)) == normalize(x)``.

    Args:
        text: Raw spoken or typed token, may be ``None``

    Returns:
        Normalized text, empty string for blank input

    Examples:
        - "Blauwe  Kiekendief!" -> "blauwe kiekendief"
        - "Gänsegeier" -> "gansegeier"
    """
    if not text:
        return ""

    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return _NON_ALNUM_RUN.sub(" ", stripped).strip()

