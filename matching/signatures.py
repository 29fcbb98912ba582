"""
Approximate-duplicate signatures for aliases.

q-gram shingles of a normalized alias feed two locality-sensitive hashes:

    MinHash: K seeded 64-bit hashes, keep the per-seed minimum; the fraction of
             equal slots between two signatures estimates Jaccard similarity.
    SimHash: one 64-bit fingerprint; Hamming distance approximates
             dissimilarity.

Shingle hashes are xxh3-128 digests folded to 64 bits (high XOR low). The
per-seed/per-shingle hash matrix is reduced with numpy.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np
import xxhash

MAX_U64 = 0xFFFFFFFFFFFFFFFF
DEFAULT_Q = 3
DEFAULT_MINHASH_K = 64
SIMHASH_BITS = 64


@dataclass(frozen=True)
class AliasSignature:
    """Shingle length, MinHash slots and SimHash fingerprint of one alias."""
    q: int
    minhash64: Tuple[int, ...]
    simhash64: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "q": self.q,
            "minhash64": list(self.minhash64),
            "simhash64": f"0x{self.simhash64:016x}",
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "AliasSignature":
        simhash = data["simhash64"]
        if isinstance(simhash, str):
            simhash = int(simhash, 16)
        return cls(
            q=int(data["q"]),
            minhash64=tuple(int(v) for v in data["minhash64"]),
            simhash64=int(simhash),
        )


def qgrams(norm: str, q: int = DEFAULT_Q) -> List[str]:
    """
    Shingle normalized text into contiguous substrings of length q.

    The text is padded with one leading and one trailing space, so word
    boundaries contribute shingles of their own. A padded string shorter
    than q yields itself as the only shingle.
    """
    padded = f" {norm} "
    if len(padded) < q:
        return [padded]
    return [padded[i:i + q] for i in range(len(padded) - q + 1)]


def hash64(data: bytes, seed: int = 0) -> int:
    """xxh3-128 of data folded to an unsigned 64-bit integer."""
    digest = xxhash.xxh3_128_intdigest(data, seed)
    return (digest >> 64) ^ (digest & MAX_U64)


def minhash(shingles: Sequence[str], k: int = DEFAULT_MINHASH_K) -> Tuple[int, ...]:
    """MinHash signature with k slots; an empty shingle set maps every slot to 2**64 - 1."""
    unique = sorted(set(shingles))
    if not unique:
        return (MAX_U64,) * k

    encoded = [s.encode("utf-8") for s in unique]
    matrix = np.array(
        [[hash64(s, seed) for s in encoded] for seed in range(k)],
        dtype=np.uint64,
    )
    return tuple(int(v) for v in matrix.min(axis=1))


def simhash(shingles: Sequence[str]) -> int:
    """64-bit SimHash: bit i is set iff more shingle hashes have bit i set than unset."""
    if not shingles:
        return 0

    hashes = np.array([hash64(s.encode("utf-8")) for s in shingles], dtype=np.uint64)
    positions = np.arange(SIMHASH_BITS, dtype=np.uint64)
    bits = (hashes[:, None] >> positions) & np.uint64(1)
    votes = (bits.astype(np.int64) * 2 - 1).sum(axis=0)

    fingerprint = 0
    for position in np.flatnonzero(votes > 0):
        fingerprint |= 1 << int(position)
    return fingerprint


def minhash_similarity(a: Sequence[int], b: Sequence[int]) -> float:
    """Fraction of slots whose minima agree."""
    if not a or len(a) != len(b):
        return 0.0
    return float(np.count_nonzero(np.asarray(a, dtype=np.uint64) == np.asarray(b, dtype=np.uint64))) / len(a)


def hamming_distance(a: int, b: int) -> int:
    return bin(a ^ b).count("1")


class SignatureBuilder:
    """Builds ``AliasSignature`` payloads with fixed q and MinHash width."""

    def __init__(self, q: int = DEFAULT_Q, minhash_k: int = DEFAULT_MINHASH_K) -> None:
        self.q = q
        self.minhash_k = minhash_k

    def build(self, norm: str) -> AliasSignature:
        shingles = qgrams(norm, self.q)
        return AliasSignature(
            q=self.q,
            minhash64=minhash(shingles, self.minhash_k),
            simhash64=simhash(shingles),
        )
