"""
Matching package: normalization, phonetic encoding, signatures and ranking.

Main Components:
    normalize: Diacritics-free lowercase key for every alias
    PhoneticEncoder: Cologne consonant skeleton and Dutch phoneme tokens
    SignatureBuilder: q-gram MinHash/SimHash payloads
    SpeciesMatcher: Query-time ranking over the hot-patch cache
"""
