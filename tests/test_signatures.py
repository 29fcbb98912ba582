"""Unit tests for q-gram, MinHash and SimHash signatures."""
import pytest

from matching.signatures import (
    MAX_U64,
    AliasSignature,
    SignatureBuilder,
    hamming_distance,
    hash64,
    minhash,
    minhash_similarity,
    qgrams,
    simhash,
)


class TestQgrams:

    def test_padded_trigrams(self):
        assert qgrams("vink", 3) == [" vi", "vin", "ink", "nk "]

    def test_short_text_yields_itself(self):
        assert qgrams("", 3) == ["  "]

    def test_bigrams(self):
        assert qgrams("ab", 2) == [" a", "ab", "b "]


class TestHashes:

    def test_hash64_is_deterministic_and_bounded(self):
        value = hash64(b"vink")
        assert value == hash64(b"vink")
        assert 0 <= value <= MAX_U64

    def test_seed_changes_hash(self):
        assert hash64(b"vink", 0) != hash64(b"vink", 1)

    def test_empty_minhash_is_all_max(self):
        assert minhash([], k=8) == (MAX_U64,) * 8

    def test_minhash_width(self):
        assert len(minhash(qgrams("aalscholver"), k=16)) == 16

    def test_minhash_ignores_shingle_order(self):
        shingles = qgrams("blauwe kiek")
        assert minhash(shingles) == minhash(list(reversed(shingles)))

    def test_empty_simhash_is_zero(self):
        assert simhash([]) == 0

    def test_simhash_fits_64_bits(self):
        assert 0 <= simhash(qgrams("buizerd")) <= MAX_U64


class TestSimilarity:

    def test_identical_strings(self):
        # Arrange
        builder = SignatureBuilder()

        # Act
        a = builder.build("aalscholver")
        b = builder.build("aalscholver")

        # Assert
        assert minhash_similarity(a.minhash64, b.minhash64) == 1.0
        assert hamming_distance(a.simhash64, b.simhash64) == 0

    def test_similar_beats_unrelated(self):
        builder = SignatureBuilder()
        base = builder.build("blauwe kiekendief")
        near = builder.build("blauwe kiekendif")
        far = builder.build("buizerd")

        assert (minhash_similarity(base.minhash64, near.minhash64)
                > minhash_similarity(base.minhash64, far.minhash64))

    def test_mismatched_widths_have_no_similarity(self):
        assert minhash_similarity((1, 2, 3), (1, 2)) == 0.0
        assert minhash_similarity((), ()) == 0.0

    @pytest.mark.parametrize("a, b, expected", [
        (0, 0, 0),
        (0b1011, 0b0001, 2),
        (MAX_U64, 0, 64),
    ])
    def test_hamming(self, a, b, expected):
        assert hamming_distance(a, b) == expected


class TestAliasSignature:

    def test_simhash_serialized_as_hex(self):
        signature = AliasSignature(q=3, minhash64=(1, 2), simhash64=255)

        data = signature.to_dict()

        assert data["simhash64"] == "0x00000000000000ff"
        assert AliasSignature.from_dict(data) == signature

    def test_from_dict_accepts_integer_simhash(self):
        signature = AliasSignature.from_dict({"q": 3, "minhash64": [7], "simhash64": 9})
        assert signature.simhash64 == 9
