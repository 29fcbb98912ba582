"""Unit tests for text normalization."""
import pytest

from matching.text_normalizer import normalize


class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.parametrize("raw, expected", [
        ("Aalscholver", "aalscholver"),
        ("  Blauwe   Kiekendief  ", "blauwe kiekendief"),
        ("Gänsegeier", "gansegeier"),
        ("Crème-brûlée!!", "creme brulee"),
        ("vink,vink;vink", "vink vink vink"),
        ("under_score", "under score"),
        ("r2d2", "r2d2"),
        ("", ""),
        ("?!…", ""),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize(raw) == expected

    def test_none_is_empty(self):
        assert normalize(None) == ""

    @pytest.mark.parametrize("raw", [
        "Ëën  TWEE\tdrie",
        "İstanbul",
        "ǅemal",
        "Straße -- Weg",
        "á̂b",
        "  ...  ",
        "ﬁnk",
    ])
    def test_idempotent(self, raw):
        # Arrange
        once = normalize(raw)

        # Act
        twice = normalize(once)

        # Assert
        assert twice == once

    def test_no_leading_trailing_or_double_spaces(self):
        result = normalize("  --a--  b  --")
        assert result == "a b"

