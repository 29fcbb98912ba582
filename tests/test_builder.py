"""Tests for the seed vocabulary parser and index builder."""
import pytest

from index.builder import IndexBuilder, parse_seed_csv
from index.models import (
    SOURCE_SEED_CANONICAL,
    SOURCE_SEED_IMPORT,
    SOURCE_SEED_TILENAME,
    AliasRecordFactory,
    SeedSpecies,
    alias_sequence,
    make_alias_id,
    species_sort_key,
)


class TestParseSeedCsv:

    def test_parses_fields(self):
        text = "\ufeff20;Aalscholver;Aalsch;schollie;aalschol\n31;Vink;;\n"

        seeds = parse_seed_csv(text)

        assert seeds == [
            SeedSpecies("20", "Aalscholver", "Aalsch", ("schollie", "aalschol")),
            SeedSpecies("31", "Vink", None, ()),
        ]

    def test_skips_blank_and_short_lines(self):
        text = "\n40\n;Buizerd\n55;Buizerd\n"

        seeds = parse_seed_csv(text)

        assert [s.species_id for s in seeds] == ["55"]


class TestIndexBuilder:

    @pytest.fixture
    def index(self, factory, seeds):
        return IndexBuilder(factory).build(seeds)

    def test_record_count(self, index):
        # 3 + 1 + 3 + 1: "vink" tile equals its canonical name
        assert len(index) == 8

    def test_sources_and_ids(self, index):
        by_id = {r.alias_id: r for r in index.records}

        assert by_id["20_1"].source == SOURCE_SEED_CANONICAL
        assert by_id["20_1"].norm == "aalscholver"
        assert by_id["20_2"].source == SOURCE_SEED_TILENAME
        assert by_id["20_2"].norm == "aalsch"
        assert by_id["20_3"].source == SOURCE_SEED_IMPORT
        assert by_id["20_3"].norm == "schollie"

    def test_tile_equal_to_canonical_is_skipped(self, index):
        vink = [r for r in index.records if r.species_id == "31"]
        assert [r.alias_id for r in vink] == ["31_1"]

    def test_every_record_has_phonetics_and_signature(self, index):
        for record in index.records:
            assert record.phonetic.cologne
            assert record.phonetic.phonemes
            assert record.signature is not None

    def test_canonical_is_lowercased(self, index):
        assert {r.canonical for r in index.records if r.species_id == "40"} == {"blauwe kiekendief"}

    def test_conflicting_alias_is_skipped(self, factory):
        # Arrange
        seeds = [
            SeedSpecies("1", "Merel", aliases=("zwarte",)),
            SeedSpecies("2", "Kraai", aliases=("Zwarte!", "kraaitje")),
        ]

        # Act
        index = IndexBuilder(factory).build(seeds)

        # Assert
        owners = {r.norm: r.species_id for r in index.records}
        assert owners["zwarte"] == "1"
        assert [r.alias_id for r in index.records if r.species_id == "2"] == ["2_1", "2_2"]

    def test_duplicate_within_species_is_skipped(self, factory):
        index = IndexBuilder(factory).build([SeedSpecies("7", "Spreeuw", aliases=("spreeuw", " SPREEUW "))])
        assert len(index) == 1

    def test_repeated_species_continues_sequence(self, factory):
        # Arrange
        seeds = parse_seed_csv("20;Aalscholver;Aalsch;schollie\n20;Aalscholver;;zwarte\n")

        # Act
        index = IndexBuilder(factory).build(seeds)

        # Assert
        assert [r.alias_id for r in index.records] == ["20_1", "20_2", "20_3", "20_4"]
        assert index.records[-1].norm == "zwarte"

    def test_blank_aliases_are_ignored(self, factory):
        index = IndexBuilder(factory).build([SeedSpecies("8", "Ekster", aliases=("", "--"))])
        assert [r.norm for r in index.records] == ["ekster"]

    def test_lean_factory_builds_without_signatures(self, seeds):
        index = IndexBuilder(AliasRecordFactory()).build(seeds)
        assert all(r.signature is None for r in index.records)


class TestIdHelpers:

    def test_alias_id_round_trip(self):
        assert alias_sequence(make_alias_id("40", 12)) == 12

    def test_sequence_of_foreign_id(self):
        assert alias_sequence("legacy") == 0

    def test_species_sort_key(self):
        ids = ["100", "abc", "20", "3"]
        assert sorted(ids, key=species_sort_key) == ["3", "20", "100", "abc"]
