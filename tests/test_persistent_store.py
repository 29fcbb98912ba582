"""Tests for master/cache persistence and the load fallback chain."""
import pytest

from config.config import CacheConfig, StorageConfig
from core.exceptions import StorageUnavailableError
from core.result import Failure, Success
from index.models import SOURCE_USER_TRAINED, PendingAlias
from storage.backend import LocalStorageBackend
from storage.binary_cache import CODECS, read_header
from storage.persistent_store import PersistentStore

MASTER = "assets/alias_master.json"
CACHE = "binaries/aliases_optimized.cbor.gz"


class FlakyBackend(LocalStorageBackend):
    """Local backend that fails reads or writes for selected paths."""

    def __init__(self, root, fail_reads=(), fail_writes=()):
        super().__init__(root)
        self.fail_reads = set(fail_reads)
        self.fail_writes = set(fail_writes)

    def read_bytes(self, relative_path):
        if relative_path in self.fail_reads:
            raise StorageUnavailableError(f"{relative_path} offline")
        return super().read_bytes(relative_path)

    def write_bytes(self, relative_path, data):
        if relative_path in self.fail_writes:
            raise StorageUnavailableError(f"{relative_path} read-only")
        super().write_bytes(relative_path, data)


def _flaky_store(tmp_path, factory, **failures):
    backend = FlakyBackend(tmp_path, **failures)
    return PersistentStore(backend, factory, StorageConfig(root=str(tmp_path)))


class TestLoad:

    def test_no_data_anywhere(self, store):
        result = store.load()

        assert isinstance(result, Failure)
        assert result.is_no_data()

    def test_seeds_from_catalog_with_site_filter(self, store, backend, write_catalog):
        # Arrange
        write_catalog(site_ids=["20", "31", "99"])

        # Act
        result = store.load()

        # Assert
        assert isinstance(result, Success)
        index = result.value
        assert index.species_ids() == ["20", "31", "99"]
        assert {r.norm for r in index.records} == {"aalscholver", "aalsch", "vink", "roerdomp", "roerd"}
        assert backend.exists(MASTER)
        assert backend.exists(CACHE)

    def test_seeds_all_catalog_species_without_filter(self, store, write_catalog):
        write_catalog()

        index = store.load().value

        assert index.species_ids() == ["20", "31", "40", "55", "99"]

    def test_prefers_cache(self, store, seeds, backend):
        # Arrange: master removed after seeding, cache alone must suffice
        store.generate_seed(seeds)
        backend.delete(MASTER)

        # Act
        result = store.load()

        # Assert
        assert isinstance(result, Success)
        assert len(result.value) == 8

    def test_flipped_cache_byte_falls_back_to_master(self, store, seeds, backend):
        # Arrange
        expected = store.generate_seed(seeds).value
        data = bytearray(backend.read_bytes(CACHE))
        data[3] ^= 0xFF
        backend.write_bytes(CACHE, bytes(data))

        # Act
        result = store.load()

        # Assert
        assert isinstance(result, Success)
        assert [r.alias_id for r in result.value.records] == [r.alias_id for r in expected.records]
        assert isinstance(store.read_cache(), Success)

    def test_corrupt_master_is_kept_and_reseeded(self, store, backend, write_catalog):
        # Arrange
        write_catalog()
        backend.write_bytes(MASTER, b"{ not json")

        # Act
        result = store.load()

        # Assert
        assert isinstance(result, Success)
        assert backend.read_bytes(MASTER + ".corrupt") == b"{ not json"
        assert isinstance(store.read_master(), Success)

    def test_master_without_species_list_is_corrupt(self, store, backend):
        backend.write_json(MASTER, {"version": "2.1"})

        result = store.read_master()

        assert isinstance(result, Failure)
        assert result.is_corrupt()

    def test_unavailable_master_is_not_reseeded(self, tmp_path, factory):
        # Arrange
        store = _flaky_store(tmp_path, factory, fail_reads=[MASTER])
        store.backend.write_json(MASTER, {"species": []})

        # Act
        result = store.load()

        # Assert
        assert isinstance(result, Failure)
        assert result.is_transient()

    def test_serves_master_when_cache_cannot_be_written(self, tmp_path, factory, seeds):
        # Arrange
        store = _flaky_store(tmp_path, factory, fail_writes=[CACHE])
        assert isinstance(store.generate_seed(seeds), Failure)

        # Act
        result = store.load()

        # Assert
        assert isinstance(result, Success)
        assert len(result.value) == 8
        assert not store.backend.exists(CACHE)


class TestMergePending:

    def test_merge_updates_master_and_cache(self, store, seeds):
        # Arrange
        store.generate_seed(seeds)
        pending = [PendingAlias("31", "finkie", "vink", alias_id="31_2")]

        # Act
        result = store.merge_pending(pending)

        # Assert
        assert result == Success(1)
        master = store.read_master().value
        vink = next(s for s in master.species if s.species_id == "31")
        assert vink.aliases[-1].norm == "finkie"
        assert vink.aliases[-1].source == SOURCE_USER_TRAINED
        assert "finkie" in {r.norm for r in store.read_cache().value.records}

    def test_merge_without_master_creates_one(self, store):
        result = store.merge_pending([PendingAlias("77", "Grutto", "grutto")])

        assert result == Success(1)
        assert store.read_master().value.alias_count() == 1

    def test_empty_batch(self, store):
        assert store.merge_pending([]) == Success(0)

    def test_write_failure_is_reported(self, tmp_path, factory):
        store = _flaky_store(tmp_path, factory, fail_writes=[MASTER])

        result = store.merge_pending([PendingAlias("31", "finkie", "vink")])

        assert isinstance(result, Failure)
        assert result.is_transient()

    def test_failed_cache_rebuild_invalidates_cache(self, tmp_path, factory, seeds):
        # Arrange: a valid cache exists, then cache writes start failing
        store = _flaky_store(tmp_path, factory)
        store.generate_seed(seeds)
        store.backend.fail_writes.add(CACHE)

        # Act
        result = store.merge_pending([PendingAlias("31", "finkie", "vink")])

        # Assert
        assert result == Success(1)
        assert not store.backend.exists(CACHE)
        store.backend.fail_writes.clear()
        assert "finkie" in {r.norm for r in store.load().value.records}

    def test_corrupt_master_is_rebuilt_from_cache(self, store, backend, seeds):
        # Arrange
        store.generate_seed(seeds)
        backend.write_bytes(MASTER, b"{ not json")

        # Act
        first = store.merge_pending([PendingAlias("31", "finkie", "vink")])
        second = store.merge_pending([PendingAlias("55", "buizert", "buizerd")])

        # Assert
        assert (first, second) == (Success(1), Success(1))
        assert backend.read_bytes(MASTER + ".corrupt") == b"{ not json"
        norms = {a.norm for s in store.read_master().value.species for a in s.aliases}
        assert {"aalscholver", "schollie", "finkie", "buizert"} <= norms
        assert len(norms) == 10

    def test_missing_master_is_rebuilt_from_cache(self, store, backend, seeds):
        # Arrange
        store.generate_seed(seeds)
        backend.delete(MASTER)

        # Act
        result = store.merge_pending([PendingAlias("31", "finkie", "vink")])

        # Assert
        assert result == Success(1)
        assert store.read_master().value.alias_count() == 9
        assert "blauwe kiek" in {r.norm for r in store.read_cache().value.records}

    def test_missing_master_without_cache_starts_from_catalog(self, store, write_catalog):
        write_catalog()

        result = store.merge_pending([PendingAlias("31", "finkie", "vink")])

        assert result == Success(1)
        norms = {r.norm for r in store.read_cache().value.records}
        assert {"roerdomp", "aalscholver", "finkie"} <= norms


class TestGenerateSeed:

    def test_regeneration_keeps_user_aliases(self, store, seeds):
        # Arrange
        store.generate_seed(seeds)
        store.merge_pending([PendingAlias("40", "kiekje", "blauwe kiekendief")])

        # Act
        result = store.generate_seed(seeds)

        # Assert
        assert isinstance(result, Success)
        assert "kiekje" in {r.norm for r in result.value.records}

    def test_empty_seed_vocabulary(self, store):
        result = store.generate_seed([])

        assert isinstance(result, Failure)
        assert result.is_no_data()

    @pytest.mark.parametrize("codec", ["json", "cbor"])
    def test_cache_codec_follows_config(self, tmp_path, factory, seeds, codec):
        backend = LocalStorageBackend(tmp_path)
        store = PersistentStore(backend, factory, StorageConfig(root=str(tmp_path)), CacheConfig(codec=codec))

        store.generate_seed(seeds)

        assert read_header(backend.read_bytes(CACHE)).codec == CODECS[codec]
