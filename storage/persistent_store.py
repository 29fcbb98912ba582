"""
Durable alias persistence: human-readable master plus binary fast-load cache.

Load order is cache, then master (rebuilding the cache from it), then a
bootstrap seed generated from the species catalog. Every public operation
returns a ``Result``; no I/O failure escapes as an exception.
"""
from __future__ import annotations

import threading
from typing import Iterable, Optional, Sequence

from loguru import logger

from config.config import CacheConfig, StorageConfig
from core.error_handler import as_result, log_execution_time
from core.exceptions import CorruptDataError, NoDataError, StoreError
from core.result import Failure, Result, Success
from index.builder import IndexBuilder
from index.master import AliasMaster
from index.models import AliasIndex, AliasRecordFactory, PendingAlias, SeedSpecies
from storage.backend import StorageBackend
from storage.binary_cache import decode_index, encode_index
from storage.catalog import SpeciesCatalog


class PersistentStore:
    """Master + cache persistence over a ``StorageBackend``."""

    def __init__(
        self,
        backend: StorageBackend,
        factory: AliasRecordFactory,
        storage_config: Optional[StorageConfig] = None,
        cache_config: Optional[CacheConfig] = None,
    ) -> None:
        self.backend = backend
        self.factory = factory
        self.storage_config = storage_config or StorageConfig()
        self.cache_config = cache_config or CacheConfig()
        self.catalog = SpeciesCatalog(
            backend,
            self.storage_config.catalog_path,
            self.storage_config.site_species_path,
        )
        # Serializes read-modify-write cycles on the master.
        self._write_lock = threading.RLock()

    @property
    def master_path(self) -> str:
        return self.storage_config.master_path

    @property
    def cache_path(self) -> str:
        return self.storage_config.cache_path

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @log_execution_time(level="DEBUG")
    def load(self) -> Result[AliasIndex, StoreError]:
        """
        Load the complete index: cache → master → seed.

        Returns:
            Success with the index, or Failure when no index can be built.
            A Failure never carries a partial index.
        """
        cached = self.read_cache()
        if isinstance(cached, Success):
            logger.info(f"Loaded {len(cached.value)} aliases from binary cache")
            return cached
        if cached.is_corrupt():
            logger.warning(f"Discarding binary cache: {cached.error}")
        elif not cached.is_no_data():
            logger.warning(f"Binary cache unreadable: {cached.error}")

        master = self.read_master()
        if isinstance(master, Success):
            rebuilt = self.rebuild_cache(master.value)
            if isinstance(rebuilt, Success):
                logger.info(f"Loaded {len(rebuilt.value)} aliases from master")
                return rebuilt
            logger.warning(f"Cache rebuild failed, serving master without cache: {rebuilt.error}")
            return as_result(master.value.to_alias_index)(self.factory)
        if master.is_transient():
            logger.error(f"Alias master unavailable: {master.error}")
            return master
        if master.is_corrupt():
            logger.warning(f"Alias master is corrupt, regenerating from catalog: {master.error}")
            self._preserve_corrupt_master()

        seeded = self.generate_seed()
        if isinstance(seeded, Failure):
            logger.warning(f"No alias index available: {seeded.error}")
        return seeded

    @as_result
    def read_cache(self) -> AliasIndex:
        return decode_index(self.backend.read_bytes(self.cache_path))

    @as_result
    def read_master(self) -> AliasMaster:
        document = self.backend.read_json(self.master_path)
        try:
            return AliasMaster.from_dict(document)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise CorruptDataError(f"{self.master_path} is malformed: {e}") from e

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    @as_result
    def write_master(self, master: AliasMaster) -> AliasMaster:
        """Write the master with write-then-swap semantics."""
        self.backend.write_json(self.master_path, master.to_dict(), pretty=True)
        logger.debug(f"Wrote master: {len(master.species)} species, {master.alias_count()} aliases")
        return master

    @as_result
    def rebuild_cache(self, master: AliasMaster) -> AliasIndex:
        """Regenerate the binary cache from a master, synchronously."""
        index = master.to_alias_index(self.factory)
        data = encode_index(index, codec=self.cache_config.codec, compress=self.cache_config.compress)
        self.backend.write_bytes(self.cache_path, data)
        logger.debug(f"Rebuilt binary cache: {len(index)} records, {len(data)} bytes")
        return index

    def merge_pending(self, pending: Sequence[PendingAlias]) -> Result[int, StoreError]:
        """
        Merge buffered aliases into the master and rebuild the cache.

        Returns:
            Success with the number of aliases added, or Failure when the
            master could not be written (the caller keeps the batch).
        """
        if not pending:
            return Success(0)

        with self._write_lock:
            current = self.read_master()
            if isinstance(current, Success):
                base = current.value
            elif not (current.is_no_data() or current.is_corrupt()):
                return current
            else:
                if current.is_corrupt():
                    logger.warning(f"Alias master is corrupt, rebuilding it before merge: {current.error}")
                    self._preserve_corrupt_master()
                base = self._recovery_base()

            merged, added = base.merge_pending(pending, self.factory)
            written = self.write_master(merged)
            if isinstance(written, Failure):
                return written

            self._rebuild_or_invalidate(merged)

        logger.info(f"Merged {added} of {len(pending)} pending aliases into master")
        return Success(added)

    @log_execution_time(level="INFO")
    def generate_seed(self, seeds: Optional[Iterable[SeedSpecies]] = None) -> Result[AliasIndex, StoreError]:
        """
        Build a fresh master from seed vocabulary (the species catalog by
        default), carry over user-trained aliases of any existing master,
        write it and rebuild the cache.
        """
        if seeds is None:
            catalog_seeds = as_result(self.catalog.seed_species)()
            if isinstance(catalog_seeds, Failure):
                return catalog_seeds
            seeds = catalog_seeds.value

        built = as_result(IndexBuilder(self.factory).build)(list(seeds))
        if isinstance(built, Failure):
            return built
        if not built.value.records:
            return Failure(NoDataError("Seed vocabulary produced no aliases"))

        with self._write_lock:
            master = AliasMaster.from_index(built.value)
            previous = self.read_master()
            if isinstance(previous, Success):
                master = master.merge_user_aliases_from(previous.value, self.factory)

            written = self.write_master(master)
            if isinstance(written, Failure):
                return written
            return self.rebuild_cache(master)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _rebuild_or_invalidate(self, master: AliasMaster) -> None:
        """Rebuild the cache; if that fails, drop it so the next load reads the master."""
        rebuilt = self.rebuild_cache(master)
        if isinstance(rebuilt, Success):
            return
        logger.warning(f"Cache rebuild failed, invalidating cache: {rebuilt.error}")
        invalidated = as_result(self.backend.delete)(self.cache_path)
        if isinstance(invalidated, Failure):
            logger.error(f"Could not invalidate stale cache: {invalidated.error}")

    def _recovery_base(self) -> AliasMaster:
        """Master to merge into when none is readable: the binary cache, else the catalog seed."""
        cached = self.read_cache()
        if isinstance(cached, Success):
            logger.info(f"Recovering master from binary cache ({len(cached.value)} aliases)")
            return AliasMaster.from_index(cached.value)

        seeds = as_result(self.catalog.seed_species)()
        if isinstance(seeds, Success):
            built = as_result(IndexBuilder(self.factory).build)(seeds.value)
            if isinstance(built, Success) and built.value.records:
                logger.info(f"Recovering master from species catalog ({len(built.value)} aliases)")
                return AliasMaster.from_index(built.value)

        logger.warning("No cache or catalog to recover from, starting an empty master")
        return AliasMaster()

    def _preserve_corrupt_master(self) -> None:
        backup_path = f"{self.master_path}.corrupt"
        copied = as_result(lambda: self.backend.write_bytes(backup_path, self.backend.read_bytes(self.master_path)))()
        if isinstance(copied, Success):
            logger.info(f"Kept corrupt master as {backup_path}")
        else:
            logger.warning(f"Could not keep corrupt master: {copied.error}")
