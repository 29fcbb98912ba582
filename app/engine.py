"""Alias engine facade: wiring plus the public operations."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from config.config import AppConfig
from core.error_handler import as_result, handle_exceptions
from core.exceptions import AliasConflictError
from core.result import Failure, Result, Success
from index.models import AliasIndex, AliasRecordFactory, MatchCandidate, PendingAlias, SeedSpecies
from matching.phonetic_encoder import PhoneticEncoder
from matching.signatures import SignatureBuilder
from matching.species_matcher import SpeciesMatcher
from services.hotpatch_cache import HotPatchCache
from services.scheduler import Scheduler, ThreadScheduler
from services.write_behind import WriteBehindQueue
from storage.backend import LocalStorageBackend, StorageBackend
from storage.exporter import Exporter, ExportReport
from storage.persistent_store import PersistentStore


class AliasEngine:
    """
    Resolves noisy tokens to species and learns new aliases in the field.

    One long-lived instance per process. ``initialize()`` must succeed before
    aliases can be taught, and ``force_flush()`` (or ``close()``) must run on
    shutdown so buffered aliases are persisted.

    Example:
        engine = AliasEngine(config)
        engine.initialize()
        engine.add_alias("20", "aalschol", canonical="aalscholver")
        engine.query("aalschol")
        engine.close()
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        backend: Optional[StorageBackend] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.config = config or AppConfig()
        self.backend = backend or LocalStorageBackend(self.config.storage.root)
        self.scheduler = scheduler or ThreadScheduler()

        encoder = PhoneticEncoder()
        sig_config = self.config.signatures
        signature_builder = SignatureBuilder(q=sig_config.q, minhash_k=sig_config.minhash_k)
        self.factory = AliasRecordFactory(
            encoder=encoder,
            signature_builder=signature_builder if sig_config.enabled else None,
        )

        self.store = PersistentStore(self.backend, self.factory, self.config.storage, self.config.cache)
        self.cache = HotPatchCache(self.store, self.factory, self.scheduler)
        self.queue = WriteBehindQueue(
            self.store,
            self.scheduler,
            size_threshold=self.config.write_behind.size_threshold,
            time_threshold_s=self.config.write_behind.time_threshold_s,
        )
        self.matcher = SpeciesMatcher(self.cache, encoder, self.config.matcher, signature_builder)
        self.exporter = Exporter(self.backend, self.config.storage.exports_dir)
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> bool:
        """Load the index (cache → master → seed). Safe to call again after a failure."""
        loaded = self.cache.ensure_loaded()
        if loaded:
            logger.info(f"Alias engine ready: {len(self.cache)} aliases, {self.cache.species_count()} species")
        else:
            logger.warning("Alias engine started without an index; matching is unavailable")
        return loaded

    def force_flush(self) -> Result[int, Exception]:
        """Persist every buffered alias now."""
        return self.queue.force_flush()

    def close(self) -> None:
        """Flush pending aliases and stop background I/O. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.queue.close()
        self.scheduler.shutdown(wait=True)
        logger.info("Alias engine closed")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add_alias(
        self,
        species_id: str,
        alias_text: str,
        canonical: Optional[str] = None,
        tile_name: Optional[str] = None,
    ) -> bool:
        """
        Teach an alias. It is matchable as soon as this returns; persistence
        happens in the background.

        Returns:
            False for blank input, a duplicate, a conflict with another
            species, or when no index is loaded
        """
        species_id = (species_id or "").strip().lower()
        if not species_id or not alias_text or not alias_text.strip():
            return False
        if not self.cache.is_loaded:
            logger.warning("Cannot add alias before the index is loaded")
            return False

        known = self.cache.species_info(species_id)
        if canonical is None and known is not None:
            canonical = known[0]
        if tile_name is None and known is not None:
            tile_name = known[1]

        try:
            record = self.cache.add_alias_hotpatch(species_id, alias_text, canonical or species_id, tile_name)
        except AliasConflictError as e:
            logger.warning(f"Rejected alias: {e}")
            return False
        if record is None:
            logger.debug(f"Alias '{alias_text}' already known for species {species_id}")
            return False

        self.queue.enqueue(PendingAlias(
            species_id=species_id,
            alias_text=alias_text,
            canonical=record.canonical,
            tile_name=record.tile_name,
            alias_id=record.alias_id,
            timestamp=record.timestamp,
        ))
        return True

    @handle_exceptions(default_return=[], message="Query failed")
    def query(self, token: str, top_n: Optional[int] = None) -> List[MatchCandidate]:
        return self.matcher.query(token, top_n=top_n)

    def seed(self, seeds: Optional[Iterable[SeedSpecies]] = None) -> Result[AliasIndex, Exception]:
        """
        Regenerate the master from seed vocabulary (the species catalog by
        default), keeping user-trained aliases, and swap it into the cache.
        """
        flushed = self.force_flush()
        if isinstance(flushed, Failure):
            return flushed

        seed_list = list(seeds) if seeds is not None else None
        try:
            result = self.scheduler.submit(self.store.generate_seed, seed_list).result()
        except Exception as e:
            logger.exception(f"Seed generation did not complete: {e}")
            return Failure(e)

        if isinstance(result, Success):
            self.cache.replace_index(result.value)
        return result

    def export(self) -> Result[ExportReport, Exception]:
        """Export the in-memory index (including unflushed aliases)."""
        return as_result(self.exporter.export)(self.cache.snapshot())

    def stats(self) -> Dict[str, Any]:
        records = self.cache.records()
        by_source: Dict[str, int] = {}
        for record in records:
            by_source[record.source] = by_source.get(record.source, 0) + 1
        return {
            "loaded": self.cache.is_loaded,
            "aliases": len(records),
            "species": self.cache.species_count(),
            "by_source": dict(sorted(by_source.items())),
            "signatures": self.factory.signature_builder is not None,
            "pending": self.queue.pending_count,
            "flushes": self.queue.flush_count,
        }
