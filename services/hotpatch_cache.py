"""
In-memory alias lookup with instant (hot-patch) insertion.

Readers never lock: both maps hold immutable tuples and are only ever
mutated by single dict assignments (or swapped wholesale on reload) under
the writer lock, so a reader always observes a complete value.
"""
from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from core.exceptions import AliasConflictError
from core.result import Success
from index.models import (
    SOURCE_USER_TRAINED,
    AliasIndex,
    AliasRecord,
    AliasRecordFactory,
    alias_sequence,
    make_alias_id,
    species_sort_key,
    utc_now_iso,
)
from matching.phonetic_encoder import PhoneticCodes
from matching.text_normalizer import normalize
from services.scheduler import Scheduler
from storage.persistent_store import PersistentStore


class HotPatchCache:
    """Process-wide alias maps: ``norm → records`` and ``phonetic key → records``."""

    def __init__(
        self,
        store: PersistentStore,
        factory: AliasRecordFactory,
        scheduler: Scheduler,
        load_timeout_s: Optional[float] = 60.0,
    ) -> None:
        self.store = store
        self.factory = factory
        # Hot-patched records carry phonetic codes only; signatures are filled
        # in when the next flush rebuilds the cache through the full factory.
        self._hotpatch_factory = AliasRecordFactory(encoder=factory.encoder)
        self.scheduler = scheduler
        self.load_timeout_s = load_timeout_s

        self._exact: Dict[str, Tuple[AliasRecord, ...]] = {}
        self._phonetic: Dict[str, Tuple[AliasRecord, ...]] = {}
        self._next_sequence: Dict[str, int] = {}
        self._species: Dict[str, Tuple[str, Optional[str]]] = {}

        self._write_lock = threading.Lock()
        self._load_lock = threading.Lock()
        self._loaded = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> bool:
        """Populate from the persistent store once; later calls return immediately."""
        if self._loaded:
            return True
        with self._load_lock:
            if self._loaded:
                return True
            return self._load()

    def reload(self) -> bool:
        """Re-read the persistent store, keeping aliases hot-patched meanwhile."""
        with self._load_lock:
            return self._load()

    def _load(self) -> bool:
        try:
            result = self.scheduler.submit(self.store.load).result(timeout=self.load_timeout_s)
        except Exception as e:
            logger.exception(f"Alias index load did not complete: {e}")
            return False

        if not isinstance(result, Success):
            logger.warning(f"Alias index not loaded: {result.error}")
            return False

        self.replace_index(result.value)
        return True

    def replace_index(self, index: AliasIndex) -> None:
        """
        Swap in a complete index. User-trained records present in memory but
        absent from the new index are carried over so an unflushed hot-patch
        survives a reload.
        """
        exact: Dict[str, Tuple[AliasRecord, ...]] = {}
        for record in index.records:
            exact[record.norm] = exact.get(record.norm, ()) + (record,)

        with self._write_lock:
            for norm, records in self._exact.items():
                if norm in exact:
                    continue
                carried = tuple(r for r in records if r.source == SOURCE_USER_TRAINED)
                if carried:
                    exact[norm] = carried

            phonetic: Dict[str, Tuple[AliasRecord, ...]] = {}
            next_sequence: Dict[str, int] = {}
            species: Dict[str, Tuple[str, Optional[str]]] = {}
            for records in exact.values():
                for record in records:
                    for key in record.phonetic.lookup_keys():
                        phonetic[key] = phonetic.get(key, ()) + (record,)
                    if record.species_id not in species or (record.tile_name and not species[record.species_id][1]):
                        species[record.species_id] = (record.canonical, record.tile_name)
                    seq = alias_sequence(record.alias_id) + 1
                    if seq > next_sequence.get(record.species_id, 1):
                        next_sequence[record.species_id] = seq

            self._exact = exact
            self._phonetic = phonetic
            self._next_sequence = next_sequence
            self._species = species
            self._loaded = True

        logger.info(f"Hot-patch cache holds {len(exact)} aliases")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_alias_hotpatch(
        self,
        species_id: str,
        alias_text: str,
        canonical: str,
        tile_name: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> Optional[AliasRecord]:
        """
        Insert a user-trained alias; visible to lookups as soon as this returns.

        No I/O is performed.

        Returns:
            The new record, or None when the alias is blank or already known
            for this species

        Raises:
            AliasConflictError: The normalized alias belongs to another species
        """
        norm = normalize(alias_text)
        if not norm:
            return None

        with self._write_lock:
            existing = self._exact.get(norm, ())
            for record in existing:
                if record.species_id != species_id:
                    raise AliasConflictError(norm, record.species_id, species_id)
            if existing:
                return None

            sequence = self._next_sequence.get(species_id, 1)
            record = self._hotpatch_factory.create(
                alias_id=make_alias_id(species_id, sequence),
                species_id=species_id,
                canonical=canonical or species_id,
                alias_text=alias_text,
                tile_name=tile_name,
                source=SOURCE_USER_TRAINED,
                timestamp=timestamp or utc_now_iso(),
            )
            if record is None:
                return None

            self._next_sequence[species_id] = sequence + 1
            self._species.setdefault(species_id, (record.canonical, record.tile_name))
            self._exact[norm] = (record,)
            for key in record.phonetic.lookup_keys():
                self._phonetic[key] = self._phonetic.get(key, ()) + (record,)

        logger.debug(f"Hot-patched alias '{norm}' → species {species_id} ({record.alias_id})")
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_exact(self, norm: str) -> List[AliasRecord]:
        return list(self._exact.get(norm, ()))

    def find_by_phonetic(self, codes: PhoneticCodes) -> List[AliasRecord]:
        """Records sharing the Cologne code or the compact phoneme string."""
        phonetic = self._phonetic
        seen = {}
        for key in codes.lookup_keys():
            for record in phonetic.get(key, ()):
                seen.setdefault(record.alias_id, record)
        return list(seen.values())

    def species_info(self, species_id: str) -> Optional[Tuple[str, Optional[str]]]:
        """(canonical, tile name) of a known species."""
        return self._species.get(species_id)

    def species_count(self) -> int:
        return len(self._species)

    def norms(self) -> Iterable[str]:
        return list(self._exact.keys())

    def records(self) -> List[AliasRecord]:
        return [record for records in list(self._exact.values()) for record in records]

    def snapshot(self) -> AliasIndex:
        ordered = sorted(
            self.records(),
            key=lambda r: (species_sort_key(r.species_id), alias_sequence(r.alias_id)),
        )
        return AliasIndex(records=tuple(ordered))

    def __len__(self) -> int:
        return len(self._exact)
