"""
Alias master document.

The master is the human-readable, durable source of truth: aliases grouped
per species with provenance and timestamps. It never stores signatures;
converting it to an ``AliasIndex`` always recomputes the derived fields from
the alias text through ``AliasRecordFactory``.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from index.models import (
    INDEX_VERSION,
    SOURCE_USER_TRAINED,
    AliasIndex,
    AliasRecord,
    AliasRecordFactory,
    PendingAlias,
    alias_sequence,
    make_alias_id,
    species_sort_key,
    utc_now_iso,
)
from matching.text_normalizer import normalize


@dataclass(frozen=True)
class AliasData:
    """One alias entry of a species in the master."""
    alias_id: str
    text: str
    norm: str
    cologne: Optional[str] = None
    phonemes: Optional[str] = None
    weight: float = 1.0
    source: str = SOURCE_USER_TRAINED
    timestamp: Optional[str] = None

    @classmethod
    def from_record(cls, record: AliasRecord) -> "AliasData":
        return cls(
            alias_id=record.alias_id,
            text=record.alias,
            norm=record.norm,
            cologne=record.phonetic.cologne,
            phonemes=record.phonetic.phonemes,
            weight=record.weight,
            source=record.source,
            timestamp=record.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alias_id": self.alias_id,
            "text": self.text,
            "norm": self.norm,
            "cologne": self.cologne,
            "phonemes": self.phonemes,
            "weight": self.weight,
            "source": self.source,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AliasData":
        text = data["text"]
        return cls(
            alias_id=str(data["alias_id"]),
            text=text,
            norm=data.get("norm") or normalize(text),
            cologne=data.get("cologne"),
            phonemes=data.get("phonemes"),
            weight=float(data.get("weight", 1.0)),
            source=data.get("source", SOURCE_USER_TRAINED),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class SpeciesEntry:
    """All aliases of one species."""
    species_id: str
    canonical: str
    tile_name: Optional[str] = None
    aliases: Tuple[AliasData, ...] = ()

    def norms(self) -> set:
        return {a.norm for a in self.aliases}

    def next_sequence(self) -> int:
        return max((alias_sequence(a.alias_id) for a in self.aliases), default=0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "species_id": self.species_id,
            "canonical": self.canonical,
            "tile_name": self.tile_name,
            "aliases": [a.to_dict() for a in self.aliases],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeciesEntry":
        return cls(
            species_id=str(data["species_id"]),
            canonical=data["canonical"],
            tile_name=data.get("tile_name"),
            aliases=tuple(AliasData.from_dict(a) for a in data.get("aliases", [])),
        )


@dataclass(frozen=True)
class AliasMaster:
    """Per-species grouping of every known alias."""
    species: Tuple[SpeciesEntry, ...] = ()
    version: str = INDEX_VERSION
    timestamp: str = field(default_factory=utc_now_iso)

    def alias_count(self) -> int:
        return sum(len(s.aliases) for s in self.species)

    def to_dict(self) -> Dict[str, Any]:
        ordered = sorted(self.species, key=lambda s: species_sort_key(s.species_id))
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "species": [s.to_dict() for s in ordered],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AliasMaster":
        if not isinstance(data, dict) or not isinstance(data.get("species"), list):
            raise ValueError("master document has no species list")
        return cls(
            species=tuple(SpeciesEntry.from_dict(s) for s in data["species"]),
            version=str(data.get("version", INDEX_VERSION)),
            timestamp=str(data.get("timestamp") or utc_now_iso()),
        )

    @classmethod
    def from_index(cls, index: AliasIndex) -> "AliasMaster":
        """Group a flat index per species, preserving record order."""
        grouped: Dict[str, List[AliasRecord]] = {}
        for record in index.records:
            grouped.setdefault(record.species_id, []).append(record)

        entries = []
        for species_id in sorted(grouped, key=species_sort_key):
            records = grouped[species_id]
            first = records[0]
            tile_name = next((r.tile_name for r in records if r.tile_name), None)
            entries.append(SpeciesEntry(
                species_id=species_id,
                canonical=first.canonical,
                tile_name=tile_name,
                aliases=tuple(AliasData.from_record(r) for r in records),
            ))
        return cls(species=tuple(entries), version=index.version, timestamp=utc_now_iso())

    def to_alias_index(self, factory: AliasRecordFactory) -> AliasIndex:
        """
        Flatten into an ``AliasIndex``.

        Norm, phonetic codes and signature are recomputed from each alias
        text. Aliases whose norm is already bound (same species duplicate or
        other species conflict) are skipped with a warning.
        """
        records: List[AliasRecord] = []
        owner: Dict[str, str] = {}
        for entry in self.species:
            for data in entry.aliases:
                record = factory.create(
                    alias_id=data.alias_id,
                    species_id=entry.species_id,
                    canonical=entry.canonical,
                    alias_text=data.text,
                    tile_name=entry.tile_name,
                    weight=data.weight,
                    source=data.source,
                    timestamp=data.timestamp,
                )
                if record is None:
                    continue
                bound_to = owner.get(record.norm)
                if bound_to is not None:
                    if bound_to != entry.species_id:
                        logger.warning(
                            f"Alias '{record.norm}' of species {entry.species_id} conflicts "
                            f"with species {bound_to}, skipped"
                        )
                    continue
                owner[record.norm] = entry.species_id
                records.append(record)
        return AliasIndex(records=tuple(records), version=self.version, timestamp=self.timestamp)

    def merge_pending(
        self,
        pending: Iterable[PendingAlias],
        factory: AliasRecordFactory,
    ) -> Tuple["AliasMaster", int]:
        """
        Merge field-trained aliases into a new master.

        Entries whose norm already exists for the species are skipped, and so
        are norms owned by another species. A pending alias keeps the alias id
        it was given at hot-patch time unless that id is already taken.

        Returns:
            Tuple of (merged master, number of aliases added)
        """
        entries: Dict[str, SpeciesEntry] = {s.species_id: s for s in self.species}
        owner: Dict[str, str] = {}
        for entry in self.species:
            for data in entry.aliases:
                owner.setdefault(data.norm, entry.species_id)

        added = 0
        for item in pending:
            norm = item.norm
            if not norm:
                continue
            bound_to = owner.get(norm)
            if bound_to is not None:
                if bound_to != item.species_id:
                    logger.warning(f"Pending alias '{norm}' conflicts with species {bound_to}, dropped")
                continue

            entry = entries.get(item.species_id) or SpeciesEntry(
                species_id=item.species_id,
                canonical=(item.canonical or item.species_id).strip().lower(),
                tile_name=item.tile_name,
            )
            taken = {a.alias_id for a in entry.aliases}
            alias_id = item.alias_id
            if not alias_id or alias_id in taken:
                alias_id = make_alias_id(item.species_id, entry.next_sequence())

            record = factory.create(
                alias_id=alias_id,
                species_id=item.species_id,
                canonical=entry.canonical,
                alias_text=item.alias_text,
                tile_name=entry.tile_name,
                source=SOURCE_USER_TRAINED,
                timestamp=item.timestamp,
            )
            if record is None:
                continue

            entries[item.species_id] = replace(entry, aliases=entry.aliases + (AliasData.from_record(record),))
            owner[norm] = item.species_id
            added += 1

        merged = AliasMaster(
            species=tuple(sorted(entries.values(), key=lambda s: species_sort_key(s.species_id))),
            version=self.version,
            timestamp=utc_now_iso(),
        )
        return merged, added

    def merge_user_aliases_from(self, previous: "AliasMaster", factory: AliasRecordFactory) -> "AliasMaster":
        """Carry field-trained aliases of an older master into this (regenerated) one."""
        carried = [
            PendingAlias(
                species_id=entry.species_id,
                alias_text=data.text,
                canonical=entry.canonical,
                tile_name=entry.tile_name,
                alias_id=data.alias_id,
                timestamp=data.timestamp or utc_now_iso(),
            )
            for entry in previous.species
            for data in entry.aliases
            if data.source.startswith("user")
        ]
        if not carried:
            return self
        merged, added = self.merge_pending(carried, factory)
        logger.info(f"Carried {added} user-trained aliases into regenerated master")
        return merged
