"""
Alias index data model.

An ``AliasRecord`` binds one contributed alias to one species together with
the derived lookup fields (normalized key, phonetic codes and optional
signature). Derived fields are only ever computed together, by
``AliasRecordFactory``, so they can never drift apart from ``alias``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from matching.phonetic_encoder import PhoneticCodes, PhoneticEncoder
from matching.signatures import AliasSignature, SignatureBuilder
from matching.text_normalizer import normalize

INDEX_VERSION = "2.1"

SOURCE_SEED_CANONICAL = "seed_canonical"
SOURCE_SEED_TILENAME = "seed_tilename"
SOURCE_SEED_IMPORT = "seed_import"
SOURCE_USER_TRAINED = "user_field_training"

SOURCES = (
    SOURCE_SEED_CANONICAL,
    SOURCE_SEED_TILENAME,
    SOURCE_SEED_IMPORT,
    SOURCE_USER_TRAINED,
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def make_alias_id(species_id: str, sequence: int) -> str:
    return f"{species_id}_{sequence}"


def alias_sequence(alias_id: str) -> int:
    """Trailing sequence number of an alias id, 0 when it has none."""
    _, _, tail = alias_id.rpartition("_")
    return int(tail) if tail.isdigit() else 0


def species_sort_key(species_id: str) -> Tuple[int, int, str]:
    """Numeric species ids first (in numeric order), then the rest alphabetically."""
    if species_id.isdigit():
        return (0, int(species_id), species_id)
    return (1, 0, species_id)


@dataclass(frozen=True)
class AliasRecord:
    """One alias bound to one species."""
    alias_id: str
    species_id: str
    canonical: str
    alias: str
    norm: str
    tile_name: Optional[str] = None
    phonetic: PhoneticCodes = field(default_factory=PhoneticCodes)
    signature: Optional[AliasSignature] = None
    weight: float = 1.0
    source: str = SOURCE_SEED_IMPORT
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alias_id": self.alias_id,
            "species_id": self.species_id,
            "canonical": self.canonical,
            "tile_name": self.tile_name,
            "alias": self.alias,
            "norm": self.norm,
            "cologne": self.phonetic.cologne,
            "phonemes": self.phonetic.phonemes,
            "signature": self.signature.to_dict() if self.signature else None,
            "weight": self.weight,
            "source": self.source,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AliasRecord":
        """Restore a record exactly as serialized by ``to_dict``."""
        signature = data.get("signature")
        return cls(
            alias_id=str(data["alias_id"]),
            species_id=str(data["species_id"]),
            canonical=data["canonical"],
            tile_name=data.get("tile_name"),
            alias=data["alias"],
            norm=data["norm"],
            phonetic=PhoneticCodes(cologne=data.get("cologne"), phonemes=data.get("phonemes")),
            signature=AliasSignature.from_dict(signature) if signature else None,
            weight=float(data.get("weight", 1.0)),
            source=data.get("source", SOURCE_SEED_IMPORT),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class AliasIndex:
    """Complete flat collection of alias records."""
    records: Tuple[AliasRecord, ...] = ()
    version: str = INDEX_VERSION
    timestamp: str = field(default_factory=utc_now_iso)

    def __len__(self) -> int:
        return len(self.records)

    def species_ids(self) -> List[str]:
        return sorted({r.species_id for r in self.records}, key=species_sort_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "records": [r.to_dict() for r in self.records],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AliasIndex":
        return cls(
            records=tuple(AliasRecord.from_dict(r) for r in data.get("records", [])),
            version=str(data.get("version", INDEX_VERSION)),
            timestamp=str(data.get("timestamp", "")),
        )


@dataclass(frozen=True)
class PendingAlias:
    """An alias taught in the field, waiting for durable persistence."""
    species_id: str
    alias_text: str
    canonical: str
    tile_name: Optional[str] = None
    alias_id: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def norm(self) -> str:
        return normalize(self.alias_text)

    @property
    def key(self) -> str:
        return f"{self.species_id}||{self.norm}"


@dataclass(frozen=True)
class SeedSpecies:
    """Bulk seed vocabulary for one species."""
    species_id: str
    canonical: str
    tile_name: Optional[str] = None
    aliases: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MatchCandidate:
    """A ranked query result."""
    record: AliasRecord
    score: float
    strategy: str

    @property
    def species_id(self) -> str:
        return self.record.species_id


class AliasRecordFactory:
    """
    The only place alias records are created.

    Normalized key, phonetic codes and signature are recomputed together from
    the alias text on every call. Passing ``signature_builder=None`` yields
    the lean configuration without MinHash/SimHash payloads.
    """

    def __init__(
        self,
        encoder: Optional[PhoneticEncoder] = None,
        signature_builder: Optional[SignatureBuilder] = None,
    ) -> None:
        self.encoder = encoder or PhoneticEncoder()
        self.signature_builder = signature_builder

    def create(
        self,
        alias_id: str,
        species_id: str,
        canonical: str,
        alias_text: str,
        tile_name: Optional[str] = None,
        weight: float = 1.0,
        source: str = SOURCE_SEED_IMPORT,
        timestamp: Optional[str] = None,
    ) -> Optional[AliasRecord]:
        """Build a record, or ``None`` when the alias normalizes to nothing."""
        norm = normalize(alias_text)
        if not norm:
            return None

        signature = self.signature_builder.build(norm) if self.signature_builder else None
        return AliasRecord(
            alias_id=alias_id,
            species_id=species_id,
            canonical=canonical.strip().lower(),
            tile_name=tile_name.strip() if tile_name and tile_name.strip() else None,
            alias=alias_text.strip().lower(),
            norm=norm,
            phonetic=self.encoder.encode(norm),
            signature=signature,
            weight=weight,
            source=source,
            timestamp=timestamp,
        )
