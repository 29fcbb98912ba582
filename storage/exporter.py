"""Export of the alias index as plain JSON tables with a checksum manifest."""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Dict, List

import orjson
from loguru import logger

from index.models import AliasIndex, utc_now_iso
from storage.backend import StorageBackend

ALIAS_INDEX_FILE = "alias_index.json"
PHONETIC_MAP_FILE = "phonetic_map.json"
MANIFEST_FILE = "manifest.json"


@dataclass(frozen=True)
class ExportReport:
    directory: str
    files: Dict[str, Dict[str, object]] = field(default_factory=dict)
    alias_count: int = 0
    species_count: int = 0


def build_phonetic_map(index: AliasIndex) -> Dict[str, List[str]]:
    """``cologne:<code>`` / ``phonemes:<compact>`` keys mapped to sorted alias ids."""
    mapping: Dict[str, List[str]] = {}
    for record in index.records:
        for key in record.phonetic.lookup_keys():
            mapping.setdefault(key, []).append(record.alias_id)
    return {key: sorted(ids) for key, ids in sorted(mapping.items())}


class Exporter:
    """Writes ``alias_index.json``, ``phonetic_map.json`` and ``manifest.json``."""

    def __init__(self, backend: StorageBackend, exports_dir: str = "exports") -> None:
        self.backend = backend
        self.exports_dir = exports_dir.rstrip("/")

    def export(self, index: AliasIndex) -> ExportReport:
        """
        Raises:
            StorageUnavailableError: A file could not be written
        """
        aliases = [
            {
                "alias_id": r.alias_id,
                "species_id": r.species_id,
                "canonical": r.canonical,
                "tile_name": r.tile_name,
                "alias": r.alias,
                "norm": r.norm,
                "cologne": r.phonetic.cologne,
                "phonemes": r.phonetic.phonemes,
                "simhash64": f"0x{r.signature.simhash64:016x}" if r.signature else None,
                "weight": r.weight,
                "source": r.source,
            }
            for r in index.records
        ]
        payloads = {
            ALIAS_INDEX_FILE: orjson.dumps(
                {"version": index.version, "timestamp": index.timestamp, "aliases": aliases}
            ),
            PHONETIC_MAP_FILE: orjson.dumps(build_phonetic_map(index), option=orjson.OPT_INDENT_2),
        }

        files: Dict[str, Dict[str, object]] = {}
        for name, data in payloads.items():
            self.backend.write_bytes(f"{self.exports_dir}/{name}", data)
            files[name] = {"sha256": hashlib.sha256(data).hexdigest(), "size": len(data)}

        species_count = len({r.species_id for r in index.records})
        manifest = {
            "version": index.version,
            "generated_at": utc_now_iso(),
            "alias_count": len(index.records),
            "species_count": species_count,
            "files": files,
        }
        self.backend.write_json(f"{self.exports_dir}/{MANIFEST_FILE}", manifest)

        logger.info(f"Exported {len(aliases)} aliases to {self.exports_dir}/")
        return ExportReport(
            directory=self.exports_dir,
            files=files,
            alias_count=len(index.records),
            species_count=species_count,
        )
