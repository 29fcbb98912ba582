"""Batch pipeline turning seed vocabulary into an ``AliasIndex``."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from loguru import logger

from core.error_handler import log_execution_time
from index.models import (
    SOURCE_SEED_CANONICAL,
    SOURCE_SEED_IMPORT,
    SOURCE_SEED_TILENAME,
    AliasIndex,
    AliasRecord,
    AliasRecordFactory,
    SeedSpecies,
    make_alias_id,
)


def parse_seed_csv(text: str) -> List[SeedSpecies]:
    """
    Parse seed vocabulary in ``speciesId;canonical;tileName;alias1;alias2;...`` form.

    Blank lines and lines with fewer than two fields are skipped; an empty
    tile name field means the species has no tile label.
    """
    seeds: List[SeedSpecies] = []
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip().lstrip("\ufeff")
        if not line:
            continue
        parts = [p.strip() for p in line.split(";")]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            logger.debug(f"Skipping seed line {line_no}: {raw!r}")
            continue
        tile_name = parts[2] if len(parts) > 2 and parts[2] else None
        aliases = tuple(p for p in parts[3:] if p)
        seeds.append(SeedSpecies(
            species_id=parts[0].lower(),
            canonical=parts[1],
            tile_name=tile_name,
            aliases=aliases,
        ))
    return seeds


class IndexBuilder:
    """
    Builds a complete index from bulk seed vocabulary.

    Per species: one record for the canonical name, one for the tile label
    when present and different (case-insensitively) from the canonical name,
    and one per non-blank extra alias. Alias ids are sequential per species.
    Pure: no I/O.
    """

    def __init__(self, factory: Optional[AliasRecordFactory] = None) -> None:
        self.factory = factory or AliasRecordFactory()

    @log_execution_time(level="DEBUG")
    def build(self, seeds: Iterable[SeedSpecies]) -> AliasIndex:
        records: List[AliasRecord] = []
        owner: Dict[str, str] = {}
        sequences: Dict[str, int] = {}

        for seed in seeds:
            canonical = seed.canonical.strip().lower()
            candidates = [(seed.canonical, SOURCE_SEED_CANONICAL)]
            if seed.tile_name and seed.tile_name.strip().lower() != canonical:
                candidates.append((seed.tile_name, SOURCE_SEED_TILENAME))
            candidates.extend((alias, SOURCE_SEED_IMPORT) for alias in seed.aliases if alias and alias.strip())

            sequence = sequences.get(seed.species_id, 0)
            for text, source in candidates:
                record = self.factory.create(
                    alias_id=make_alias_id(seed.species_id, sequence + 1),
                    species_id=seed.species_id,
                    canonical=canonical,
                    alias_text=text,
                    tile_name=seed.tile_name,
                    source=source,
                )
                if record is None:
                    continue

                bound_to = owner.get(record.norm)
                if bound_to == seed.species_id:
                    continue
                if bound_to is not None:
                    logger.warning(
                        f"Seed alias '{record.norm}' for species {seed.species_id} "
                        f"already belongs to species {bound_to}, skipped"
                    )
                    continue

                owner[record.norm] = seed.species_id
                records.append(record)
                sequence += 1
            sequences[seed.species_id] = sequence

        logger.info(f"Built alias index: {len(records)} records for {len({r.species_id for r in records})} species")
        return AliasIndex(records=tuple(records))
