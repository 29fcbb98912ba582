"""Command-line interface of the alias engine."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

import orjson
from loguru import logger

from app.engine import AliasEngine
from core.result import Failure
from index.builder import parse_seed_csv


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alias-engine",
        description="Resolve noisy field tokens to species and manage the alias index.",
        epilog="Global options: --root, --flush-size, --flush-seconds, --no-signatures, "
               "--cache-codec, --top-n, --fuzzy, --debug, --log-level, --log-file",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    seed = commands.add_parser("seed", help="Regenerate the alias master from seed vocabulary")
    seed.add_argument("--csv", type=Path, help="Seed file: speciesId;canonical;tileName;alias1;...")

    query = commands.add_parser("query", help="Rank species candidates for tokens")
    query.add_argument("tokens", nargs="+", help="Tokens to resolve")

    add = commands.add_parser("add", help="Teach an alias for a species")
    add.add_argument("species_id")
    add.add_argument("alias")
    add.add_argument("--canonical", help="Canonical name when the species is new")
    add.add_argument("--tile", help="Tile label when the species is new")

    commands.add_parser("export", help="Write alias and phonetic tables to the exports directory")
    commands.add_parser("stats", help="Print index statistics")
    return parser


def run_command(engine: AliasEngine, args: argparse.Namespace) -> int:
    """Execute one parsed command. Returns the process exit code."""
    if args.command == "seed":
        return _seed(engine, args.csv)

    if not engine.initialize():
        logger.error("No alias index available; run 'seed' once a species catalog is present")
        return 1

    if args.command == "query":
        return _query(engine, args.tokens)
    if args.command == "add":
        return _add(engine, args.species_id, args.alias, args.canonical, args.tile)
    if args.command == "export":
        return _export(engine)
    if args.command == "stats":
        print(orjson.dumps(engine.stats(), option=orjson.OPT_INDENT_2).decode())
        return 0
    raise ValueError(f"Unknown command: {args.command}")


def _seed(engine: AliasEngine, csv_path: Optional[Path]) -> int:
    seeds = None
    if csv_path is not None:
        try:
            seeds = parse_seed_csv(csv_path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.error(f"Cannot read seed file {csv_path}: {e}")
            return 1
        logger.info(f"Parsed {len(seeds)} species from {csv_path}")

    result = engine.seed(seeds)
    if isinstance(result, Failure):
        logger.error(f"Seeding failed: {result.error}")
        return 1
    print(f"Seeded {len(result.value)} aliases")
    return 0


def _query(engine: AliasEngine, tokens: List[str]) -> int:
    for token in tokens:
        candidates = engine.query(token)
        if not candidates:
            print(f"{token}: no match")
            continue
        for rank, candidate in enumerate(candidates, start=1):
            record = candidate.record
            print(
                f"{token}: #{rank} species={record.species_id} canonical={record.canonical!r} "
                f"alias={record.alias!r} score={candidate.score:.3f} ({candidate.strategy})"
            )
    return 0


def _add(engine: AliasEngine, species_id: str, alias: str, canonical: Optional[str], tile: Optional[str]) -> int:
    if not engine.add_alias(species_id, alias, canonical=canonical, tile_name=tile):
        print(f"Alias {alias!r} not added (blank, duplicate or owned by another species)")
        return 1
    flushed = engine.force_flush()
    if isinstance(flushed, Failure):
        logger.error(f"Alias kept in memory only: {flushed.error}")
        return 1
    print(f"Added alias {alias!r} for species {species_id}")
    return 0


def _export(engine: AliasEngine) -> int:
    result = engine.export()
    if isinstance(result, Failure):
        logger.error(f"Export failed: {result.error}")
        return 1
    report = result.value
    print(f"Exported {report.alias_count} aliases for {report.species_count} species to {report.directory}/")
    return 0
