"""External species catalog used to bootstrap-seed the alias master."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Set

from loguru import logger

from core.exceptions import CorruptDataError, NoDataError
from index.models import SeedSpecies, species_sort_key
from storage.backend import StorageBackend

_ID_KEYS = ("soortid", "soort_id", "soortId", "species_id", "id")
_NAME_KEYS = ("soortnaam", "canonical", "name")
_TILE_KEYS = ("soortkey", "tile_name", "key")
_LIST_KEYS = ("json", "data", "items", "species")


def _first(obj: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = obj.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _find_object_list(root: Any) -> Optional[List[Dict[str, Any]]]:
    """Locate the list of species objects: top-level, under a known key, or the first nested list."""
    if isinstance(root, list):
        return [el for el in root if isinstance(el, dict)]
    if not isinstance(root, dict):
        return None
    for key in _LIST_KEYS:
        if isinstance(root.get(key), list):
            return [el for el in root[key] if isinstance(el, dict)]
    for value in root.values():
        found = _find_object_list(value)
        if found:
            return found
    return None


class SpeciesCatalog:
    """
    Reads ``species.json`` (id, name, tile label per species) and the optional
    ``site_species.json`` filter from the storage backend.
    """

    def __init__(self, backend: StorageBackend, catalog_path: str, site_species_path: str) -> None:
        self.backend = backend
        self.catalog_path = catalog_path
        self.site_species_path = site_species_path

    def load_species(self) -> Dict[str, SeedSpecies]:
        """
        Raises:
            NoDataError: No catalog present
            CorruptDataError: The catalog has no usable species list
        """
        root = self.backend.read_json(self.catalog_path)
        items = _find_object_list(root)
        if items is None:
            raise CorruptDataError(f"{self.catalog_path} has no species list")

        species: Dict[str, SeedSpecies] = {}
        for item in items:
            species_id = _first(item, _ID_KEYS)
            if not species_id:
                continue
            species_id = species_id.lower()
            canonical = _first(item, _NAME_KEYS) or species_id
            tile_name = _first(item, _TILE_KEYS)
            species[species_id] = SeedSpecies(species_id=species_id, canonical=canonical, tile_name=tile_name)
        return species

    def load_site_filter(self) -> Optional[Set[str]]:
        """Species ids present on site, or ``None`` when no filter file exists."""
        try:
            root = self.backend.read_json(self.site_species_path)
        except NoDataError:
            return None
        items = _find_object_list(root) or []
        ids = {sid.lower() for sid in (_first(item, _ID_KEYS) for item in items) if sid}
        if not ids:
            logger.warning(f"{self.site_species_path} contains no species ids, ignoring filter")
            return None
        return ids

    def seed_species(self) -> List[SeedSpecies]:
        """Catalog species restricted to the site filter, sorted by species id."""
        species = self.load_species()
        site_filter = self.load_site_filter()

        if site_filter is None:
            selected = list(species)
        else:
            selected = list(site_filter)
            missing = [sid for sid in site_filter if sid not in species]
            if missing:
                logger.debug(f"{len(missing)} site species missing from catalog, seeding by id")

        seeds = []
        for species_id in sorted(selected, key=species_sort_key):
            seeds.append(species.get(species_id) or SeedSpecies(species_id=species_id, canonical=species_id))
        logger.info(f"Species catalog: {len(seeds)} species selected for seeding")
        return seeds
