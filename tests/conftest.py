"""Shared fixtures for alias engine tests."""
import pytest

from config.config import AppConfig, StorageConfig
from index.models import AliasRecordFactory, SeedSpecies
from matching.phonetic_encoder import PhoneticEncoder
from matching.signatures import SignatureBuilder
from services.scheduler import ManualScheduler
from storage.backend import LocalStorageBackend
from storage.persistent_store import PersistentStore


SEEDS = [
    SeedSpecies(species_id="20", canonical="Aalscholver", tile_name="Aalsch", aliases=("schollie",)),
    SeedSpecies(species_id="31", canonical="Vink", tile_name="vink"),
    SeedSpecies(species_id="40", canonical="Blauwe Kiekendief", tile_name="BlKiek", aliases=("blauwe kiek",)),
    SeedSpecies(species_id="55", canonical="Buizerd"),
]

CATALOG = {
    "json": [
        {"soortid": "20", "soortnaam": "Aalscholver", "soortkey": "Aalsch"},
        {"soortid": "31", "soortnaam": "Vink", "soortkey": "vink"},
        {"soortid": "40", "soortnaam": "Blauwe Kiekendief", "soortkey": "BlKiek"},
        {"soortid": "55", "soortnaam": "Buizerd", "soortkey": ""},
        {"soortid": "99", "soortnaam": "Roerdomp", "soortkey": "Roerd"},
    ]
}


@pytest.fixture
def seeds():
    return list(SEEDS)


@pytest.fixture
def backend(tmp_path):
    return LocalStorageBackend(tmp_path)


@pytest.fixture
def factory():
    return AliasRecordFactory(PhoneticEncoder(), SignatureBuilder())


@pytest.fixture
def store(backend, factory):
    return PersistentStore(backend, factory, StorageConfig(root=str(backend.root)))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(storage=StorageConfig(root=str(tmp_path)))


@pytest.fixture
def write_catalog(backend):
    """Write the species catalog (optionally with a site filter) into the storage root."""
    def _write(catalog=None, site_ids=None):
        backend.write_json("serverdata/species.json", catalog or CATALOG)
        if site_ids is not None:
            backend.write_json("serverdata/site_species.json", [{"soortid": sid} for sid in site_ids])
    return _write
