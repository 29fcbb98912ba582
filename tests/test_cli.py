"""Tests for the command-line interface and application startup."""
import pytest
from loguru import logger

from app import startup
from app.cli import build_parser, run_command
from app.engine import AliasEngine
from app.services import CleanupService, ExceptionHandlerService, SignalHandlerService


@pytest.fixture
def engine(app_config, scheduler):
    engine = AliasEngine(app_config, scheduler=scheduler)
    yield engine
    engine.close()


def _run(engine, *argv):
    return run_command(engine, build_parser().parse_args(list(argv)))


class TestParser:

    def test_query_tokens(self):
        args = build_parser().parse_args(["query", "vink", "buizerd"])
        assert args.tokens == ["vink", "buizerd"]

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestRunCommand:

    def test_commands_need_an_index(self, engine, capsys):
        assert _run(engine, "stats") == 1

    def test_seed_from_catalog_then_query(self, engine, write_catalog, capsys):
        # Arrange
        write_catalog()

        # Act
        seeded = _run(engine, "seed")
        queried = _run(engine, "query", "fink", "qqqq")

        # Assert
        out = capsys.readouterr().out
        assert (seeded, queried) == (0, 0)
        assert "species=31" in out
        assert "qqqq: no match" in out

    def test_seed_from_csv(self, engine, tmp_path, capsys):
        csv = tmp_path / "seeds.csv"
        csv.write_text("20;Aalscholver;Aalsch;schollie\n31;Vink;;\n", encoding="utf-8")

        assert _run(engine, "seed", "--csv", str(csv)) == 0
        assert "Seeded 4 aliases" in capsys.readouterr().out

    def test_missing_csv(self, engine, tmp_path):
        assert _run(engine, "seed", "--csv", str(tmp_path / "absent.csv")) == 1

    def test_add_persists_immediately(self, engine, write_catalog, capsys):
        # Arrange
        write_catalog()

        # Act
        code = _run(engine, "add", "31", "finkie")

        # Assert
        assert code == 0
        master = engine.store.read_master().value
        assert "finkie" in {a.norm for s in master.species for a in s.aliases}

    def test_add_duplicate_fails(self, engine, write_catalog):
        write_catalog()
        assert _run(engine, "add", "31", "vink") == 1

    def test_export_and_stats(self, engine, write_catalog, backend, capsys):
        write_catalog()

        assert _run(engine, "export") == 0
        assert _run(engine, "stats") == 0
        assert backend.exists("exports/manifest.json")
        assert '"species": 5' in capsys.readouterr().out


class TestRunApplication:

    @pytest.fixture(autouse=True)
    def no_process_hooks(self, monkeypatch):
        monkeypatch.setattr(SignalHandlerService, "install", lambda self: None)
        monkeypatch.setattr(ExceptionHandlerService, "install", lambda self: None)
        monkeypatch.setattr(CleanupService, "install_atexit", lambda self: None)
        yield
        logger.remove()

    def test_seed_and_query(self, tmp_path, write_catalog, capsys):
        # Arrange
        write_catalog()
        root = ["--root", str(tmp_path)]

        # Act
        seeded = startup.run_application(root + ["seed"])
        queried = startup.run_application(root + ["--top-n", "1", "query", "Aalscholver"])

        # Assert
        assert (seeded, queried) == (0, 0)
        assert "species=20" in capsys.readouterr().out

    def test_invalid_configuration(self, tmp_path):
        assert startup.run_application(["--root", str(tmp_path), "--flush-size", "0", "stats"]) == 2
