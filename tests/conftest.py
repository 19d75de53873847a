import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """
    Reload config with a temporary database path to keep tests isolated.

    Env overrides set by the test are undone and config is reloaded again on
    teardown so later tests see the defaults.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("TASTE_DB", str(db_path))
    monkeypatch.setenv("TASTE_SCORER_WEIGHTS", str(tmp_path / "scorer_weights.json"))
    import taste_predict.config as config

    importlib.reload(config)
    yield config

    monkeypatch.undo()
    importlib.reload(config)


@pytest.fixture
def fresh_db(monkeypatch, tmp_path):
    """
    Reload config/database modules with a temp DB and cleanly close the pool after use.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("TASTE_DB", str(db_path))
    monkeypatch.setenv("TASTE_SCORER_WEIGHTS", str(tmp_path / "scorer_weights.json"))

    import taste_predict.config as config
    import taste_predict.database as database

    importlib.reload(config)
    importlib.reload(database)
    database.init_db()

    yield database
    database.close_pool()


@pytest.fixture
def fresh_cli(fresh_db):
    """
    Reload the CLI on top of ``fresh_db`` so its database imports point at the temp DB.
    """
    import taste_predict.cli as cli

    importlib.reload(cli)
    yield cli, fresh_db
