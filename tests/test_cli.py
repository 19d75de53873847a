import json
import sys
from types import SimpleNamespace

import pytest

DATASET = {
    "items": [
        {"id": "m1", "media_type": "movie", "title": "Arrival", "genre_ids": [878, 18],
         "tags": ["director:Denis Villeneuve"], "year": 2016},
        {"id": "m2", "media_type": "movie", "title": "Dune", "genre_ids": [878, 12],
         "tags": ["director:Denis Villeneuve"], "year": 2021, "imdb_rating": "8.0"},
        {"id": "m3", "media_type": "movie", "title": "Paddington", "genre_ids": [10751, 35]},
        {"id": "s1", "media_type": "show", "title": "Severance", "genre_ids": [18]},
    ],
    "ratings": [
        {"user_id": "alice", "item_id": "m1", "value": 90},
        {"user_id": "guest", "item_id": "m3", "value": 40},
    ],
    "watch_logs": [
        {"user_id": "alice", "item_id": "s1", "watched_on": "2026-02-01"},
    ],
}


@pytest.fixture
def loaded_cli(fresh_cli, tmp_path):
    cli, db = fresh_cli
    path = tmp_path / "dataset.json"
    path.write_text(json.dumps(DATASET))
    cli.cmd_import(SimpleNamespace(file=str(path)))
    return cli, db


def _args(**kwargs):
    kwargs.setdefault("as_of", "2026-06-01")
    kwargs.setdefault("no_guest", False)
    return SimpleNamespace(**kwargs)


def test_validate_user_id():
    from taste_predict import cli

    assert cli._validate_user_id("  alice ") == "alice"
    with pytest.raises(ValueError):
        cli._validate_user_id("   ")


def test_main_dispatches_to_subcommand(monkeypatch):
    from taste_predict import cli

    called = {}

    def fake_stats(args):
        called["command"] = args.command

    monkeypatch.setattr(cli, "cmd_stats", fake_stats)
    monkeypatch.setattr(sys, "argv", ["prog", "stats"])

    cli.main()

    assert called["command"] == "stats"


def test_cli_parses_triage_args(monkeypatch):
    from taste_predict import cli

    captured = {}

    def fake_triage(args):
        captured.update(vars(args))

    monkeypatch.setattr(cli, "cmd_triage", fake_triage)
    monkeypatch.setattr(
        sys,
        "argv",
        ["prog", "triage", "alice", "--media-type", "tv", "--limit", "5", "--no-guest", "--as-of", "2026-01-01"],
    )

    cli.main()

    assert captured["user"] == "alice"
    assert captured["media_type"] == "tv"
    assert captured["limit"] == 5
    assert captured["no_guest"] is True
    assert captured["as_of"] == "2026-01-01"


def test_main_exits_non_zero_on_bad_input(monkeypatch, fresh_cli):
    cli, _ = fresh_cli
    monkeypatch.setattr(sys, "argv", ["prog", "triage", "alice", "--media-type", "vinyl"])

    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 1


def test_import_loads_all_sections(loaded_cli, caplog):
    cli, db = loaded_cli

    assert db.table_counts() == {"items": 4, "ratings": 2, "watch_logs": 1}
    assert db.count_by_media_type() == {"movie": 3, "tv": 1}

    with caplog.at_level("INFO"):
        cli.cmd_stats(SimpleNamespace())
    assert "Items: 4" in caplog.text
    assert "tv: 1" in caplog.text


def test_predict_reports_score_and_reasons(loaded_cli, caplog):
    cli, _ = loaded_cli

    with caplog.at_level("INFO"):
        cli.cmd_predict(_args(user="alice", item_id="m2"))

    assert "Dune (movie) for alice" in caplog.text
    assert "Score:" in caplog.text
    assert "Director: Denis Villeneuve" in caplog.text


def test_predict_unknown_item_logs_error(loaded_cli, caplog):
    cli, _ = loaded_cli

    with caplog.at_level("INFO"):
        cli.cmd_predict(_args(user="alice", item_id="nope"))

    assert "Item 'nope' not found" in caplog.text


def test_triage_skips_items_already_in_history(loaded_cli, caplog):
    cli, _ = loaded_cli

    with caplog.at_level("INFO"):
        cli.cmd_triage(_args(user="alice", media_type=None, limit=10))

    assert "Dune" in caplog.text
    assert "Arrival" not in caplog.text
    assert "Paddington" not in caplog.text  # rated as guest
    assert "Severance" not in caplog.text  # watch logged


def test_compare_uses_friend_prediction(loaded_cli, caplog):
    cli, _ = loaded_cli

    with caplog.at_level("INFO"):
        cli.cmd_compare(SimpleNamespace(user="alice", friend="bob", item_id="m2", as_of="2026-06-01"))

    assert "Dune: alice vs bob" in caplog.text
    assert "Based on critic consensus" in caplog.text
    assert "gap" in caplog.text


def test_profile_lists_top_attributes(loaded_cli, caplog):
    cli, _ = loaded_cli

    with caplog.at_level("INFO"):
        cli.cmd_profile(_args(user="alice", media_type="movie", limit=5, min_count=1.0))

    assert "Profile for alice (movies)" in caplog.text
    assert "Loves:" in caplog.text
    assert "director:denis_villeneuve: 9.00" in caplog.text


def test_migrate_guest_moves_records(loaded_cli, caplog):
    cli, db = loaded_cli

    with caplog.at_level("INFO"):
        cli.cmd_migrate_guest(SimpleNamespace(user="alice"))

    assert "Moved 1 records from guest to alice" in caplog.text
    history = db.SqliteHistory().load_history("alice", include_guest=False)
    assert sorted(r.item_id for r in history.ratings) == ["m1", "m3"]
