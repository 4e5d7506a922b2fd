"""Tests for stakehall.cli: operator commands against a local games.json."""

import json
import time

import pytest

from lobby.store import MatchRecord, MatchStore
from stakehall.cli import main


@pytest.fixture
def data_dir(tmp_path):
    store = MatchStore(tmp_path / "games.json")
    store.save([
        MatchRecord(id="m1", players=["A"], max_players=2, status="waiting", title="Open",
                    created_at=int(time.time() * 1000)),
        MatchRecord(id="m2", players=["A", "B"], max_players=2, status="active", title="Live"),
        MatchRecord(id="m3", players=[], max_players=2, status="waiting", created_at=1),
    ])
    return tmp_path


def _run(data_dir, *argv) -> int:
    missing = data_dir / "no-config.toml"
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(missing), "--data-dir", str(data_dir), *argv])
    return exc.value.code


class TestList:
    def test_list_all(self, data_dir, capsys):
        assert _run(data_dir, "list") == 0
        out = capsys.readouterr().out
        assert "m1" in out and "m2" in out and "m3" in out

    def test_list_active(self, data_dir, capsys):
        assert _run(data_dir, "list", "--active") == 0
        out = capsys.readouterr().out
        assert "m2" in out
        assert "m1" not in out

    def test_list_empty(self, tmp_path, capsys):
        assert _run(tmp_path, "list") == 0
        assert "No matches." in capsys.readouterr().out


class TestShow:
    def test_show(self, data_dir, capsys):
        assert _run(data_dir, "show", "m2") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["players"] == ["A", "B"]

    def test_show_missing(self, data_dir):
        assert _run(data_dir, "show", "nope") == 1


class TestSetStatus:
    def test_set_status(self, data_dir):
        assert _run(data_dir, "set-status", "m2", "completed") == 0
        [_, m2, _] = MatchStore(data_dir / "games.json").load()
        assert m2.status == "completed"

    def test_set_status_missing(self, data_dir):
        assert _run(data_dir, "set-status", "nope", "completed") == 1


class TestMaintenance:
    def test_cleanup(self, data_dir, capsys):
        assert _run(data_dir, "cleanup", "--hours", "1") == 0
        assert "m3" in capsys.readouterr().out
        ids = [r.id for r in MatchStore(data_dir / "games.json").load()]
        assert ids == ["m1", "m2"]

    def test_db_status(self, data_dir, capsys):
        assert _run(data_dir, "db-status") == 0
        out = capsys.readouterr().out
        assert "games_count" in out
        assert "3" in out


class TestCorruptData:
    @pytest.fixture
    def corrupt_dir(self, tmp_path):
        (tmp_path / "games.json").write_text("{not json")
        return tmp_path

    @pytest.mark.parametrize("argv", [
        ["list"],
        ["list", "--available"],
        ["show", "m1"],
        ["set-status", "m1", "completed"],
        ["cleanup", "--hours", "1"],
        ["db-status"],
    ])
    def test_store_error_exits_nonzero(self, corrupt_dir, argv, caplog):
        assert _run(corrupt_dir, *argv) == 1
        assert "Malformed JSON" in caplog.text
        assert (corrupt_dir / "games.json").read_text() == "{not json"
