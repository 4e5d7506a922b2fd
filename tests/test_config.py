"""Tests for stakehall.config: local config file management."""

import textwrap
from pathlib import Path

import pytest

from stakehall.config import (
    LobbyConfig,
    StakehallConfig,
    load_config,
)


@pytest.fixture
def config_dir(tmp_path):
    """Temporary directory for config files."""
    return tmp_path


def _write_config(config_dir: Path, content: str) -> Path:
    """Write a config.toml and return the path."""
    config_path = config_dir / "config.toml"
    config_path.write_text(textwrap.dedent(content))
    return config_path


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, config_dir):
        cfg = load_config(config_dir / "nonexistent.toml")
        assert isinstance(cfg, StakehallConfig)
        assert cfg.lobby == LobbyConfig()
        assert cfg.lobby.status_policy == "permissive"
        assert cfg.lobby.allow_negative_pool is True
        assert cfg.server.port == 8000

    def test_full_config(self, config_dir):
        path = _write_config(config_dir, """\
            [lobby]
            data_dir = "/srv/stakehall"
            status_policy = "strict"
            allow_negative_pool = false
            stale_after_hours = 6

            [server]
            host = "127.0.0.1"
            port = 9000
        """)
        cfg = load_config(path)
        assert cfg.lobby.data_dir == "/srv/stakehall"
        assert cfg.lobby.status_policy == "strict"
        assert cfg.lobby.allow_negative_pool is False
        assert cfg.lobby.stale_after_hours == 6
        assert cfg.server.host == "127.0.0.1"
        assert cfg.server.port == 9000

    def test_tilde_expansion(self, config_dir):
        path = _write_config(config_dir, """\
            [lobby]
            data_dir = "~/stakehall/data"
        """)
        cfg = load_config(path)
        assert cfg.lobby.data_dir.startswith(str(Path.home()))
        assert "~" not in cfg.lobby.data_dir

    def test_partial_config_keeps_defaults(self, config_dir):
        path = _write_config(config_dir, """\
            [server]
            port = 8080
        """)
        cfg = load_config(path)
        assert cfg.server.port == 8080
        assert cfg.server.host == "0.0.0.0"
        assert cfg.lobby == LobbyConfig()

    def test_unknown_policy_falls_back(self, config_dir):
        path = _write_config(config_dir, """\
            [lobby]
            status_policy = "anything-goes"
        """)
        cfg = load_config(path)
        assert cfg.lobby.status_policy == "permissive"

    def test_corrupt_toml_returns_defaults(self, config_dir):
        path = config_dir / "config.toml"
        path.write_text("this is not [valid toml }{")
        cfg = load_config(path)
        assert cfg == StakehallConfig()

    def test_empty_file(self, config_dir):
        path = config_dir / "config.toml"
        path.write_text("")
        assert load_config(path) == StakehallConfig()
