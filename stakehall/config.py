"""
stakehall/config.py - Local configuration management

Reads operator config from a platform-appropriate config directory:
  - macOS/Linux: ~/.stakehall/config.toml
  - Windows: %APPDATA%\\stakehall\\config.toml

Example:
    [lobby]
    data_dir = "~/stakehall/data"   # games.json lives here
    status_policy = "permissive"    # or "strict"
    allow_negative_pool = true
    stale_after_hours = 24

    [server]
    host = "0.0.0.0"
    port = 8000
"""

import logging
import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================


def _get_config_dir() -> Path:
    """Get platform-appropriate config directory."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "stakehall"
    return Path.home() / ".stakehall"


CONFIG_DIR = _get_config_dir()
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_DATA_DIR = "data"


# ============================================================================
# Data Types
# ============================================================================

@dataclass
class LobbyConfig:
    """Match storage and registry policy."""

    data_dir: str = DEFAULT_DATA_DIR
    status_policy: str = "permissive"  # permissive | strict
    allow_negative_pool: bool = True
    stale_after_hours: float = 24


@dataclass
class ServerConfig:
    """Where `stakehall serve` listens."""

    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class StakehallConfig:
    """Top-level configuration."""

    lobby: LobbyConfig = field(default_factory=LobbyConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


# ============================================================================
# Parsing
# ============================================================================

def _expand(path: str) -> str:
    """Expand ~ in a path string."""
    return str(Path(path).expanduser())


def _parse_lobby_config(data: dict) -> LobbyConfig:
    """Parse the [lobby] section. Unknown policies fall back to permissive."""
    defaults = LobbyConfig()

    policy = data.get("status_policy", defaults.status_policy)
    if policy not in ("permissive", "strict"):
        logger.warning(f"Unknown status_policy {policy!r}, using {defaults.status_policy!r}")
        policy = defaults.status_policy

    return LobbyConfig(
        data_dir=_expand(data.get("data_dir", defaults.data_dir)),
        status_policy=policy,
        allow_negative_pool=bool(data.get("allow_negative_pool", defaults.allow_negative_pool)),
        stale_after_hours=data.get("stale_after_hours", defaults.stale_after_hours),
    )


def load_config(path: Path | None = None) -> StakehallConfig:
    """
    Read config from TOML file.

    Args:
        path: Override config file path (default: ~/.stakehall/config.toml)

    Returns:
        StakehallConfig. Missing file or bad TOML returns defaults.
    """
    config_path = path or CONFIG_PATH

    if not config_path.exists():
        return StakehallConfig()

    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return StakehallConfig()

    lobby = LobbyConfig()
    if isinstance(raw.get("lobby"), dict):
        lobby = _parse_lobby_config(raw["lobby"])

    server = ServerConfig()
    if isinstance(raw.get("server"), dict):
        server_data = raw["server"]
        server = ServerConfig(
            host=server_data.get("host", server.host),
            port=server_data.get("port", server.port),
        )

    return StakehallConfig(lobby=lobby, server=server)
