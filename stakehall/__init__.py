"""
Stakehall - Lobby backend for staked two-player matches

Players join matches, stakes accrue into a pool, and the lobby tracks
each match from waiting to active to done.
"""

__version__ = "0.1.0"

from .config import (
    LobbyConfig,
    ServerConfig,
    StakehallConfig,
    load_config,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "LobbyConfig",
    "ServerConfig",
    "StakehallConfig",
    "load_config",
]
