"""
lobby - Match registry server for Stakehall

Tracks match records in one JSON file and serialises every update to
them. The lobby never plays the game. It just seats players and keeps
the stake pool tally.
"""

from .server import app
from .registry import MatchRegistry
from .store import MatchRecord, MatchStore, StoreError

__all__ = ["app", "MatchRegistry", "MatchRecord", "MatchStore", "StoreError"]
