"""
lobby/store.py - JSON file storage for match records.

The whole collection is loaded and saved as one unit. One instance per
server lifetime, backed by a single games.json file (or a tmp_path in tests).
"""

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

logger = logging.getLogger(__name__)

GAMES_FILENAME = "games.json"


class StoreError(RuntimeError):
    """Raised when the collection can't be read or written."""


# ============================================================================
# Data Types
# ============================================================================


# Persisted key -> attribute name. Anything not listed here lands in `extra`.
_FIELDS = {
    "id": "id",
    "title": "title",
    "players": "players",
    "maxPlayers": "max_players",
    "status": "status",
    "stakeAmount": "stake_amount",
    "poolAmount": "pool_amount",
    "stakeCount": "stake_count",
    "createdAt": "created_at",
    "host": "host",
    "isPrivate": "is_private",
    "password": "password",
}


@dataclass
class MatchRecord:
    """Persisted state for one match.

    Keys are stored camelCase so existing games.json files stay readable.
    """

    id: str
    players: list[str]
    max_players: int
    status: str
    title: str = "New Game"
    stake_amount: float = 0.0
    pool_amount: float = 0.0
    stake_count: int = 0
    created_at: int = 0  # epoch ms
    host: str = "unknown"
    is_private: bool = False
    password: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def to_dict(self) -> dict[str, Any]:
        data = {key: getattr(self, attr) for key, attr in _FIELDS.items()}
        data["players"] = list(self.players)
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchRecord":
        """Build a record from its persisted form. Raises StoreError if malformed."""
        if not isinstance(data, dict):
            raise StoreError(f"Match record must be an object, got {type(data).__name__}")

        for key in ("id", "players", "maxPlayers", "status"):
            if key not in data:
                raise StoreError(f"Match record missing '{key}': {data.get('id', '?')}")

        match_id = data["id"]
        players = data["players"]
        max_players = data["maxPlayers"]
        status = data["status"]

        if not isinstance(match_id, str) or not match_id:
            raise StoreError(f"Match id must be a non-empty string: {match_id!r}")
        if not isinstance(players, list) or not all(isinstance(p, str) for p in players):
            raise StoreError(f"Match {match_id} has malformed players")
        if isinstance(max_players, bool) or not isinstance(max_players, int) or max_players < 1:
            raise StoreError(f"Match {match_id} has malformed maxPlayers: {max_players!r}")
        if not isinstance(status, str):
            raise StoreError(f"Match {match_id} has malformed status: {status!r}")
        if len(set(players)) != len(players):
            raise StoreError(f"Match {match_id} lists a player more than once")
        if len(players) > max_players:
            raise StoreError(
                f"Match {match_id} has {len(players)} players for {max_players} seats"
            )

        title = data.get("title", "New Game")
        host = data.get("host", "unknown")
        password = data.get("password") or ""
        is_private = data.get("isPrivate", False)
        for key, value in (("title", title), ("host", host), ("password", password)):
            if not isinstance(value, str):
                raise StoreError(f"Match {match_id} has malformed {key}: {value!r}")
        if not isinstance(is_private, bool):
            raise StoreError(f"Match {match_id} has malformed isPrivate: {is_private!r}")

        extra = {k: v for k, v in data.items() if k not in _FIELDS}
        return cls(
            id=match_id,
            players=list(players),
            max_players=max_players,
            status=status,
            title=title,
            stake_amount=_number(data.get("stakeAmount", 0), "stakeAmount", match_id),
            pool_amount=_number(data.get("poolAmount") or 0, "poolAmount", match_id),
            stake_count=int(_number(data.get("stakeCount") or 0, "stakeCount", match_id)),
            created_at=int(_number(data.get("createdAt", 0), "createdAt", match_id)),
            host=host,
            is_private=is_private,
            password=password,
            extra=extra,
        )


def _number(value: Any, key: str, match_id: str) -> float | int:
    """Coerce a persisted numeric field. Older files store stakes as strings."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise StoreError(f"Match {match_id} has malformed {key}: {value!r}")
    try:
        parsed = float(value)
    except (ValueError, OverflowError):
        raise StoreError(f"Match {match_id} has malformed {key}: {value!r}") from None
    if not math.isfinite(parsed):
        raise StoreError(f"Match {match_id} has malformed {key}: {value!r}")
    return parsed if isinstance(value, str) else value


# ============================================================================
# Store
# ============================================================================


class MatchStore:
    """Whole-collection load/save of match records to one JSON file."""

    def __init__(self, path: str | Path = Path("data") / GAMES_FILENAME):
        self.path = Path(path)

    def load(self) -> list[MatchRecord]:
        """Return every persisted record. A missing file is an empty collection."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreError(f"Failed to read {self.path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Malformed JSON in {self.path}: {e}") from e

        if not isinstance(data, list):
            raise StoreError(f"{self.path} must hold a JSON array, got {type(data).__name__}")

        records = [MatchRecord.from_dict(item) for item in data]

        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                raise StoreError(f"Duplicate match id in {self.path}: {record.id}")
            seen.add(record.id)
        return records

    def save(self, records: list[MatchRecord]) -> None:
        """Replace the persisted collection.

        Writes to a temp file beside the target and renames it over, so a
        concurrent load() sees either the old or the new file.
        """
        payload = [record.to_dict() for record in records]
        tmp_path: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                "w",
                delete=False,
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                encoding="utf-8",
            ) as tmp:
                tmp_path = Path(tmp.name)
                json.dump(payload, tmp, indent=2, allow_nan=False)
                tmp.write("\n")
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to write {self.path}: {e}") from e
        logger.debug(f"Saved {len(records)} matches to {self.path}")

    def info(self) -> dict[str, Any]:
        """Backing file diagnostics for the db-status endpoint."""
        records = self.load()
        file_exists = self.path.exists()
        return {
            "path": str(self.path),
            "directory_exists": self.path.parent.exists(),
            "file_exists": file_exists,
            "file_size": self.path.stat().st_size if file_exists else 0,
            "games_count": len(records),
        }
