"""
lobby/registry.py - Record-level match operations over the whole-file store.

Every mutation is load -> find -> validate -> mutate -> save, run under one
process-wide lock so two requests never interleave their read-modify-write.
Reads skip the lock; the store's atomic rename keeps them from seeing a
half-written file.
"""

import logging
import math
import threading
import time
import uuid
from collections.abc import Callable
from typing import Any

from .store import MatchRecord, MatchStore

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================


class RegistryError(Exception):
    """Base for errors a caller can fix by changing the request."""


class MatchNotFoundError(RegistryError, LookupError):
    """Raised when no record has the requested match id."""

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Match not found: {match_id}")


class MatchFullError(RegistryError):
    """Raised when joining a match that is already at capacity."""


class MatchNotJoinableError(RegistryError):
    """Raised when joining a match that is no longer waiting for players."""


class InvalidPasswordError(RegistryError):
    """Raised when joining a private match with the wrong password."""


class InvalidAmountError(RegistryError, ValueError):
    """Raised when a pool or stake amount isn't a usable finite number."""


class InvalidRequestError(RegistryError, ValueError):
    """Raised when a required parameter is missing or empty."""


class InvalidTransitionError(RegistryError):
    """Raised under the strict status policy for a transition not in the table."""


# ============================================================================
# Status Policy
# ============================================================================

WAITING = "waiting"
ACTIVE = "active"
COMPLETED = "completed"
CANCELLED = "cancelled"

STATUS_POLICIES = ("permissive", "strict")

TRANSITIONS: dict[str, frozenset[str]] = {
    WAITING: frozenset({ACTIVE, CANCELLED}),
    ACTIVE: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


def parse_amount(value: Any) -> float:
    """Parse a pool/stake amount. Accepts numbers and numeric strings."""
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidAmountError(f"Invalid amount: {value!r}") from None
    if not math.isfinite(amount):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    return amount


def _now_ms() -> int:
    return int(time.time() * 1000)


# ============================================================================
# Registry
# ============================================================================


class MatchRegistry:
    """Atomic-per-record operations over a MatchStore.

    Args:
        store: Backing whole-collection store.
        status_policy: "permissive" accepts any non-empty status string;
            "strict" only allows the moves in TRANSITIONS.
        allow_negative_pool: When False, negative pool deltas are rejected.
    """

    def __init__(
        self,
        store: MatchStore,
        status_policy: str = "permissive",
        allow_negative_pool: bool = True,
    ):
        if status_policy not in STATUS_POLICIES:
            raise ValueError(
                f"Unknown status policy {status_policy!r} (expected one of {STATUS_POLICIES})"
            )
        self.store = store
        self.status_policy = status_policy
        self.allow_negative_pool = allow_negative_pool
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _mutate(self, match_id: str, apply: Callable[[MatchRecord], bool]) -> MatchRecord:
        """Run one read-modify-write under the lock.

        `apply` validates and mutates the record in place, raising on a
        rejected request. It returns False when nothing changed, which
        skips the save.
        """
        if not match_id:
            raise InvalidRequestError("Match ID is required")
        with self._lock:
            records = self.store.load()
            record = _find(records, match_id)
            if apply(record):
                self.store.save(records)
            return record

    def join(self, match_id: str, player_address: str, password: str | None = None) -> MatchRecord:
        """Add a player to a waiting match. Fills the match -> status active.

        Joining twice with the same address is a no-op that still succeeds.
        """
        if not player_address:
            raise InvalidRequestError("Player address is required")

        def apply(record: MatchRecord) -> bool:
            if record.is_private and record.password and record.password != password:
                raise InvalidPasswordError("Invalid password")
            if record.is_full:
                raise MatchFullError("Match is full")
            if record.status != WAITING:
                raise MatchNotJoinableError("Match is no longer accepting players")
            if player_address in record.players:
                return False

            record.players.append(player_address)
            if record.is_full:
                record.status = ACTIVE
            return True

        record = self._mutate(match_id, apply)
        logger.info(
            f"Player {player_address} joined match {match_id} "
            f"({len(record.players)}/{record.max_players}, {record.status})"
        )
        return record

    def update_pool(self, match_id: str, amount: Any) -> MatchRecord:
        """Add `amount` to the stake pool and bump the stake counter."""
        delta = parse_amount(amount)
        if delta < 0 and not self.allow_negative_pool:
            raise InvalidAmountError(f"Negative pool amount not allowed: {delta}")

        def apply(record: MatchRecord) -> bool:
            total = record.pool_amount + delta
            if not math.isfinite(total):
                raise InvalidAmountError(f"Pool total out of range: {record.pool_amount} + {delta}")
            record.pool_amount = total
            record.stake_count += 1
            return True

        record = self._mutate(match_id, apply)
        logger.info(
            f"Match {match_id} pool {delta:+} -> {record.pool_amount} "
            f"({record.stake_count} stakes)"
        )
        return record

    def update_status(self, match_id: str, new_status: str) -> MatchRecord:
        """Set a match's status. Strict policy checks it against TRANSITIONS."""
        if not isinstance(new_status, str) or not new_status:
            raise InvalidRequestError("Status is required")

        def apply(record: MatchRecord) -> bool:
            if self.status_policy == "strict" and new_status != record.status:
                allowed = TRANSITIONS.get(record.status, frozenset())
                if new_status not in allowed:
                    raise InvalidTransitionError(
                        f"Cannot move match from {record.status!r} to {new_status!r}"
                    )
            record.status = new_status
            return True

        record = self._mutate(match_id, apply)
        logger.info(f"Match {match_id} status -> {new_status}")
        return record

    def create(
        self,
        title: str | None = None,
        stake_amount: Any = 0.1,
        max_players: int = 2,
        host: str | None = None,
        is_private: bool = False,
        password: str | None = None,
    ) -> MatchRecord:
        """Create a new waiting match with an empty player list."""
        if isinstance(max_players, bool) or not isinstance(max_players, int) or max_players < 1:
            raise InvalidRequestError(f"maxPlayers must be a positive integer: {max_players!r}")
        stake = parse_amount(stake_amount)
        if stake < 0:
            raise InvalidAmountError(f"Stake amount must be nonnegative: {stake}")

        record = MatchRecord(
            id=str(uuid.uuid4()),
            players=[],
            max_players=max_players,
            status=WAITING,
            title=title or "New Game",
            stake_amount=stake,
            created_at=_now_ms(),
            host=host or "unknown",
            is_private=is_private,
            password=password or "",
        )
        with self._lock:
            records = self.store.load()
            records.append(record)
            self.store.save(records)
        logger.info(f"Match created: {record.id} by {record.host} (stake {stake})")
        return record

    def cleanup_stale(self, max_age_hours: float = 24) -> list[str]:
        """Delete waiting matches older than `max_age_hours`. Returns removed ids."""
        cutoff = _now_ms() - int(max_age_hours * 3600 * 1000)
        with self._lock:
            records = self.store.load()
            keep, removed = [], []
            for record in records:
                if record.status == WAITING and record.created_at < cutoff:
                    removed.append(record.id)
                else:
                    keep.append(record)
            if removed:
                self.store.save(keep)
        for match_id in removed:
            logger.info(f"Cleaned up stale match: {match_id}")
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, match_id: str) -> MatchRecord:
        return _find(self.store.load(), match_id)

    def list_matches(self) -> list[MatchRecord]:
        return self.store.load()

    def available(self) -> list[MatchRecord]:
        """Public matches still waiting for players."""
        return [
            r for r in self.store.load()
            if not r.is_private and r.status == WAITING and not r.is_full
        ]

    def active(self) -> list[MatchRecord]:
        """Matches in progress (for spectators)."""
        return [r for r in self.store.load() if r.status == ACTIVE]

    def stats(self) -> dict[str, int]:
        records = self.store.load()
        return {
            "total_games": len(records),
            "available_games": sum(
                1 for r in records
                if not r.is_private and r.status == WAITING and not r.is_full
            ),
            "active_games": sum(1 for r in records if r.status == ACTIVE),
        }


def _find(records: list[MatchRecord], match_id: str) -> MatchRecord:
    for record in records:
        if record.id == match_id:
            return record
    raise MatchNotFoundError(match_id)
