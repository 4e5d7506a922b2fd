"""
lobby/server.py - FastAPI lobby server for Stakehall.

Endpoints:
    GET    /games                 List every match
    GET    /games/available       Public matches waiting for players
    GET    /games/active          Matches in progress
    POST   /games                 Create a match
    GET    /games/{id}            Get one match
    POST   /games/{id}/join       Join a match
    PUT    /games/{id}/pool       Add to the stake pool (POST also accepted)
    PUT    /games/{id}/status     Set match status (POST also accepted)
    GET    /stats                 Match counts
    GET    /db-status             Backing file diagnostics
    POST   /admin/cleanup         Drop stale waiting matches
    GET    /health                Server health check

The server never touches game rules or wallets. It records who joined,
how much was staked, and what state the match is in.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from starlette.middleware.cors import CORSMiddleware

from stakehall.config import LobbyConfig, load_config

from .registry import MatchNotFoundError, MatchRegistry, RegistryError
from .store import GAMES_FILENAME, MatchStore, StoreError

logger = logging.getLogger(__name__)


# Global registry instance, set during lifespan
_registry: MatchRegistry | None = None


def get_registry() -> MatchRegistry:
    assert _registry is not None, "Registry not initialized"
    return _registry


def build_registry(lobby: LobbyConfig) -> MatchRegistry:
    """Wire a registry from config. STAKEHALL_DATA_DIR overrides data_dir."""
    data_dir = os.environ.get("STAKEHALL_DATA_DIR") or lobby.data_dir
    store = MatchStore(Path(data_dir) / GAMES_FILENAME)
    return MatchRegistry(
        store,
        status_policy=lobby.status_policy,
        allow_negative_pool=lobby.allow_negative_pool,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _registry
    config = getattr(app.state, "config", None) or load_config()
    app.state.config = config
    _registry = build_registry(config.lobby)
    _log_startup_config(_registry, config.lobby)
    yield
    _registry = None


def _log_startup_config(registry: MatchRegistry, lobby: LobbyConfig):
    """Log lobby configuration on startup so operators can verify settings."""
    logger.info("=" * 50)
    logger.info("Lobby startup config:")
    logger.info(f"  Games file: {registry.store.path}")
    logger.info(f"  Status policy: {registry.status_policy}")
    if registry.allow_negative_pool:
        logger.info("  Negative pool deltas: ALLOWED")
    else:
        logger.info("  Negative pool deltas: rejected")
    logger.info(f"  Stale waiting matches expire after {lobby.stale_after_hours}h")
    logger.info("=" * 50)


app = FastAPI(title="Stakehall Lobby", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ======================================================================
# Request/Response Models
# ======================================================================


# Fields are optional so a missing parameter is a 400 with a readable
# message rather than FastAPI's 422.


class CreateMatchRequest(BaseModel):
    title: str | None = None
    stakeAmount: Any = 0.1
    maxPlayers: int = 2
    host: str | None = None
    isPrivate: bool = False
    password: str | None = None


class JoinRequest(BaseModel):
    playerAddress: str | None = None
    password: str | None = None


class PoolRequest(BaseModel):
    amount: Any = None


class StatusRequest(BaseModel):
    status: str | None = None


class StatsResponse(BaseModel):
    total_games: int
    available_games: int
    active_games: int


class CleanupResponse(BaseModel):
    removed: list[str]
    total_games: int
    available_games: int
    active_games: int


class HealthResponse(BaseModel):
    status: str
    total_games: int
    active_games: int


def _bad_request(e: RegistryError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(e))


def _store_failure(e: StoreError) -> HTTPException:
    logger.error(f"Store failure: {e}")
    return HTTPException(status_code=500, detail=str(e))


# ======================================================================
# Endpoints
# ======================================================================


@app.get("/games")
def list_games() -> list[dict[str, Any]]:
    """All matches, in creation order."""
    try:
        return [r.to_dict() for r in get_registry().list_matches()]
    except StoreError as e:
        raise _store_failure(e)


@app.get("/games/available")
def list_available() -> list[dict[str, Any]]:
    """Public matches still waiting for players."""
    try:
        return [r.to_dict() for r in get_registry().available()]
    except StoreError as e:
        raise _store_failure(e)


@app.get("/games/active")
def list_active() -> list[dict[str, Any]]:
    """Matches in progress, for spectators."""
    try:
        return [r.to_dict() for r in get_registry().active()]
    except StoreError as e:
        raise _store_failure(e)


@app.post("/games", status_code=201)
def create_game(req: CreateMatchRequest) -> dict[str, Any]:
    try:
        record = get_registry().create(
            title=req.title,
            stake_amount=req.stakeAmount,
            max_players=req.maxPlayers,
            host=req.host,
            is_private=req.isPrivate,
            password=req.password,
        )
    except RegistryError as e:
        raise _bad_request(e)
    except StoreError as e:
        raise _store_failure(e)
    return record.to_dict()


@app.get("/games/{match_id}")
def get_game(match_id: str) -> dict[str, Any]:
    try:
        record = get_registry().get(match_id)
    except MatchNotFoundError:
        raise HTTPException(status_code=404, detail="Match not found")
    except StoreError as e:
        raise _store_failure(e)
    return record.to_dict()


@app.post("/games/{match_id}/join")
def join_game(match_id: str, req: JoinRequest) -> dict[str, Any]:
    """Join a waiting match. The player that fills it flips it to active."""
    if not req.playerAddress:
        raise HTTPException(status_code=400, detail="Player address is required")
    try:
        record = get_registry().join(match_id, req.playerAddress, req.password)
    except RegistryError as e:
        logger.info(f"Join rejected for {match_id} ({req.playerAddress}): {e}")
        raise _bad_request(e)
    except StoreError as e:
        raise _store_failure(e)
    return record.to_dict()


@app.api_route("/games/{match_id}/pool", methods=["PUT", "POST"])
def update_pool(match_id: str, req: PoolRequest) -> dict[str, Any]:
    """Add a stake to the match pool."""
    if req.amount is None:
        raise HTTPException(status_code=400, detail="Amount is required")
    try:
        record = get_registry().update_pool(match_id, req.amount)
    except RegistryError as e:
        raise _bad_request(e)
    except StoreError as e:
        raise _store_failure(e)
    return record.to_dict()


@app.api_route("/games/{match_id}/status", methods=["PUT", "POST"])
def update_status(match_id: str, req: StatusRequest) -> dict[str, Any]:
    if not req.status:
        raise HTTPException(status_code=400, detail="Status is required")
    try:
        record = get_registry().update_status(match_id, req.status)
    except RegistryError as e:
        raise _bad_request(e)
    except StoreError as e:
        raise _store_failure(e)
    return record.to_dict()


@app.get("/stats", response_model=StatsResponse)
def stats() -> dict[str, Any]:
    try:
        return get_registry().stats()
    except StoreError as e:
        raise _store_failure(e)


@app.get("/db-status")
def db_status() -> dict[str, Any]:
    """Backing file diagnostics. For debugging."""
    registry = get_registry()
    try:
        records = registry.list_matches()
        info = registry.store.info()
    except StoreError as e:
        raise _store_failure(e)
    info["games"] = [
        {
            "id": r.id,
            "title": r.title,
            "status": r.status,
            "players": len(r.players),
            "createdAt": r.created_at,
        }
        for r in records
    ]
    return {"status": "ok", "database": info}


@app.post("/admin/cleanup", response_model=CleanupResponse)
def admin_cleanup() -> dict[str, Any]:
    """Drop waiting matches older than the configured age."""
    registry = get_registry()
    config = getattr(app.state, "config", None) or load_config()
    try:
        removed = registry.cleanup_stale(config.lobby.stale_after_hours)
        counts = registry.stats()
    except StoreError as e:
        raise _store_failure(e)
    return {"removed": removed, **counts}


@app.get("/health", response_model=HealthResponse)
def health() -> dict[str, Any]:
    """Server health check."""
    try:
        counts = get_registry().stats()
    except StoreError as e:
        raise _store_failure(e)
    return {
        "status": "ok",
        "total_games": counts["total_games"],
        "active_games": counts["active_games"],
    }
