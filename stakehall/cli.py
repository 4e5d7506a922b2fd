#!/usr/bin/env python3
"""
stakehall/cli.py - Command line interface for Stakehall

Usage:
    stakehall serve [--port PORT] [--data-dir DIR]
    stakehall list [--available | --active]
    stakehall show <match_id>
    stakehall set-status <match_id> <status>
    stakehall cleanup [--hours N]
    stakehall db-status
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from stakehall.config import StakehallConfig, load_config

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _load(args) -> StakehallConfig:
    """Config file, with --data-dir taking precedence."""
    config = load_config(Path(args.config) if args.config else None)
    if getattr(args, "data_dir", None):
        config.lobby.data_dir = args.data_dir
    return config


def _registry(args):
    from lobby.server import build_registry

    return build_registry(_load(args).lobby)


def cmd_serve(args):
    """Start the lobby server."""
    try:
        import uvicorn
    except ImportError:
        logger.error("Serving requires extra dependencies: pip install stakehall[server]")
        return 1

    from lobby.server import app

    config = _load(args)
    if args.port:
        config.server.port = args.port

    # Set config on app state so lifespan picks it up
    app.state.config = config
    logger.info(
        f"Starting lobby server on {config.server.host}:{config.server.port} "
        f"(data: {config.lobby.data_dir})"
    )
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_level="info")
    return 0


def cmd_list(args):
    """List matches."""
    from lobby.store import StoreError

    registry = _registry(args)
    try:
        if args.available:
            records = registry.available()
        elif args.active:
            records = registry.active()
        else:
            records = registry.list_matches()
    except StoreError as e:
        logger.error(str(e))
        return 1

    if not records:
        print("No matches.")
        return 0

    print(f"{'ID':<38} {'STATUS':<10} {'PLAYERS':<8} {'POOL':>10}  TITLE")
    for r in records:
        players = f"{len(r.players)}/{r.max_players}"
        print(f"{r.id:<38} {r.status:<10} {players:<8} {r.pool_amount:>10g}  {r.title}")
    return 0


def cmd_show(args):
    """Print one match as JSON."""
    from lobby.registry import MatchNotFoundError
    from lobby.store import StoreError

    try:
        record = _registry(args).get(args.match_id)
    except (MatchNotFoundError, StoreError) as e:
        logger.error(str(e))
        return 1
    print(json.dumps(record.to_dict(), indent=2))
    return 0


def cmd_set_status(args):
    """Set a match's status (operator override)."""
    from lobby.registry import RegistryError
    from lobby.store import StoreError

    try:
        record = _registry(args).update_status(args.match_id, args.status)
    except (RegistryError, StoreError) as e:
        logger.error(str(e))
        return 1
    print(f"{record.id}: {record.status}")
    return 0


def cmd_cleanup(args):
    """Drop stale waiting matches."""
    config = _load(args)
    hours = args.hours if args.hours is not None else config.lobby.stale_after_hours

    from lobby.server import build_registry
    from lobby.store import StoreError

    try:
        removed = build_registry(config.lobby).cleanup_stale(hours)
    except StoreError as e:
        logger.error(str(e))
        return 1
    print(f"Removed {len(removed)} stale match(es) older than {hours}h")
    for match_id in removed:
        print(f"  {match_id}")
    return 0


def cmd_db_status(args):
    """Show backing file diagnostics."""
    from lobby.store import StoreError

    try:
        info = _registry(args).store.info()
    except StoreError as e:
        logger.error(str(e))
        return 1
    for key, value in info.items():
        print(f"{key:<18} {value}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="stakehall",
        description="Staked two-player match lobby",
    )
    parser.add_argument("--config", default=None, help="Config file (default: ~/.stakehall/config.toml)")
    parser.add_argument("--data-dir", default=None, help="Directory holding games.json")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the lobby server")
    serve_parser.add_argument("--port", "-p", type=int, default=None, help="Server port (default: 8000)")
    serve_parser.set_defaults(func=cmd_serve)

    # list command
    list_parser = subparsers.add_parser("list", help="List matches")
    which = list_parser.add_mutually_exclusive_group()
    which.add_argument("--available", action="store_true", help="Only public matches waiting for players")
    which.add_argument("--active", action="store_true", help="Only matches in progress")
    list_parser.set_defaults(func=cmd_list)

    # show command
    show_parser = subparsers.add_parser("show", help="Show one match")
    show_parser.add_argument("match_id", help="Match ID")
    show_parser.set_defaults(func=cmd_show)

    # set-status command
    status_parser = subparsers.add_parser("set-status", help="Set a match's status")
    status_parser.add_argument("match_id", help="Match ID")
    status_parser.add_argument("status", help="New status (e.g. completed, cancelled)")
    status_parser.set_defaults(func=cmd_set_status)

    # cleanup command
    cleanup_parser = subparsers.add_parser("cleanup", help="Drop stale waiting matches")
    cleanup_parser.add_argument("--hours", type=float, default=None, help="Age threshold (default: from config, 24)")
    cleanup_parser.set_defaults(func=cmd_cleanup)

    # db-status command
    db_parser = subparsers.add_parser("db-status", help="Show games.json diagnostics")
    db_parser.set_defaults(func=cmd_db_status)

    args = parser.parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
