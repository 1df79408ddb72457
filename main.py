#!/usr/bin/env python3
"""
authgate -- session-and-token authentication service.

Usage:
  python main.py                  # same as `serve`
  python main.py serve
  python main.py serve --port 8080
  python main.py sweep            # delete expired refresh sessions now
  python main.py hash-password    # prompt for a password, print its hash

Environment variables (see core/config.py for the full list):
  PORT, HOST                  Listen address for `serve`.
  CLIENT_URL                  Browser origin allowed to call the API.
  ACCESS_TOKEN_SECRET         HS256 signing secret (required when ENVIRONMENT=production).
  ACCESS_TOKEN_TTL_MINUTES    Access-token lifetime (default 20).
  REFRESH_TOKEN_TTL_DAYS      Refresh-session lifetime (default 14).
  DATA_DIR                    Directory holding users.json and sessions.json.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth.errors import StoreError
from auth.security import hash_password
from auth.store import CredentialStore
from core.config import get_settings

logger = logging.getLogger("authgate.cli")


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("Serving authgate on %s:%d", host, port)
    uvicorn.run(
        "api.main:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )
    return 0


def _sweep(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = CredentialStore(settings.data_dir or None)
    try:
        removed = store.clear_expired_sessions()
    except StoreError as e:
        logger.error("Sweep of %s failed: %s", store.data_dir, e)
        print(f"  [!] Sweep failed: {e}", file=sys.stderr)
        return 1
    logger.info("CLI sweep removed %d session(s) from %s", removed, store.data_dir)
    print(f"Removed {removed} expired session(s) from {store.data_dir}")
    return 0


def _hash_password(args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if not password:
        print("  [!] Empty password.", file=sys.stderr)
        return 1
    if getpass.getpass("Repeat: ") != password:
        print("  [!] Passwords do not match.", file=sys.stderr)
        return 1
    print(hash_password(password))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Session-and-token authentication service.",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host", default=None, help="Listen address (default: HOST setting)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT setting)")
    serve.set_defaults(func=_serve)

    sweep = sub.add_parser("sweep", help="Delete expired refresh sessions")
    sweep.set_defaults(func=_sweep)

    hasher = sub.add_parser("hash-password", help="Print the stored form of a password")
    hasher.set_defaults(func=_hash_password)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["serve", *(argv or [])])
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
