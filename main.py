#!/usr/bin/env python3
"""
GeekCraft server -- accounts, sessions and the authenticated game edge.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --backend redis
  python main.py --host 0.0.0.0 --reload

Environment variables (all optional, see core/config.py):
  GEEKCRAFT_DB_BACKEND   memory (default), redis, mongodb or sqlite
  GEEKCRAFT_REDIS_URL    redis://localhost:6379/0
  GEEKCRAFT_MONGODB_URL  mongodb://localhost:27017/geekcraft
  GEEKCRAFT_SQL_URL      sqlite:///geekcraft_auth.db
  GEEKCRAFT_HOST / GEEKCRAFT_PORT  bind address (127.0.0.1:3030)
"""

import argparse
import os

import uvicorn

from core.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(
        description="GeekCraft game server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--host", help="Bind address (default: GEEKCRAFT_HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Bind port (default: GEEKCRAFT_PORT or 3030)")
    parser.add_argument(
        "--backend",
        help="Credential store backend: memory, redis, mongodb or sqlite (default: GEEKCRAFT_DB_BACKEND)",
    )
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    # The app reads its settings at import, inside the uvicorn process, so
    # overrides travel through the environment.
    if args.backend:
        os.environ["GEEKCRAFT_DB_BACKEND"] = args.backend
        get_settings.cache_clear()

    try:
        settings = get_settings()
    except ValueError as e:
        parser.error(str(e))

    host = args.host or settings.host
    port = args.port or settings.port
    print(f"\n  GeekCraft server {host}:{port} (store: {settings.db_backend})\n")
    uvicorn.run("asgi:app", host=host, port=port, reload=args.reload)


if __name__ == "__main__":
    main()
