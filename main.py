#!/usr/bin/env python3
"""
Student Portal -- registration, login, and academic profile web app.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 0.0.0.0 --port 3000
  python main.py --reload

Environment variables (or .env):
  SECRET_KEY      Required unless DEBUG=true. At least 32 characters.
  DEBUG           true for local development (auto-generated key, plain cookies).
  DATABASE_URL    SQLAlchemy URL for the users table (default: sqlite portal.db).
  PORT            Default listening port (3000).
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="student-portal",
        description="Run the student portal web server.",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Interface to bind (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port to listen on (default: {settings.port})",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )
    args = parser.parse_args()

    print(f"Server running on http://{args.host}:{args.port}")
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
