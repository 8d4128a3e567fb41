"""HoneyWall server runner.

    python -m honeywall --port 8000 --db-path ./honeywall.db
"""
from __future__ import annotations

import argparse
import os

import uvicorn

from .config import load_settings
from .main import configure_logging, create_app


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="HoneyWall telemetry ingestion server")
    parser.add_argument("--host", default=os.getenv("HONEYWALL_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("HONEYWALL_PORT", "8000")))
    parser.add_argument(
        "--db-path",
        default=os.getenv("DB_PATH", "./honeywall.db"),
        help="SQLite database file (default: ./honeywall.db)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    configure_logging(args.log_level)
    settings = load_settings()
    settings.db_path = args.db_path

    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
