"""Drop every table in a named schema of the configured database."""
from __future__ import annotations

import argparse
import sys

from sqlalchemy import create_engine

from countkeeper.core.errors import CountkeeperError
from countkeeper.core.settings import settings
from countkeeper.db.admin import reset_schema


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Drop all tables in one database schema")
    parser.add_argument(
        "--schema",
        required=True,
        help="Schema to empty, e.g. 'public' (Postgres) or 'main' (SQLite).",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the reset; without it nothing is dropped.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    args = parser.parse_args(argv)

    if not args.yes:
        print(f"[reset_schema] refusing to drop schema {args.schema!r} without --yes", file=sys.stderr)
        return 2

    engine = create_engine(args.url or settings.effective_database_url)
    try:
        dropped = reset_schema(engine, args.schema, confirm=args.schema)
    except CountkeeperError as exc:
        print(f"[reset_schema] ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()

    print(f"[reset_schema] dropped {len(dropped)} tables from {args.schema}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
