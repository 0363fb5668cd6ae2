#!/usr/bin/env python
"""Create the planilla engine schema.

Usage:
    python scripts/create_tables.py
    python scripts/create_tables.py --database-url sqlite+aiosqlite:///planilla.db
    python scripts/create_tables.py --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from planilla_engine.config import get_settings
from planilla_engine.database import get_engine
from planilla_engine.models import Base


async def create_tables(database_url: str, drop_first: bool) -> None:
    engine = get_engine(database_url)
    try:
        async with engine.begin() as conn:
            if drop_first:
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create planilla engine tables")
    parser.add_argument(
        "--database-url",
        default=get_settings().database_url,
        help="Async database URL",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing tables first",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the tables without touching the database",
    )

    args = parser.parse_args()

    print("Planilla Schema Setup")
    print("=" * 50)
    url = args.database_url
    print(f"Database: {url.split('@')[-1] if '@' in url else url}")
    print()

    tables = sorted(Base.metadata.tables)
    print(f"Tables: {len(tables)}")
    for name in tables:
        print(f"  {name}")

    if args.dry_run:
        print("\n[DRY RUN] Nothing created")
        return 0

    try:
        asyncio.run(create_tables(url, args.drop))
    except SQLAlchemyError as e:
        print(f"\nFAILED: {e}")
        return 1

    print("\nOK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
