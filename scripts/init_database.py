#!/usr/bin/env python3
"""
Create the sync tables without Alembic.

For local runs and throwaway databases. Production schemas are managed
by the migrations in alembic/versions.

Usage:
    python scripts/init_database.py [--drop]
"""

import argparse
import asyncio
import sys

from loguru import logger

from vibesync.config.database import create_engine
from vibesync.config.settings import get_settings
from vibesync.models import Base

logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database(drop: bool = False) -> None:
    """Create (optionally recreate) transfers, bounties and sync state tables."""
    engine = create_engine(get_settings(), use_null_pool=True)
    try:
        async with engine.begin() as conn:
            if drop:
                logger.warning("Dropping existing sync tables")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    finally:
        await engine.dispose()

    tables = ", ".join(sorted(Base.metadata.tables))
    logger.success(f"Tables ready: {tables}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--drop", action="store_true", help="drop tables first")
    args = parser.parse_args()
    asyncio.run(init_database(drop=args.drop))
