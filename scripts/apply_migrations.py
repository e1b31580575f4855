#!/usr/bin/env python3
"""
Apply SQL migrations

Runs every migrations/*.sql file in name order, each in its own
transaction. The schema files use IF NOT EXISTS / ON CONFLICT, so running
this script repeatedly is safe.

Usage:
    python scripts/apply_migrations.py

Requirements:
    - Database connection configured (DATABASE_URL env var)
"""
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from streakfarm.db.connection import db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


async def apply_migrations() -> int:
    """Apply all migration files; returns how many ran"""
    files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not files:
        logger.warning(f"No migrations found in {MIGRATIONS_DIR}")
        return 0

    await db.init_pool()
    try:
        for path in files:
            logger.info(f"Applying {path.name}")
            async with db.transaction() as conn:
                await conn.execute(path.read_text())
    finally:
        await db.close_pool()

    logger.info(f"Applied {len(files)} migration(s)")
    return len(files)


if __name__ == "__main__":
    asyncio.run(apply_migrations())
