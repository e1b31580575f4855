"""Admin configuration queries"""
import json
import logging
from typing import Any, Optional
import psycopg

logger = logging.getLogger(__name__)


async def get_config_value(conn: psycopg.AsyncConnection, key: str) -> Optional[Any]:
    """
    Get one admin configuration blob

    Returns:
        The decoded JSON value, or None if the key is absent
    """
    async with conn.cursor() as cur:
        await cur.execute(
            "SELECT value FROM admin_config WHERE key = %s",
            (key,)
        )
        row = await cur.fetchone()

    if not row:
        return None

    value = row["value"]
    # jsonb columns arrive decoded; text columns need parsing
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"admin_config[{key}] is not valid JSON")
            return value
    return value
