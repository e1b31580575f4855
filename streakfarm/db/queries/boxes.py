"""Reward box queries"""
import logging
from typing import Optional
from datetime import datetime
from decimal import Decimal
import psycopg

logger = logging.getLogger(__name__)

BOX_COLUMNS = """
    id, account_id, rarity, base_points, slot_start, generated_at, expires_at,
    opened_at, is_expired, multiplier_applied, final_points
"""


async def get_box(conn: psycopg.AsyncConnection, box_id: str) -> Optional[dict]:
    """Get box by id"""
    async with conn.cursor() as cur:
        await cur.execute(
            f"SELECT {BOX_COLUMNS} FROM boxes WHERE id = %s",
            (box_id,)
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def insert_box(
    conn: psycopg.AsyncConnection,
    account_id: str,
    rarity: str,
    base_points: int,
    slot_start: datetime,
    generated_at: datetime,
    expires_at: datetime
) -> Optional[dict]:
    """
    Insert a box for the account's hourly slot

    Returns:
        The new box, or None if the slot already holds one
    """
    async with conn.cursor() as cur:
        await cur.execute(
            f"""
            INSERT INTO boxes (account_id, rarity, base_points, slot_start, generated_at, expires_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (account_id, slot_start) DO NOTHING
            RETURNING {BOX_COLUMNS}
            """,
            (account_id, rarity, base_points, slot_start, generated_at, expires_at)
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def count_boxes_since(conn: psycopg.AsyncConnection, account_id: str, since: datetime) -> int:
    """Number of boxes generated for the account at or after `since`"""
    async with conn.cursor() as cur:
        await cur.execute(
            "SELECT COUNT(*) AS box_count FROM boxes WHERE account_id = %s AND generated_at >= %s",
            (account_id, since)
        )
        row = await cur.fetchone()
        return int(row["box_count"]) if row else 0


async def open_box_conditionally(
    conn: psycopg.AsyncConnection,
    box_id: str,
    account_id: str,
    opened_at: datetime,
    multiplier: Decimal,
    final_points: int
) -> bool:
    """
    Mark a box opened only while it is still pending and unexpired at `opened_at`

    Returns False when the box was opened, expired or swept first.
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE boxes
            SET opened_at = %s,
                multiplier_applied = %s,
                final_points = %s
            WHERE id = %s
              AND account_id = %s
              AND opened_at IS NULL
              AND is_expired = false
              AND expires_at >= %s
            RETURNING id
            """,
            (opened_at, multiplier, final_points, box_id, account_id, opened_at)
        )
        return await cur.fetchone() is not None


async def mark_box_expired(conn: psycopg.AsyncConnection, box_id: str) -> bool:
    """Flag a single unopened box as expired"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE boxes
            SET is_expired = true
            WHERE id = %s
              AND opened_at IS NULL
              AND is_expired = false
            RETURNING id
            """,
            (box_id,)
        )
        return await cur.fetchone() is not None


async def expire_overdue_boxes(conn: psycopg.AsyncConnection, now: datetime) -> int:
    """
    Flag every unopened box whose expiry has passed

    Returns:
        Number of boxes newly marked expired
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE boxes
            SET is_expired = true
            WHERE opened_at IS NULL
              AND is_expired = false
              AND expires_at < %s
            """,
            (now,)
        )
        return cur.rowcount or 0


async def list_pending_boxes(conn: psycopg.AsyncConnection, account_id: str, now: datetime) -> list[dict]:
    """Unopened boxes that have not expired as of `now`, soonest expiry first"""
    async with conn.cursor() as cur:
        await cur.execute(
            f"""
            SELECT {BOX_COLUMNS}
            FROM boxes
            WHERE account_id = %s
              AND opened_at IS NULL
              AND is_expired = false
              AND expires_at >= %s
            ORDER BY expires_at
            """,
            (account_id, now)
        )
        rows = await cur.fetchall()
        return [dict(row) for row in rows]
