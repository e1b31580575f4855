"""Task catalog and completion queries"""
import json
import logging
from typing import Optional
from datetime import datetime
import psycopg

logger = logging.getLogger(__name__)


async def get_task(conn: psycopg.AsyncConnection, task_id: str) -> Optional[dict]:
    """Get task catalog entry by id"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            SELECT id, title, task_type, points_reward, is_repeatable, repeat_interval_hours,
                   max_completions, requires_wallet, status, available_from, available_until
            FROM tasks
            WHERE id = %s
            """,
            (task_id,)
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def get_task_progress(conn: psycopg.AsyncConnection, account_id: str, task_id: str) -> Optional[dict]:
    """
    Per-account completion counter for a task

    Returns:
        {'completion_count': int, 'last_completed_at': datetime} or None
        if the account never completed the task
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            SELECT completion_count, last_completed_at
            FROM task_progress
            WHERE account_id = %s AND task_id = %s
            """,
            (account_id, task_id)
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def claim_task_progress(
    conn: psycopg.AsyncConnection,
    account_id: str,
    task_id: str,
    expected_count: int,
    completed_at: datetime
) -> bool:
    """
    Advance the completion counter from `expected_count` to `expected_count + 1`

    The first completion inserts the row; later ones update it only if the
    counter still holds the value read during the eligibility check.

    Returns False when a concurrent completion claimed the slot first.
    """
    async with conn.cursor() as cur:
        if expected_count == 0:
            await cur.execute(
                """
                INSERT INTO task_progress (account_id, task_id, completion_count, last_completed_at)
                VALUES (%s, %s, 1, %s)
                ON CONFLICT (account_id, task_id) DO NOTHING
                RETURNING completion_count
                """,
                (account_id, task_id, completed_at)
            )
        else:
            await cur.execute(
                """
                UPDATE task_progress
                SET completion_count = completion_count + 1,
                    last_completed_at = %s
                WHERE account_id = %s
                  AND task_id = %s
                  AND completion_count = %s
                RETURNING completion_count
                """,
                (completed_at, account_id, task_id, expected_count)
            )
        return await cur.fetchone() is not None


async def insert_task_completion(
    conn: psycopg.AsyncConnection,
    account_id: str,
    task_id: str,
    points_awarded: int,
    verification_data: dict,
    completed_at: datetime
) -> dict:
    """Append the historical completion record"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO task_completions (account_id, task_id, points_awarded, verification_data, completed_at)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id, account_id, task_id, points_awarded, completed_at
            """,
            (account_id, task_id, points_awarded, json.dumps(verification_data), completed_at)
        )
        row = await cur.fetchone()
        return dict(row)
