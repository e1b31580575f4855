"""Points ledger queries (append-only)"""
import logging
from typing import Optional
import psycopg

logger = logging.getLogger(__name__)


async def insert_ledger_entry(
    conn: psycopg.AsyncConnection,
    account_id: str,
    amount: int,
    balance_after: int,
    source: str,
    source_id: Optional[str],
    description: str
) -> dict:
    """
    Append one ledger entry

    Args:
        account_id: Account UUID
        amount: Signed point delta
        balance_after: Balance once the delta is applied
        source: 'checkin', 'box', 'task', 'wallet-bonus', 'referral'
        source_id: Optional id of the box/task that caused the change
        description: Human-readable description

    Returns:
        The inserted entry
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO points_ledger (account_id, amount, balance_after, source, source_id, description)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id, account_id, amount, balance_after, source, source_id, description, created_at
            """,
            (account_id, amount, balance_after, source, source_id, description)
        )
        row = await cur.fetchone()
        return dict(row)


async def get_ledger_entries(conn: psycopg.AsyncConnection, account_id: str, limit: int = 50) -> list[dict]:
    """
    Get recent ledger entries for an account

    Returns:
        Entries in reverse order of application (seq is assigned under the
        account row lock, so it follows the balance sequence)
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            SELECT id, account_id, amount, balance_after, source, source_id, description, created_at
            FROM points_ledger
            WHERE account_id = %s
            ORDER BY seq DESC
            LIMIT %s
            """,
            (account_id, limit)
        )
        rows = await cur.fetchall()
        return [dict(row) for row in rows]


async def get_ledger_totals(conn: psycopg.AsyncConnection, account_id: str) -> Optional[dict]:
    """
    Stored balance next to the running sum of all ledger entries

    Returns:
        {'balance': int, 'ledger_sum': int, 'entry_count': int} or None
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            SELECT a.balance,
                   COALESCE(SUM(l.amount), 0) AS ledger_sum,
                   COUNT(l.id) AS entry_count
            FROM accounts a
            LEFT JOIN points_ledger l ON l.account_id = a.id
            WHERE a.id = %s
            GROUP BY a.id, a.balance
            """,
            (account_id,)
        )
        row = await cur.fetchone()
        return dict(row) if row else None
