"""Account database queries"""
import logging
from typing import Optional
from datetime import datetime
import psycopg

logger = logging.getLogger(__name__)

ACCOUNT_COLUMNS = """
    id, telegram_id, username, balance, streak_current, streak_best, last_checkin,
    boxes_opened, tasks_completed, wallet_address, wallet_connected_at,
    is_banned, last_active_at, created_at, referral_code, referred_by, referrals_count
"""


async def ensure_account(
    conn: psycopg.AsyncConnection,
    telegram_id: str,
    username: Optional[str] = None
) -> dict:
    """
    Create the account for an external identity, or return the existing one.

    Uses DO UPDATE so the row is returned in both cases.
    """
    async with conn.cursor() as cur:
        await cur.execute(
            f"""
            INSERT INTO accounts (telegram_id, username, last_active_at)
            VALUES (%s, %s, CURRENT_TIMESTAMP)
            ON CONFLICT (telegram_id) DO UPDATE SET
                username = COALESCE(EXCLUDED.username, accounts.username),
                last_active_at = CURRENT_TIMESTAMP
            RETURNING {ACCOUNT_COLUMNS}
            """,
            (telegram_id, username)
        )
        row = await cur.fetchone()

    logger.info(f"Ensured account exists for telegram_id {telegram_id}")
    return dict(row)


async def get_account(conn: psycopg.AsyncConnection, account_id: str) -> Optional[dict]:
    """Get account by id"""
    async with conn.cursor() as cur:
        await cur.execute(
            f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE id = %s",
            (account_id,)
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def get_account_by_referral_code(conn: psycopg.AsyncConnection, referral_code: str) -> Optional[dict]:
    """Get the account that owns a referral code"""
    async with conn.cursor() as cur:
        await cur.execute(
            f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE referral_code = %s",
            (referral_code,)
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def link_referrer(
    conn: psycopg.AsyncConnection,
    account_id: str,
    referrer_id: str
) -> bool:
    """
    Record who referred an account, only if no referrer is set yet.

    Returns False when the account already has a referrer (zero rows affected).
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE accounts
            SET referred_by = %s
            WHERE id = %s
              AND id <> %s
              AND referred_by IS NULL
            RETURNING id
            """,
            (referrer_id, account_id, referrer_id)
        )
        return await cur.fetchone() is not None


async def increment_referrals(conn: psycopg.AsyncConnection, referrer_id: str) -> Optional[int]:
    """Bump the referrer's referral count; returns the new count"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE accounts
            SET referrals_count = referrals_count + 1
            WHERE id = %s
            RETURNING referrals_count
            """,
            (referrer_id,)
        )
        row = await cur.fetchone()
        return row["referrals_count"] if row else None



async def record_checkin(
    conn: psycopg.AsyncConnection,
    account_id: str,
    expected_last_checkin: Optional[datetime],
    checked_in_at: datetime,
    streak_current: int,
    streak_best: int
) -> bool:
    """
    Record a check-in if `last_checkin` still holds the value the caller read.

    Returns False when another check-in landed first (zero rows affected).
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE accounts
            SET streak_current = %s,
                streak_best = %s,
                last_checkin = %s,
                last_active_at = %s
            WHERE id = %s
              AND is_banned = false
              AND last_checkin IS NOT DISTINCT FROM %s
            RETURNING id
            """,
            (
                streak_current,
                streak_best,
                checked_in_at,
                checked_in_at,
                account_id,
                expected_last_checkin
            )
        )
        return await cur.fetchone() is not None


async def link_wallet(
    conn: psycopg.AsyncConnection,
    account_id: str,
    wallet_address: str,
    linked_at: datetime
) -> bool:
    """Link a wallet only if none is linked yet"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE accounts
            SET wallet_address = %s,
                wallet_connected_at = %s,
                last_active_at = %s
            WHERE id = %s
              AND is_banned = false
              AND wallet_address IS NULL
            RETURNING id
            """,
            (wallet_address, linked_at, linked_at, account_id)
        )
        return await cur.fetchone() is not None


async def apply_balance_delta(
    conn: psycopg.AsyncConnection,
    account_id: str,
    delta: int,
    boxes_opened_delta: int = 0,
    tasks_completed_delta: int = 0,
    active_at: Optional[datetime] = None
) -> Optional[dict]:
    """
    Add `delta` to the balance and bump completion counters in one row update.

    The increment happens in the store, so concurrent deltas never overwrite
    each other. Returns None when the account is missing or the balance
    would go negative.

    Returns:
        {'balance': int, 'boxes_opened': int, 'tasks_completed': int}
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE accounts
            SET balance = balance + %s,
                boxes_opened = boxes_opened + %s,
                tasks_completed = tasks_completed + %s,
                last_active_at = COALESCE(%s, last_active_at)
            WHERE id = %s
              AND balance + %s >= 0
            RETURNING balance, boxes_opened, tasks_completed
            """,
            (delta, boxes_opened_delta, tasks_completed_delta, active_at, account_id, delta)
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def list_active_account_ids(conn: psycopg.AsyncConnection, active_since: datetime) -> list[str]:
    """Ids of non-banned accounts active at or after `active_since`"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            SELECT id
            FROM accounts
            WHERE is_banned = false
              AND last_active_at >= %s
            ORDER BY id
            """,
            (active_since,)
        )
        rows = await cur.fetchall()
        return [str(row["id"]) for row in rows]
