"""Badge catalog and earned-badge queries"""
import logging
from typing import Optional
from datetime import datetime
import psycopg

logger = logging.getLogger(__name__)

BADGE_COLUMNS = """
    b.id, b.name, b.description, b.rarity, b.category, b.multiplier_bonus,
    b.requirement_type, b.requirement_value, b.active_from, b.active_until,
    b.max_supply, b.current_supply, b.is_active
"""


async def get_active_badge_bonuses(
    conn: psycopg.AsyncConnection,
    account_id: str,
    at: datetime
) -> list[dict]:
    """
    Multiplier bonuses of every badge the account holds that is active at `at`

    A badge counts only when both the holding and the catalog entry are
    active and `at` lies inside the badge's optional time window.

    Returns:
        [{'badge_id': str, 'multiplier_bonus': Decimal}, ...]
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            SELECT eb.badge_id, b.multiplier_bonus
            FROM earned_badges eb
            JOIN badges b ON b.id = eb.badge_id
            WHERE eb.account_id = %s
              AND eb.is_active = true
              AND b.is_active = true
              AND (b.active_from IS NULL OR b.active_from <= %s)
              AND (b.active_until IS NULL OR b.active_until >= %s)
            ORDER BY eb.badge_id
            """,
            (account_id, at, at)
        )
        rows = await cur.fetchall()
        return [dict(row) for row in rows]


async def get_earned_badge_ids(conn: psycopg.AsyncConnection, account_id: str) -> set[str]:
    """Ids of all badges the account already holds"""
    async with conn.cursor() as cur:
        await cur.execute(
            "SELECT badge_id FROM earned_badges WHERE account_id = %s",
            (account_id,)
        )
        rows = await cur.fetchall()
        return {row["badge_id"] for row in rows}


async def get_badges_by_requirement(
    conn: psycopg.AsyncConnection,
    requirement_type: str,
    max_value: int
) -> list[dict]:
    """
    Catalog badges of one requirement type whose threshold is met by `max_value`

    Args:
        requirement_type: e.g. 'boxes_opened', 'tasks_completed'
        max_value: The account's current counter
    """
    async with conn.cursor() as cur:
        await cur.execute(
            f"""
            SELECT {BADGE_COLUMNS}
            FROM badges b
            WHERE b.requirement_type = %s
              AND b.requirement_value IS NOT NULL
              AND b.requirement_value <= %s
            ORDER BY b.requirement_value
            """,
            (requirement_type, max_value)
        )
        rows = await cur.fetchall()
        return [dict(row) for row in rows]


async def award_badge(
    conn: psycopg.AsyncConnection,
    account_id: str,
    badge_id: str,
    earned_at: datetime
) -> Optional[str]:
    """
    Award a badge to an account

    Runs in a savepoint so a lost supply race or duplicate award leaves the
    surrounding transaction usable.

    Returns:
        'awarded', 'duplicate', 'supply_exhausted' or None if the badge is
        not in the catalog or is inactive
    """
    async with conn.transaction():
        async with conn.cursor() as cur:
            # Supply is claimed first; the conditional increment serializes racers
            await cur.execute(
                """
                UPDATE badges
                SET current_supply = current_supply + 1
                WHERE id = %s
                  AND is_active = true
                  AND (max_supply IS NULL OR current_supply < max_supply)
                RETURNING id
                """,
                (badge_id,)
            )
            claimed = await cur.fetchone()

            if not claimed:
                await cur.execute(
                    "SELECT is_active, max_supply FROM badges WHERE id = %s",
                    (badge_id,)
                )
                badge = await cur.fetchone()
                if not badge or not badge["is_active"]:
                    return None
                return "supply_exhausted"

            await cur.execute(
                """
                INSERT INTO earned_badges (account_id, badge_id, earned_at, is_active)
                VALUES (%s, %s, %s, true)
                ON CONFLICT (account_id, badge_id) DO NOTHING
                RETURNING id
                """,
                (account_id, badge_id, earned_at)
            )
            inserted = await cur.fetchone()

            if not inserted:
                # Already held; give the claimed unit back
                await cur.execute(
                    "UPDATE badges SET current_supply = current_supply - 1 WHERE id = %s",
                    (badge_id,)
                )
                return "duplicate"

    logger.info(f"Badge {badge_id} awarded to account {account_id}")
    return "awarded"


async def list_earned_badges(conn: psycopg.AsyncConnection, account_id: str) -> list[dict]:
    """Badges held by the account, with catalog details"""
    async with conn.cursor() as cur:
        await cur.execute(
            f"""
            SELECT {BADGE_COLUMNS}, eb.earned_at, eb.is_active AS holding_active
            FROM earned_badges eb
            JOIN badges b ON b.id = eb.badge_id
            WHERE eb.account_id = %s
            ORDER BY eb.earned_at
            """,
            (account_id,)
        )
        rows = await cur.fetchall()
        return [dict(row) for row in rows]
