"""
Multiplier Engine

The effective multiplier is 1.0 plus the sum of the bonus-above-baseline of
every active badge the account holds. Summation keeps many small badges from
compounding. Always recomputed from current badge state; never cached.
"""

import math
import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable

import psycopg

from streakfarm.db import queries

logger = logging.getLogger(__name__)

BASE_MULTIPLIER = Decimal("1")


def compose_multiplier(bonuses: Iterable[Decimal]) -> Decimal:
    """
    Compose badge bonuses into one multiplier

    Args:
        bonuses: multiplier_bonus of each active badge (contribution above 1.0)

    Returns:
        1 + sum(bonuses); exactly 1 for no badges
    """
    total = BASE_MULTIPLIER
    for bonus in bonuses:
        # A bonus never pulls the multiplier below baseline
        total += max(Decimal(bonus), Decimal("0"))
    return total


def apply_multiplier(points: int, multiplier: Decimal) -> int:
    """Scale raw points by the multiplier and floor to an integer"""
    return math.floor(Decimal(points) * multiplier)


async def get_effective_multiplier(
    conn: psycopg.AsyncConnection,
    account_id: str,
    at: datetime
) -> Decimal:
    """Read the account's active badges and compose their multiplier"""
    rows = await queries.get_active_badge_bonuses(conn, account_id, at)
    multiplier = compose_multiplier(
        Decimal(str(row["multiplier_bonus"])) for row in rows
    )
    logger.debug(
        f"Multiplier for account {account_id}: {multiplier} "
        f"({len(rows)} active badges)"
    )
    return multiplier
