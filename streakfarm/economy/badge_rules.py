"""
Badge unlock evaluation

Runs after the operation that triggered it has committed. Each event maps
to a set of candidate badges; candidates the account already holds are
skipped, and awards are idempotent so re-running an evaluation is safe.
"""

import logging
from datetime import datetime
from typing import Dict, List

import psycopg

from streakfarm.db import queries
from streakfarm.economy.streak_system import milestone_badges_for
from streakfarm.exceptions import BadgeSupplyExhaustedError
from streakfarm.models.badge import BadgeEvent

logger = logging.getLogger(__name__)

WALLET_BADGE_ID = "ton-holder"

# Events whose badges come from catalog requirement_type/requirement_value
REQUIREMENT_COUNTERS = {
    BadgeEvent.BOX_OPENED: "boxes_opened",
    BadgeEvent.TASK_COMPLETED: "tasks_completed",
    BadgeEvent.REFERRAL_CREDITED: "referrals_count",
}


async def candidate_badges(
    conn: psycopg.AsyncConnection,
    event: BadgeEvent,
    counters: Dict[str, int]
) -> List[str]:
    """
    Badge ids the event could unlock, given the account's counters

    Args:
        event: What just happened
        counters: Account counters after the operation
            (streak_current, boxes_opened, tasks_completed, referrals_count)
    """
    if event == BadgeEvent.STREAK_REACHED:
        return milestone_badges_for(counters.get("streak_current", 0))

    if event == BadgeEvent.WALLET_LINKED:
        return [WALLET_BADGE_ID]

    counter = REQUIREMENT_COUNTERS[event]
    rows = await queries.get_badges_by_requirement(conn, counter, counters.get(counter, 0))
    return [row["id"] for row in rows if row["is_active"]]


async def award_badge(
    conn: psycopg.AsyncConnection,
    account_id: str,
    badge_id: str,
    at: datetime
) -> bool:
    """
    Award one badge

    Returns:
        True if newly awarded, False if already held or not in the catalog

    Raises:
        BadgeSupplyExhaustedError: max_supply already reached
    """
    outcome = await queries.award_badge(conn, account_id, badge_id, at)
    if outcome == "supply_exhausted":
        raise BadgeSupplyExhaustedError(badge_id, account_id=account_id)
    if outcome is None:
        logger.warning(f"Badge {badge_id} missing from catalog or inactive, not awarded")
    return outcome == "awarded"


async def evaluate_badge_unlocks(
    conn: psycopg.AsyncConnection,
    account_id: str,
    event: BadgeEvent,
    counters: Dict[str, int],
    at: datetime
) -> List[str]:
    """
    Award every badge the event qualifies the account for

    Returns:
        Ids of newly awarded badges, in evaluation order
    """
    candidates = await candidate_badges(conn, event, counters)
    if not candidates:
        return []

    held = await queries.get_earned_badge_ids(conn, account_id)
    awarded: List[str] = []

    for badge_id in candidates:
        if badge_id in held:
            continue
        try:
            if await award_badge(conn, account_id, badge_id, at):
                awarded.append(badge_id)
        except BadgeSupplyExhaustedError:
            # Logged on creation; the remaining candidates are still evaluated
            continue

    if awarded:
        logger.info(f"Account {account_id} earned badges {awarded} on {event.value}")
    return awarded
