"""
Daily Check-in Streak Tracking

A check-in day is a calendar date in the reference timezone, not a rolling
24h window.

Logic:
- No previous check-in, or last check-in before yesterday: streak resets to 1
- Last check-in yesterday: streak continues (+1)
- Last check-in today: rejected with the start of tomorrow
- best = max(best, current)

Milestones at 7, 14, 30, 60, 90, 180, 365 and 730 days each map to a badge.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo
import logging

from streakfarm.exceptions import AlreadyCheckedInError
from streakfarm.models.economy_config import GameConfig
from streakfarm.utils.datetime_helpers import local_date, start_of_next_day

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (7, 14, 30, 60, 90, 180, 365, 730)


def streak_badge_id(days: int) -> str:
    return f"streak_{days}"


STREAK_BADGES = {days: streak_badge_id(days) for days in STREAK_MILESTONES}


@dataclass
class CheckinTransition:
    """Streak counters after a successful check-in"""
    streak_current: int
    streak_best: int
    streak_maintained: bool


def next_checkin_at(now: datetime, tz: ZoneInfo) -> datetime:
    """Start of the next eligible check-in window (tomorrow's midnight)"""
    return start_of_next_day(now, tz)


def is_eligible(last_checkin: Optional[datetime], now: datetime, tz: ZoneInfo) -> bool:
    """True when no check-in has landed on today's calendar date"""
    if last_checkin is None:
        return True
    return local_date(last_checkin, tz) < local_date(now, tz)


def evaluate_checkin(
    last_checkin: Optional[datetime],
    streak_current: int,
    streak_best: int,
    now: datetime,
    tz: ZoneInfo
) -> CheckinTransition:
    """
    Compute the streak transition for a check-in at `now`

    Raises:
        AlreadyCheckedInError: last check-in falls on today's date
    """
    if not is_eligible(last_checkin, now, tz):
        raise AlreadyCheckedInError(next_checkin_at=next_checkin_at(now, tz))

    today = local_date(now, tz)
    maintained = (
        last_checkin is not None
        and local_date(last_checkin, tz) == today - timedelta(days=1)
    )

    if maintained:
        new_current = (streak_current or 0) + 1
    else:
        new_current = 1
        if last_checkin is not None and streak_current:
            logger.info(
                f"Streak reset after gap: was {streak_current}, "
                f"last check-in {local_date(last_checkin, tz)}"
            )

    return CheckinTransition(
        streak_current=new_current,
        streak_best=max(streak_best or 0, new_current),
        streak_maintained=maintained,
    )


def milestone_badges_for(streak: int) -> List[str]:
    """Badge ids for every milestone at or below `streak`"""
    return [badge_id for days, badge_id in STREAK_BADGES.items() if streak >= days]


def calculate_checkin_reward(streak: int, game: GameConfig) -> Tuple[int, int]:
    """
    Raw (unmultiplied) check-in reward

    Returns:
        (base_points, streak_bonus); the reward is their sum
    """
    streak_bonus = min(streak * game.streak_bonus_per_day, game.streak_bonus_cap)
    return game.checkin_base_points, streak_bonus
