"""
Reward economy rules

- multiplier: badge bonuses composed into one multiplier
- streak_system: calendar-day check-in streaks and rewards
- box_economy: rarity draw and box point values
- task_rules: task completion eligibility
- badge_rules: post-commit badge unlock evaluation
- ledger: shared balance + ledger apply path
- referrals: tiered referral rewards and referrer checks
- settings: typed economy configuration snapshots
"""

from streakfarm.economy.multiplier import compose_multiplier, apply_multiplier, get_effective_multiplier
from streakfarm.economy.streak_system import evaluate_checkin, calculate_checkin_reward, next_checkin_at
from streakfarm.economy.box_economy import draw_rarity, draw_base_points, roll_box
from streakfarm.economy.task_rules import check_task_eligibility
from streakfarm.economy.badge_rules import evaluate_badge_unlocks
from streakfarm.economy.ledger import apply_delta, AppliedDelta
from streakfarm.economy.referrals import referral_reward, can_refer
from streakfarm.economy.settings import load_box_settings, load_game_config

__all__ = [
    "compose_multiplier",
    "apply_multiplier",
    "get_effective_multiplier",
    "evaluate_checkin",
    "calculate_checkin_reward",
    "next_checkin_at",
    "draw_rarity",
    "draw_base_points",
    "roll_box",
    "check_task_eligibility",
    "evaluate_badge_unlocks",
    "apply_delta",
    "AppliedDelta",
    "referral_reward",
    "can_refer",
    "load_box_settings",
    "load_game_config",
]
