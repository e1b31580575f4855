"""Badge models for the multiplier economy"""
from enum import Enum


class BadgeEvent(str, Enum):
    """Events after which badge unlocks are evaluated"""
    STREAK_REACHED = "streak_reached"
    WALLET_LINKED = "wallet_linked"
    BOX_OPENED = "box_opened"
    TASK_COMPLETED = "task_completed"
    REFERRAL_CREDITED = "referral_credited"
