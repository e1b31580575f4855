"""
Database queries - re-exported so callers can use `queries.<fn>`.

Every function takes an open connection first, so several calls can share
one transaction.

Module organization:
- accounts.py: Accounts, check-in, wallet and referral conditional writes, balance deltas
- ledger.py: Append-only points ledger
- badges.py: Badge catalog, awards with supply limits, active bonuses
- boxes.py: Reward boxes and their state transitions
- tasks.py: Task catalog, completion counters, completion records
- admin_config.py: Tunable economy configuration blobs
"""

from streakfarm.db.queries.accounts import (
    ensure_account,
    get_account,
    get_account_by_referral_code,
    link_referrer,
    increment_referrals,
    record_checkin,
    link_wallet,
    apply_balance_delta,
    list_active_account_ids,
)

from streakfarm.db.queries.ledger import (
    insert_ledger_entry,
    get_ledger_entries,
    get_ledger_totals,
)

from streakfarm.db.queries.badges import (
    get_active_badge_bonuses,
    get_earned_badge_ids,
    get_badges_by_requirement,
    award_badge,
    list_earned_badges,
)

from streakfarm.db.queries.boxes import (
    get_box,
    insert_box,
    count_boxes_since,
    open_box_conditionally,
    mark_box_expired,
    expire_overdue_boxes,
    list_pending_boxes,
)

from streakfarm.db.queries.tasks import (
    get_task,
    get_task_progress,
    claim_task_progress,
    insert_task_completion,
)

from streakfarm.db.queries.admin_config import (
    get_config_value,
)

__all__ = [
    # Accounts
    "ensure_account",
    "get_account",
    "get_account_by_referral_code",
    "link_referrer",
    "increment_referrals",
    "record_checkin",
    "link_wallet",
    "apply_balance_delta",
    "list_active_account_ids",
    # Ledger
    "insert_ledger_entry",
    "get_ledger_entries",
    "get_ledger_totals",
    # Badges
    "get_active_badge_bonuses",
    "get_earned_badge_ids",
    "get_badges_by_requirement",
    "award_badge",
    "list_earned_badges",
    # Boxes
    "get_box",
    "insert_box",
    "count_boxes_since",
    "open_box_conditionally",
    "mark_box_expired",
    "expire_overdue_boxes",
    "list_pending_boxes",
    # Tasks
    "get_task",
    "get_task_progress",
    "claim_task_progress",
    "insert_task_completion",
    # Admin config
    "get_config_value",
]
