"""
Referral rewards

The referrer is paid once per referee, at a rate that grows with how many
accounts they have brought in. The bonus is a flat grant and is not
multiplied by the referrer's badges.

Reward Tiers (by the referrer's count after this referral):
- 1-9 referrals: 1000 points
- 10-49 referrals: 1500 points
- 50-99 referrals: 2000 points
- 100+ referrals: 3000 points
"""

from typing import Optional

# (minimum referral count, points per referral), highest tier first
REFERRAL_TIERS = (
    (100, 3000),
    (50, 2000),
    (10, 1500),
    (1, 1000),
)


def referral_reward(referrals_count: int) -> int:
    """Points for the referral that brought the count to `referrals_count`"""
    for threshold, points in REFERRAL_TIERS:
        if referrals_count >= threshold:
            return points
    return 0


def can_refer(referrer: Optional[dict], account_id: str) -> bool:
    """
    Whether `referrer` may be recorded as the referrer of `account_id`

    Unknown codes, self-referral, banned referrers and direct two-way
    referrals are refused.
    """
    if referrer is None:
        return False
    if str(referrer["id"]) == account_id:
        return False
    if referrer["is_banned"]:
        return False
    if referrer.get("referred_by") is not None and str(referrer["referred_by"]) == account_id:
        return False
    return True
