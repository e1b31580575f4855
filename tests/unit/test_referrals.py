"""Unit tests for referral rewards"""
import pytest
from uuid import uuid4

from streakfarm.economy.referrals import REFERRAL_TIERS, can_refer, referral_reward


@pytest.mark.parametrize("count,expected", [
    (0, 0),
    (1, 1000),
    (9, 1000),
    (10, 1500),
    (49, 1500),
    (50, 2000),
    (99, 2000),
    (100, 3000),
    (5000, 3000),
])
def test_referral_reward_tiers(count, expected):
    assert referral_reward(count) == expected


def test_tiers_listed_highest_first():
    thresholds = [threshold for threshold, _ in REFERRAL_TIERS]
    assert thresholds == sorted(thresholds, reverse=True)


def referrer_row(**overrides) -> dict:
    row = {"id": str(uuid4()), "is_banned": False, "referred_by": None}
    row.update(overrides)
    return row


def test_can_refer_accepts_other_account():
    assert can_refer(referrer_row(), str(uuid4())) is True


def test_can_refer_rejects_unknown_and_self():
    account_id = str(uuid4())
    assert can_refer(None, account_id) is False
    assert can_refer(referrer_row(id=account_id), account_id) is False


def test_can_refer_rejects_banned_referrer():
    assert can_refer(referrer_row(is_banned=True), str(uuid4())) is False


def test_can_refer_rejects_two_way_referral():
    account_id = str(uuid4())
    assert can_refer(referrer_row(referred_by=account_id), account_id) is False
