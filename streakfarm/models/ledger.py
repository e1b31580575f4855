"""Points ledger models"""
from enum import Enum


class LedgerSource(str, Enum):
    """What caused a balance change"""
    CHECKIN = "checkin"
    BOX = "box"
    TASK = "task"
    WALLET_BONUS = "wallet-bonus"
    REFERRAL = "referral"
