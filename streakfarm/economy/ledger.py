"""
Shared delta-application path

The balance update and the ledger append run on the caller's transaction,
so either both persist or neither does.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import psycopg

from streakfarm.db import queries
from streakfarm.exceptions import AccountNotFoundError, InsufficientBalanceError
from streakfarm.models.ledger import LedgerSource

logger = logging.getLogger(__name__)


@dataclass
class AppliedDelta:
    """Account state right after a delta was applied"""
    amount: int
    balance: int
    boxes_opened: int
    tasks_completed: int
    ledger_entry_id: str


async def apply_delta(
    conn: psycopg.AsyncConnection,
    account_id: str,
    amount: int,
    source: LedgerSource,
    description: str,
    source_id: Optional[str] = None,
    boxes_opened_delta: int = 0,
    tasks_completed_delta: int = 0,
    at: Optional[datetime] = None
) -> AppliedDelta:
    """
    Apply a point delta and append its ledger entry

    Must run inside a transaction opened by the caller.

    Raises:
        InsufficientBalanceError: a negative delta would overdraw the account
        AccountNotFoundError: the account row is missing
    """
    updated = await queries.apply_balance_delta(
        conn,
        account_id,
        amount,
        boxes_opened_delta=boxes_opened_delta,
        tasks_completed_delta=tasks_completed_delta,
        active_at=at
    )
    if updated is None:
        if amount < 0:
            raise InsufficientBalanceError(amount, account_id=account_id)
        raise AccountNotFoundError(account_id)

    entry = await queries.insert_ledger_entry(
        conn,
        account_id,
        amount,
        updated["balance"],
        source.value,
        source_id,
        description
    )

    logger.info(
        f"Applied {amount:+d} points to account {account_id} "
        f"({source.value}), balance now {updated['balance']}"
    )

    return AppliedDelta(
        amount=amount,
        balance=updated["balance"],
        boxes_opened=updated["boxes_opened"],
        tasks_completed=updated["tasks_completed"],
        ledger_entry_id=str(entry["id"]),
    )
