"""
Task eligibility rules

Checked in a fixed order; the first failing rule decides the rejection:
1. task exists, is active and inside its availability window
2. linked wallet present when the task requires one
3. completion count below max_completions
4. non-repeatable task never completed
5. cooldown since the last completion has elapsed
"""

import logging
from datetime import datetime
from typing import Optional

from streakfarm.exceptions import (
    MaxCompletionsReachedError,
    TaskAlreadyCompletedError,
    TaskInactiveError,
    TaskNotFoundError,
    TaskOnCooldownError,
    WalletRequiredError,
)
from streakfarm.models.task import Task, TaskStatus

logger = logging.getLogger(__name__)


def check_task_eligibility(
    task: Optional[Task],
    task_id: str,
    completion_count: int,
    last_completed_at: Optional[datetime],
    has_wallet: bool,
    now: datetime
) -> Task:
    """
    Validate a completion claim against the account's history for this task

    Args:
        task: Catalog entry, or None if the id is unknown
        task_id: Requested id (for error context)
        completion_count: Completions already recorded for this account
        last_completed_at: Timestamp of the most recent completion
        has_wallet: Whether the account has a linked wallet
        now: Evaluation time

    Returns:
        The task, when the claim is eligible

    Raises:
        TaskNotFoundError, TaskInactiveError, WalletRequiredError,
        MaxCompletionsReachedError, TaskAlreadyCompletedError,
        TaskOnCooldownError
    """
    if task is None:
        raise TaskNotFoundError(task_id)

    if task.status != TaskStatus.ACTIVE:
        raise TaskInactiveError(task_id, reason=f"Task is {task.status.value}")
    if task.available_from is not None and now < task.available_from:
        raise TaskInactiveError(task_id, reason="Task is not available yet")
    if task.available_until is not None and now > task.available_until:
        raise TaskInactiveError(task_id, reason="Task is no longer available")

    if task.requires_wallet and not has_wallet:
        raise WalletRequiredError(task_id)

    if task.max_completions is not None and completion_count >= task.max_completions:
        raise MaxCompletionsReachedError(task_id, task.max_completions)

    if not task.is_repeatable and completion_count > 0:
        raise TaskAlreadyCompletedError(task_id)

    cooldown = task.cooldown
    if task.is_repeatable and cooldown and last_completed_at is not None:
        next_available_at = last_completed_at + cooldown
        if now < next_available_at:
            raise TaskOnCooldownError(task_id, next_available_at=next_available_at)

    return task
