"""
Standardized exception hierarchy for streakfarm
Provides rich context, consistent logging, and stable rejection codes
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class StreakFarmError(Exception):
    """
    Base exception for all streakfarm errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - Stable machine-readable code and HTTP status
    - Structured context
    - Automatic logging

    Example:
        raise StreakFarmError(
            message="Failed to apply ledger entry",
            account_id="8f1c...",
            operation="open_box",
            context={"box_id": "abc-123"}
        )
    """

    code: str = "internal_error"
    http_status: int = 500
    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str,
        account_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.account_id = account_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_code": self.code,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "account_id": self.account_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (caller input)
# ==========================================

class ValidationError(StreakFarmError):
    """
    Raised when a request identifier or payload is malformed

    Example:
        raise ValidationError(
            message="box_id must be a UUID",
            field="box_id",
            value="not-a-uuid"
        )
    """

    code = "invalid_request"
    http_status = 400
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Not found / not owned
# ==========================================

class NotFoundError(StreakFarmError):
    """Base class for missing resources"""

    code = "not_found"
    http_status = 404
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        kwargs.setdefault("user_message", f"{record_type or 'Record'} not found.")
        super().__init__(
            message=message,
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class AccountNotFoundError(NotFoundError):
    """Account does not exist"""

    code = "account_not_found"

    def __init__(self, account_id: str, **kwargs):
        super().__init__(
            message=f"Account {account_id} not found",
            record_type="Account",
            record_id=account_id,
            account_id=account_id,
            **kwargs
        )


class BoxNotFoundError(NotFoundError):
    """Reward box does not exist"""

    def __init__(self, box_id: str, **kwargs):
        super().__init__(
            message=f"Box {box_id} not found",
            record_type="Box",
            record_id=box_id,
            **kwargs
        )


class BoxNotOwnedError(NotFoundError):
    """Reward box belongs to another account"""

    code = "not_owned"
    http_status = 403

    def __init__(self, box_id: str, **kwargs):
        super().__init__(
            message=f"Box {box_id} is not owned by the caller",
            record_type="Box",
            record_id=box_id,
            user_message="This box doesn't belong to you.",
            **kwargs
        )


class TaskNotFoundError(NotFoundError):
    """Task does not exist"""

    def __init__(self, task_id: str, **kwargs):
        super().__init__(
            message=f"Task {task_id} not found",
            record_type="Task",
            record_id=task_id,
            **kwargs
        )


# ==========================================
# Conflicts (resource already in a terminal state)
# ==========================================

class ConflictError(StreakFarmError):
    """Base class for requests that lost to an earlier state transition"""

    code = "conflict"
    http_status = 409
    log_level = logging.WARNING


class AlreadyCheckedInError(ConflictError):
    """A check-in already landed on this calendar day"""

    code = "already_checked_in"

    def __init__(self, next_checkin_at: datetime, **kwargs):
        self.next_checkin_at = next_checkin_at
        super().__init__(
            message="Already checked in today",
            user_message="You've already checked in today. Come back tomorrow!",
            context={"next_checkin_at": next_checkin_at.isoformat()},
            **kwargs
        )


class BoxAlreadyOpenedError(ConflictError):
    """Box was opened before"""

    code = "already_opened"

    def __init__(self, box_id: str, **kwargs):
        super().__init__(
            message=f"Box {box_id} has already been opened",
            user_message="This box has already been opened.",
            context={"box_id": box_id},
            **kwargs
        )


class BoxExpiredError(ConflictError):
    """Box expired before it was opened"""

    code = "expired"

    def __init__(self, box_id: str, **kwargs):
        super().__init__(
            message=f"Box {box_id} has expired",
            user_message="This box has expired.",
            context={"box_id": box_id},
            **kwargs
        )


class TaskAlreadyCompletedError(ConflictError):
    """Non-repeatable task was completed before"""

    code = "already_completed"

    def __init__(self, task_id: str, **kwargs):
        super().__init__(
            message=f"Task {task_id} already completed",
            user_message="You've already completed this task.",
            context={"task_id": task_id},
            **kwargs
        )


class TaskOnCooldownError(ConflictError):
    """Repeatable task completed too recently"""

    code = "on_cooldown"

    def __init__(self, task_id: str, next_available_at: datetime, **kwargs):
        self.next_available_at = next_available_at
        super().__init__(
            message=f"Task {task_id} on cooldown",
            user_message="This task is on cooldown.",
            context={"task_id": task_id, "next_available_at": next_available_at.isoformat()},
            **kwargs
        )


class MaxCompletionsReachedError(ConflictError):
    """Completion cap reached for this task"""

    code = "max_completions_reached"

    def __init__(self, task_id: str, max_completions: int, **kwargs):
        super().__init__(
            message=f"Maximum completions ({max_completions}) reached for task {task_id}",
            user_message="You've reached the maximum completions for this task.",
            context={"task_id": task_id, "max_completions": max_completions},
            **kwargs
        )


class WalletAlreadyLinkedError(ConflictError):
    """Account already has a linked wallet"""

    code = "wallet_already_linked"

    def __init__(self, **kwargs):
        super().__init__(
            message="A wallet is already linked to this account",
            user_message="Your wallet is already connected.",
            **kwargs
        )


class WalletInUseError(ConflictError):
    """Wallet is linked to a different account"""

    code = "wallet_in_use"

    def __init__(self, wallet_address: str, **kwargs):
        super().__init__(
            message=f"Wallet {wallet_address} is linked to another account",
            user_message="This wallet is already connected to another account.",
            context={"wallet_address": wallet_address},
            **kwargs
        )


# ==========================================
# Preconditions
# ==========================================

class PreconditionError(StreakFarmError):
    """Base class for requests whose preconditions are unmet"""

    code = "precondition_failed"
    http_status = 422
    log_level = logging.WARNING


class TaskInactiveError(PreconditionError):
    """Task is disabled or outside its availability window"""

    code = "inactive"

    def __init__(self, task_id: str, reason: str = "Task is not active", **kwargs):
        super().__init__(
            message=f"{reason}: {task_id}",
            user_message="This task isn't available right now.",
            context={"task_id": task_id},
            **kwargs
        )


class WalletRequiredError(PreconditionError):
    """Task requires a linked wallet"""

    code = "wallet_required"

    def __init__(self, task_id: str, **kwargs):
        super().__init__(
            message=f"Wallet connection required for task {task_id}",
            user_message="Connect a wallet to complete this task.",
            context={"task_id": task_id},
            **kwargs
        )


class AccountBannedError(PreconditionError):
    """Account is soft-banned"""

    code = "account_banned"
    http_status = 403

    def __init__(self, account_id: str, **kwargs):
        super().__init__(
            message=f"Account {account_id} is banned",
            user_message="Your account has been suspended.",
            account_id=account_id,
            **kwargs
        )


class InsufficientBalanceError(PreconditionError):
    """Negative delta would take the balance below zero"""

    code = "insufficient_balance"

    def __init__(self, delta: int, **kwargs):
        super().__init__(
            message=f"Balance too low to apply delta {delta}",
            user_message="You don't have enough points.",
            context={"delta": delta},
            **kwargs
        )


class BadgeSupplyExhaustedError(PreconditionError):
    """Badge reached its maximum global supply"""

    code = "badge_supply_exhausted"

    def __init__(self, badge_id: str, **kwargs):
        super().__init__(
            message=f"Badge {badge_id} has no remaining supply",
            context={"badge_id": badge_id},
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(StreakFarmError):
    """System configuration is invalid or missing"""

    code = "configuration_error"
    http_status = 422

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(StreakFarmError):
    """
    Base class for database-related errors
    """

    code = "persistence_failure"
    http_status = 500


class ConnectionError(DatabaseError):
    """Database connection failed"""

    http_status = 503

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to the database. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        context = dict(kwargs.pop("context", None) or {})
        context["query"] = query
        super().__init__(
            message=message,
            user_message="We couldn't save your progress. Please try again.",
            context=context,
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    account_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> StreakFarmError:
    """
    Wrap store exceptions (psycopg, pool timeouts) into our exception hierarchy

    Args:
        error: Underlying exception
        operation: What operation was being performed
        account_id: Account ID if applicable
        context: Additional context

    Returns:
        Appropriate StreakFarmError subclass

    Example:
        try:
            await queries.apply_balance_delta(conn, account_id, delta)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="open_box", account_id=account_id)
    """
    import psycopg
    from psycopg_pool import PoolTimeout

    if isinstance(error, (psycopg.OperationalError, PoolTimeout)):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            account_id=account_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            account_id=account_id,
            operation=operation,
            context=context,
            cause=error
        )

    return StreakFarmError(
        message=f"{operation} failed: {str(error)}",
        account_id=account_id,
        operation=operation,
        context=context,
        cause=error
    )
