"""
EconomyService - Reward Economy Orchestrator

Every mutating operation follows the same sequence:
compute effective multiplier -> compute delta -> conditional state write ->
apply delta + append ledger entry (one transaction) -> evaluate badge unlocks
(post-commit, own transaction).

State transitions are conditional writes on the prior state; zero rows
affected means another request won the race and is reported as a conflict.
Nothing here retries.
"""

import functools
import logging
import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import psycopg
from psycopg_pool import PoolTimeout

from streakfarm.config import get_reference_timezone
from streakfarm.db import queries
from streakfarm.economy import (
    apply_delta,
    apply_multiplier,
    calculate_checkin_reward,
    can_refer,
    check_task_eligibility,
    evaluate_badge_unlocks,
    evaluate_checkin,
    get_effective_multiplier,
    load_box_settings,
    load_game_config,
    next_checkin_at,
    referral_reward,
    roll_box,
)
from streakfarm.economy.box_economy import is_overdue
from streakfarm.economy.streak_system import is_eligible
from streakfarm.exceptions import (
    AccountBannedError,
    AccountNotFoundError,
    AlreadyCheckedInError,
    BoxAlreadyOpenedError,
    BoxExpiredError,
    BoxNotFoundError,
    BoxNotOwnedError,
    StreakFarmError,
    TaskAlreadyCompletedError,
    ValidationError,
    WalletAlreadyLinkedError,
    WalletInUseError,
    wrap_external_exception,
)
from streakfarm.models.badge import BadgeEvent
from streakfarm.models.ledger import LedgerSource
from streakfarm.models.task import Task
from streakfarm.monitoring import (
    record_badges,
    record_box_generated,
    record_boxes_expired,
    record_points,
    track_operation,
)
from streakfarm.utils.datetime_helpers import hour_slot_start, local_date, now_utc, start_of_day
from streakfarm.validators import (
    normalize_referral_code,
    require_task_id,
    require_uuid,
    validate_verification_payload,
    validate_wallet_address,
)

logger = logging.getLogger(__name__)

MAX_LEDGER_PAGE = 200


def economy_operation(operation: str, account_scoped: bool = True):
    """
    Instrument a service method and translate store failures

    psycopg and pool errors become DatabaseError subclasses; errors from our
    own hierarchy pass through unchanged.
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            account_id = kwargs.get("account_id") or (args[0] if account_scoped and args else None)
            with track_operation(operation):
                try:
                    return await func(self, *args, **kwargs)
                except StreakFarmError:
                    raise
                except (psycopg.Error, PoolTimeout) as e:
                    raise wrap_external_exception(
                        e,
                        operation=operation,
                        account_id=str(account_id) if account_id else None
                    )
        return wrapper
    return decorator


class EconomyService:
    """
    Service for the reward economy.

    Responsibilities:
    - Daily check-ins and streaks
    - Reward box generation, expiry and opening
    - Task completion
    - Wallet link bonus
    - Referral rewards
    - Badge unlocks after each mutation
    - Read models for accounts, boxes, ledger and badges
    """

    def __init__(
        self,
        db_connection,
        clock: Callable[[], datetime] = now_utc,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize EconomyService.

        Args:
            db_connection: Database instance (provides connection()/transaction())
            clock: Returns the current UTC time
            rng: Random source for box rolls
        """
        self.db = db_connection
        self.clock = clock
        self.rng = rng or random.Random()
        logger.debug("EconomyService initialized")

    # ==========================================
    # Shared helpers
    # ==========================================

    async def _load_account(
        self,
        conn: psycopg.AsyncConnection,
        account_id: str,
        mutating: bool = True
    ) -> Dict[str, Any]:
        account = await queries.get_account(conn, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if mutating and account["is_banned"]:
            raise AccountBannedError(account_id)
        return account

    async def _evaluate_badges(
        self,
        account_id: str,
        event: BadgeEvent,
        counters: Dict[str, int],
        at: datetime
    ) -> List[str]:
        """Post-commit badge evaluation in its own transaction"""
        async with self.db.transaction() as conn:
            earned = await evaluate_badge_unlocks(conn, account_id, event, counters, at)
        record_badges(earned)
        return earned

    # ==========================================
    # Check-in
    # ==========================================

    @economy_operation("check_in")
    async def check_in(self, account_id: str) -> Dict[str, Any]:
        """
        Daily check-in.

        Returns:
            {
                'streak_current': int,
                'streak_best': int,
                'streak_maintained': bool,
                'base_points': int,
                'streak_bonus': int,
                'multiplier': float,
                'points_awarded': int,
                'new_balance': int,
                'earned_badges': list[str],
                'next_checkin_at': datetime
            }

        Raises:
            AlreadyCheckedInError: a check-in already landed today
        """
        account_id = require_uuid(account_id, "account_id")
        now = self.clock()
        tz = get_reference_timezone()

        async with self.db.transaction() as conn:
            account = await self._load_account(conn, account_id)
            game = await load_game_config(conn)

            transition = evaluate_checkin(
                account["last_checkin"],
                account["streak_current"],
                account["streak_best"],
                now,
                tz
            )

            claimed = await queries.record_checkin(
                conn,
                account_id,
                account["last_checkin"],
                now,
                transition.streak_current,
                transition.streak_best
            )
            if not claimed:
                raise AlreadyCheckedInError(next_checkin_at(now, tz), account_id=account_id)

            multiplier = await get_effective_multiplier(conn, account_id, now)
            base_points, streak_bonus = calculate_checkin_reward(transition.streak_current, game)
            points = apply_multiplier(base_points + streak_bonus, multiplier)

            applied = await apply_delta(
                conn,
                account_id,
                points,
                LedgerSource.CHECKIN,
                f"Daily check-in (Day {transition.streak_current})",
                at=now
            )

        record_points(LedgerSource.CHECKIN.value, points)
        logger.info(
            f"Account {account_id} checked in: day {transition.streak_current}, "
            f"+{points} points"
        )

        earned = await self._evaluate_badges(
            account_id,
            BadgeEvent.STREAK_REACHED,
            {"streak_current": transition.streak_current},
            now
        )

        return {
            "streak_current": transition.streak_current,
            "streak_best": transition.streak_best,
            "streak_maintained": transition.streak_maintained,
            "base_points": base_points,
            "streak_bonus": streak_bonus,
            "multiplier": float(multiplier),
            "points_awarded": points,
            "new_balance": applied.balance,
            "earned_badges": earned,
            "next_checkin_at": next_checkin_at(now, tz),
        }

    # ==========================================
    # Boxes
    # ==========================================

    async def _box_conflict(self, conn: psycopg.AsyncConnection, box_id: str, account_id: str) -> StreakFarmError:
        """Error for an open that lost its conditional write"""
        box = await queries.get_box(conn, box_id)
        if box and box["opened_at"] is not None:
            return BoxAlreadyOpenedError(box_id, account_id=account_id)
        return BoxExpiredError(box_id, account_id=account_id)

    @economy_operation("open_box")
    async def open_box(self, account_id: str, box_id: str) -> Dict[str, Any]:
        """
        Open a pending box owned by the account.

        A box whose expiry has silently passed is marked expired (and that
        change committed) before the expired rejection is raised.

        Returns:
            {
                'box_id': str,
                'rarity': str,
                'base_points': int,
                'multiplier_applied': float,
                'final_points': int,
                'new_balance': int,
                'total_boxes_opened': int,
                'earned_badges': list[str]
            }
        """
        account_id = require_uuid(account_id, "account_id")
        box_id = require_uuid(box_id, "box_id")
        now = self.clock()
        expired_on_open = False

        async with self.db.transaction() as conn:
            await self._load_account(conn, account_id)

            box = await queries.get_box(conn, box_id)
            if box is None:
                raise BoxNotFoundError(box_id, account_id=account_id)
            if str(box["account_id"]) != account_id:
                raise BoxNotOwnedError(box_id, account_id=account_id)
            if box["opened_at"] is not None:
                raise BoxAlreadyOpenedError(box_id, account_id=account_id)
            if box["is_expired"]:
                raise BoxExpiredError(box_id, account_id=account_id)

            if is_overdue(box["expires_at"], now):
                await queries.mark_box_expired(conn, box_id)
                expired_on_open = True
            else:
                multiplier = await get_effective_multiplier(conn, account_id, now)
                final_points = apply_multiplier(box["base_points"], multiplier)

                opened = await queries.open_box_conditionally(
                    conn, box_id, account_id, now, multiplier, final_points
                )
                if not opened:
                    raise await self._box_conflict(conn, box_id, account_id)

                applied = await apply_delta(
                    conn,
                    account_id,
                    final_points,
                    LedgerSource.BOX,
                    f"Opened {box['rarity']} box",
                    source_id=box_id,
                    boxes_opened_delta=1,
                    at=now
                )

        if expired_on_open:
            raise BoxExpiredError(box_id, account_id=account_id)

        record_points(LedgerSource.BOX.value, final_points)
        logger.info(
            f"Account {account_id} opened {box['rarity']} box {box_id}: "
            f"{box['base_points']} x {multiplier} = {final_points}"
        )

        earned = await self._evaluate_badges(
            account_id,
            BadgeEvent.BOX_OPENED,
            {"boxes_opened": applied.boxes_opened},
            now
        )

        return {
            "box_id": box_id,
            "rarity": box["rarity"],
            "base_points": box["base_points"],
            "multiplier_applied": float(multiplier),
            "final_points": final_points,
            "new_balance": applied.balance,
            "total_boxes_opened": applied.boxes_opened,
            "earned_badges": earned,
        }

    @economy_operation("generate_boxes", account_scoped=False)
    async def generate_boxes(self) -> Dict[str, int]:
        """
        Scheduled box generation for every active account.

        Each account is handled in its own transaction; a failure is logged,
        counted and does not stop the batch. Refuses to run when the box
        settings are invalid.

        Returns:
            {'boxes_created': int, 'accounts_scanned': int, 'errors_count': int}
        """
        now = self.clock()
        tz = get_reference_timezone()

        async with self.db.connection() as conn:
            settings = await load_box_settings(conn)
            account_ids = await queries.list_active_account_ids(
                conn, now - timedelta(days=settings.active_window_days)
            )

        slot_start = hour_slot_start(now)
        day_start = start_of_day(local_date(now, tz), tz)
        created = 0
        errors = 0

        for account_id in account_ids:
            try:
                async with self.db.transaction() as conn:
                    generated_today = await queries.count_boxes_since(conn, account_id, day_start)
                    if generated_today >= settings.max_boxes_per_day:
                        continue

                    rolled = roll_box(settings, now, self.rng)
                    box = await queries.insert_box(
                        conn,
                        account_id,
                        rolled.rarity.value,
                        rolled.base_points,
                        slot_start,
                        now,
                        rolled.expires_at
                    )
            except (psycopg.Error, PoolTimeout, StreakFarmError) as e:
                errors += 1
                logger.error(f"Box generation failed for account {account_id}: {e}", exc_info=True)
                continue

            if box:
                created += 1
                record_box_generated(rolled.rarity.value)

        logger.info(
            f"Box generation: {created} created, {len(account_ids)} accounts scanned, "
            f"{errors} errors"
        )
        return {
            "boxes_created": created,
            "accounts_scanned": len(account_ids),
            "errors_count": errors,
        }

    @economy_operation("expire_boxes", account_scoped=False)
    async def expire_boxes(self) -> Dict[str, int]:
        """
        Scheduled expiry sweep. Idempotent.

        Returns:
            {'boxes_expired': int}
        """
        now = self.clock()
        async with self.db.transaction() as conn:
            expired = await queries.expire_overdue_boxes(conn, now)

        record_boxes_expired(expired)
        logger.info(f"Expiry sweep marked {expired} boxes expired")
        return {"boxes_expired": expired}

    # ==========================================
    # Tasks
    # ==========================================

    @economy_operation("complete_task")
    async def complete_task(
        self,
        account_id: str,
        task_id: str,
        verification_data: Optional[dict] = None
    ) -> Dict[str, Any]:
        """
        Complete a task.

        The verification payload is stored verbatim.

        Returns:
            {
                'task_id': str,
                'points_awarded': int,
                'multiplier': float,
                'new_balance': int,
                'total_tasks_completed': int,
                'earned_badges': list[str]
            }
        """
        account_id = require_uuid(account_id, "account_id")
        task_id = require_task_id(task_id)
        payload = validate_verification_payload(verification_data)
        now = self.clock()

        async with self.db.transaction() as conn:
            account = await self._load_account(conn, account_id)
            has_wallet = bool(account["wallet_address"])

            row = await queries.get_task(conn, task_id)
            task = Task.model_validate(row) if row else None

            progress = await queries.get_task_progress(conn, account_id, task_id) or {}
            completion_count = progress.get("completion_count", 0)

            task = check_task_eligibility(
                task,
                task_id,
                completion_count,
                progress.get("last_completed_at"),
                has_wallet,
                now
            )

            claimed = await queries.claim_task_progress(conn, account_id, task_id, completion_count, now)
            if not claimed:
                # Lost the race; report whatever the winner's completion now implies
                fresh = await queries.get_task_progress(conn, account_id, task_id) or {}
                check_task_eligibility(
                    task,
                    task_id,
                    fresh.get("completion_count", 0),
                    fresh.get("last_completed_at"),
                    has_wallet,
                    now
                )
                raise TaskAlreadyCompletedError(task_id, account_id=account_id)

            multiplier = await get_effective_multiplier(conn, account_id, now)
            points = apply_multiplier(task.points_reward, multiplier)

            await queries.insert_task_completion(conn, account_id, task_id, points, payload, now)
            applied = await apply_delta(
                conn,
                account_id,
                points,
                LedgerSource.TASK,
                f"Completed task: {task.title}",
                source_id=task_id,
                tasks_completed_delta=1,
                at=now
            )

        record_points(LedgerSource.TASK.value, points)
        logger.info(f"Account {account_id} completed task {task_id}: +{points} points")

        earned = await self._evaluate_badges(
            account_id,
            BadgeEvent.TASK_COMPLETED,
            {"tasks_completed": applied.tasks_completed},
            now
        )

        return {
            "task_id": task_id,
            "points_awarded": points,
            "multiplier": float(multiplier),
            "new_balance": applied.balance,
            "total_tasks_completed": applied.tasks_completed,
            "earned_badges": earned,
        }

    # ==========================================
    # Wallet
    # ==========================================

    @economy_operation("connect_wallet")
    async def connect_wallet(self, account_id: str, wallet_address: str) -> Dict[str, Any]:
        """
        Link a wallet and credit the one-time connection bonus (unmultiplied).

        A wallet held by another account is rejected as a conflict.

        Returns:
            {'wallet_address': str, 'points_awarded': int, 'new_balance': int, 'earned_badges': list[str]}
        """
        account_id = require_uuid(account_id, "account_id")
        address = validate_wallet_address(wallet_address)
        now = self.clock()

        async with self.db.transaction() as conn:
            account = await self._load_account(conn, account_id)
            if account["wallet_address"]:
                raise WalletAlreadyLinkedError(account_id=account_id)

            game = await load_game_config(conn)

            try:
                linked = await queries.link_wallet(conn, account_id, address, now)
            except psycopg.errors.UniqueViolation as e:
                raise WalletInUseError(address, account_id=account_id, cause=e)
            if not linked:
                raise WalletAlreadyLinkedError(account_id=account_id)


            bonus = game.wallet_connect_bonus
            applied = await apply_delta(
                conn,
                account_id,
                bonus,
                LedgerSource.WALLET_BONUS,
                "Wallet connection bonus",
                at=now
            )

        record_points(LedgerSource.WALLET_BONUS.value, bonus)
        logger.info(f"Account {account_id} linked wallet, +{bonus} points")

        earned = await self._evaluate_badges(account_id, BadgeEvent.WALLET_LINKED, {}, now)

        return {
            "wallet_address": address,
            "points_awarded": bonus,
            "new_balance": applied.balance,
            "earned_badges": earned,
        }

    # ==========================================
    # Accounts and read models
    # ==========================================

    async def _summarize(self, conn: psycopg.AsyncConnection, account: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        tz = get_reference_timezone()
        account_id = str(account["id"])
        multiplier: Decimal = await get_effective_multiplier(conn, account_id, now)
        can_check_in = is_eligible(account["last_checkin"], now, tz)

        return {
            "id": account_id,
            "telegram_id": account["telegram_id"],
            "username": account["username"],
            "balance": account["balance"],
            "streak_current": account["streak_current"],
            "streak_best": account["streak_best"],
            "last_checkin": account["last_checkin"],
            "boxes_opened": account["boxes_opened"],
            "tasks_completed": account["tasks_completed"],
            "wallet_address": account["wallet_address"],
            "is_banned": account["is_banned"],
            "referral_code": account["referral_code"],
            "referred_by": str(account["referred_by"]) if account["referred_by"] else None,
            "referrals_count": account["referrals_count"],
            "multiplier": float(multiplier),
            "can_check_in": can_check_in,
            "next_checkin_at": now if can_check_in else next_checkin_at(now, tz),
        }

    @economy_operation("ensure_account", account_scoped=False)
    async def ensure_account(
        self,
        telegram_id: str,
        username: Optional[str] = None,
        referral_code: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create or return the account for an external identity.

        An account that has no referrer yet may present a referral code; the
        referrer is linked and credited in the same transaction. Unknown or
        ineligible codes are ignored and the account is still returned.
        """
        if not isinstance(telegram_id, str) or not telegram_id.strip() or len(telegram_id) > 64:
            raise ValidationError("must be a non-empty identifier", field="telegram_id", value=telegram_id)
        code = normalize_referral_code(referral_code)

        now = self.clock()
        referral = None
        async with self.db.transaction() as conn:
            account = await queries.ensure_account(conn, telegram_id.strip(), username)
            if code and account["referred_by"] is None and not account["is_banned"]:
                referral = await self._credit_referrer(conn, account, code)
                if referral:
                    account["referred_by"] = referral["referrer_id"]
            summary = await self._summarize(conn, account, now)

        if referral:
            record_points(LedgerSource.REFERRAL.value, referral["points"])
            await self._evaluate_badges(
                referral["referrer_id"],
                BadgeEvent.REFERRAL_CREDITED,
                {"referrals_count": referral["referrals_count"]},
                now
            )

        return summary

    async def _credit_referrer(
        self,
        conn: psycopg.AsyncConnection,
        account: Dict[str, Any],
        code: str
    ) -> Optional[Dict[str, Any]]:
        """
        Link the owner of `code` as referrer and pay the tiered reward.

        Returns None when the code is not usable or another request linked a
        referrer first.
        """
        account_id = str(account["id"])
        referrer = await queries.get_account_by_referral_code(conn, code)
        if not can_refer(referrer, account_id):
            logger.warning(f"Referral code {code} ignored for account {account_id}")
            return None

        referrer_id = str(referrer["id"])
        if not await queries.link_referrer(conn, account_id, referrer_id):
            return None

        referrals_count = await queries.increment_referrals(conn, referrer_id)
        if referrals_count is None:
            raise AccountNotFoundError(referrer_id)

        points = referral_reward(referrals_count)
        # Leaves the referrer's last_active_at unchanged
        await apply_delta(
            conn,
            referrer_id,
            points,
            LedgerSource.REFERRAL,
            "Referral bonus",
            source_id=account_id
        )
        logger.info(
            f"Account {account_id} referred by {referrer_id} "
            f"(referral #{referrals_count}, +{points} points)"
        )

        return {"referrer_id": referrer_id, "referrals_count": referrals_count, "points": points}

    @economy_operation("get_account_summary")
    async def get_account_summary(self, account_id: str) -> Dict[str, Any]:
        account_id = require_uuid(account_id, "account_id")
        async with self.db.connection() as conn:
            account = await self._load_account(conn, account_id, mutating=False)
            return await self._summarize(conn, account, self.clock())

    @economy_operation("list_pending_boxes")
    async def list_pending_boxes(self, account_id: str) -> List[Dict[str, Any]]:
        account_id = require_uuid(account_id, "account_id")
        async with self.db.connection() as conn:
            await self._load_account(conn, account_id, mutating=False)
            return await queries.list_pending_boxes(conn, account_id, self.clock())

    @economy_operation("get_ledger")
    async def get_ledger(self, account_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        account_id = require_uuid(account_id, "account_id")
        if not isinstance(limit, int) or not 1 <= limit <= MAX_LEDGER_PAGE:
            raise ValidationError(f"must be between 1 and {MAX_LEDGER_PAGE}", field="limit", value=limit)

        async with self.db.connection() as conn:
            await self._load_account(conn, account_id, mutating=False)
            return await queries.get_ledger_entries(conn, account_id, limit)

    @economy_operation("verify_ledger")
    async def verify_ledger(self, account_id: str) -> Dict[str, Any]:
        """
        Compare the stored balance with the sum of ledger entries.

        Returns:
            {'account_id': str, 'balance': int, 'ledger_sum': int, 'entry_count': int, 'consistent': bool}
        """
        account_id = require_uuid(account_id, "account_id")
        async with self.db.connection() as conn:
            totals = await queries.get_ledger_totals(conn, account_id)

        if totals is None:
            raise AccountNotFoundError(account_id)

        consistent = int(totals["balance"]) == int(totals["ledger_sum"])
        if not consistent:
            logger.error(
                f"Ledger mismatch for account {account_id}: "
                f"balance {totals['balance']} != ledger sum {totals['ledger_sum']}"
            )

        return {
            "account_id": account_id,
            "balance": int(totals["balance"]),
            "ledger_sum": int(totals["ledger_sum"]),
            "entry_count": int(totals["entry_count"]),
            "consistent": consistent,
        }

    @economy_operation("list_badges")
    async def list_badges(self, account_id: str) -> List[Dict[str, Any]]:
        account_id = require_uuid(account_id, "account_id")
        async with self.db.connection() as conn:
            await self._load_account(conn, account_id, mutating=False)
            return await queries.list_earned_badges(conn, account_id)
