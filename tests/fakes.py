"""
In-memory stand-in for the query layer

Each method mirrors a `streakfarm.db.queries` function (connection first)
and applies its conditional-write semantics atomically: every call yields
to the event loop once before touching state, then checks and writes
without awaiting. Concurrent callers driven by asyncio.gather therefore
interleave between statements, the way separate database sessions do.
"""
import asyncio
import copy
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Optional
from unittest.mock import patch
from uuid import uuid4

import psycopg

from streakfarm.db import queries


class FakeConnection:
    """Collects undo actions so a failed transaction can be rolled back"""

    def __init__(self):
        self.undo = []


class FakeDatabase:
    """Database double exposing connection() and transaction()"""

    def __init__(self):
        self.transactions = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def connection(self):
        yield FakeConnection()

    @asynccontextmanager
    async def transaction(self):
        conn = FakeConnection()
        self.transactions += 1
        try:
            yield conn
        except BaseException:
            self.rollbacks += 1
            for undo in reversed(conn.undo):
                undo()
            raise


class FakeStore:
    def __init__(self):
        self.accounts: dict[str, dict] = {}
        self.ledger: list[dict] = []
        self.badges: dict[str, dict] = {}
        self.earned: list[dict] = []
        self.boxes: dict[str, dict] = {}
        self.tasks: dict[str, dict] = {}
        self.progress: dict[tuple, dict] = {}
        self.completions: list[dict] = []
        self.config: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_account(self, account_id: Optional[str] = None, **fields) -> dict:
        account_id = account_id or str(uuid4())
        account = {
            "id": account_id,
            "telegram_id": fields.pop("telegram_id", f"tg-{account_id[:8]}"),
            "username": None,
            "balance": 0,
            "streak_current": 0,
            "streak_best": 0,
            "last_checkin": None,
            "boxes_opened": 0,
            "tasks_completed": 0,
            "wallet_address": None,
            "wallet_connected_at": None,
            "is_banned": False,
            "last_active_at": None,
            "created_at": None,
            "referral_code": uuid4().hex[:10],
            "referred_by": None,
            "referrals_count": 0,
        }
        account.update(fields)
        self.accounts[account_id] = account
        # Seeded balances are backed by an opening ledger entry
        if account["balance"]:
            self.ledger.append({
                "id": str(uuid4()),
                "account_id": account_id,
                "amount": account["balance"],
                "balance_after": account["balance"],
                "source": "referral",
                "source_id": None,
                "description": "Opening balance",
                "created_at": None,
            })
        return account

    def add_badge(self, badge_id: str, multiplier_bonus: str = "0", **fields) -> dict:
        badge = {
            "id": badge_id,
            "name": badge_id,
            "description": "",
            "rarity": "common",
            "category": "special",
            "multiplier_bonus": Decimal(multiplier_bonus),
            "requirement_type": None,
            "requirement_value": None,
            "active_from": None,
            "active_until": None,
            "max_supply": None,
            "current_supply": 0,
            "is_active": True,
        }
        badge.update(fields)
        self.badges[badge_id] = badge
        return badge

    def add_streak_badges(self) -> None:
        for days in (7, 14, 30, 60, 90, 180, 365, 730):
            self.add_badge(f"streak_{days}", category="streak")
        self.add_badge("ton-holder", "0.1", category="wallet")

    def give_badge(self, account_id: str, badge_id: str, is_active: bool = True) -> None:
        self.earned.append({
            "id": str(uuid4()),
            "account_id": account_id,
            "badge_id": badge_id,
            "earned_at": None,
            "is_active": is_active,
        })

    def add_box(self, account_id: str, expires_at, box_id: Optional[str] = None, **fields) -> dict:
        box_id = box_id or str(uuid4())
        box = {
            "id": box_id,
            "account_id": account_id,
            "rarity": "common",
            "base_points": 100,
            "slot_start": None,
            "generated_at": None,
            "expires_at": expires_at,
            "opened_at": None,
            "is_expired": False,
            "multiplier_applied": None,
            "final_points": None,
        }
        box.update(fields)
        self.boxes[box_id] = box
        return box

    def add_task(self, task_id: str, points_reward: int = 100, **fields) -> dict:
        task = {
            "id": task_id,
            "title": fields.pop("title", task_id.replace("_", " ").title()),
            "task_type": "custom",
            "points_reward": points_reward,
            "is_repeatable": False,
            "repeat_interval_hours": None,
            "max_completions": None,
            "requires_wallet": False,
            "status": "active",
            "available_from": None,
            "available_until": None,
        }
        task.update(fields)
        self.tasks[task_id] = task
        return task

    def ledger_for(self, account_id: str) -> list[dict]:
        return [entry for entry in self.ledger if entry["account_id"] == account_id]

    def ledger_sum(self, account_id: str) -> int:
        return sum(entry["amount"] for entry in self.ledger_for(account_id))

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def ensure_account(self, conn, telegram_id, username=None):
        await asyncio.sleep(0)
        for account in self.accounts.values():
            if account["telegram_id"] == telegram_id:
                return dict(account)
        return dict(self.add_account(telegram_id=telegram_id, username=username))

    async def get_account(self, conn, account_id):
        await asyncio.sleep(0)
        account = self.accounts.get(account_id)
        return dict(account) if account else None

    async def get_account_by_referral_code(self, conn, referral_code):
        await asyncio.sleep(0)
        for account in self.accounts.values():
            if account["referral_code"] == referral_code:
                return dict(account)
        return None

    async def link_referrer(self, conn, account_id, referrer_id):
        await asyncio.sleep(0)
        account = self.accounts.get(account_id)
        if not account or account_id == referrer_id or account["referred_by"] is not None:
            return False
        account["referred_by"] = referrer_id
        conn.undo.append(lambda: account.update(referred_by=None))
        return True

    async def increment_referrals(self, conn, referrer_id):
        await asyncio.sleep(0)
        account = self.accounts.get(referrer_id)
        if not account:
            return None
        account["referrals_count"] += 1

        def undo():
            account["referrals_count"] -= 1

        conn.undo.append(undo)
        return account["referrals_count"]

    async def record_checkin(
self, conn, account_id, expected_last_checkin, checked_in_at, streak_current, streak_best):
        await asyncio.sleep(0)
        account = self.accounts.get(account_id)
        if not account or account["is_banned"] or account["last_checkin"] != expected_last_checkin:
            return False
        previous = {k: account[k] for k in ("streak_current", "streak_best", "last_checkin", "last_active_at")}
        account.update(
            streak_current=streak_current,
            streak_best=streak_best,
            last_checkin=checked_in_at,
            last_active_at=checked_in_at,
        )
        conn.undo.append(lambda: account.update(previous))
        return True

    async def link_wallet(self, conn, account_id, wallet_address, linked_at):
        await asyncio.sleep(0)
        account = self.accounts.get(account_id)
        if not account or account["is_banned"] or account["wallet_address"] is not None:
            return False
        if any(other["wallet_address"] == wallet_address for other in self.accounts.values()):
            raise psycopg.errors.UniqueViolation("duplicate key value violates unique constraint \"accounts_wallet_address_key\"")
        account.update(wallet_address=wallet_address, wallet_connected_at=linked_at)
        conn.undo.append(lambda: account.update(wallet_address=None, wallet_connected_at=None))
        return True

    async def apply_balance_delta(self, conn, account_id, delta, boxes_opened_delta=0, tasks_completed_delta=0, active_at=None):
        await asyncio.sleep(0)
        account = self.accounts.get(account_id)
        if not account or account["balance"] + delta < 0:
            return None
        account["balance"] += delta
        account["boxes_opened"] += boxes_opened_delta
        account["tasks_completed"] += tasks_completed_delta
        if active_at is not None:
            account["last_active_at"] = active_at

        def undo():
            account["balance"] -= delta
            account["boxes_opened"] -= boxes_opened_delta
            account["tasks_completed"] -= tasks_completed_delta

        conn.undo.append(undo)
        return {
            "balance": account["balance"],
            "boxes_opened": account["boxes_opened"],
            "tasks_completed": account["tasks_completed"],
        }

    async def list_active_account_ids(self, conn, active_since):
        await asyncio.sleep(0)
        return sorted(
            account_id
            for account_id, account in self.accounts.items()
            if not account["is_banned"]
            and account["last_active_at"] is not None
            and account["last_active_at"] >= active_since
        )

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    async def insert_ledger_entry(self, conn, account_id, amount, balance_after, source, source_id, description):
        await asyncio.sleep(0)
        entry = {
            "id": str(uuid4()),
            "account_id": account_id,
            "amount": amount,
            "balance_after": balance_after,
            "source": source,
            "source_id": source_id,
            "description": description,
            "created_at": None,
        }
        self.ledger.append(entry)
        conn.undo.append(lambda: self.ledger.remove(entry))
        return dict(entry)

    async def get_ledger_entries(self, conn, account_id, limit=50):
        await asyncio.sleep(0)
        return [dict(entry) for entry in reversed(self.ledger_for(account_id))][:limit]

    async def get_ledger_totals(self, conn, account_id):
        await asyncio.sleep(0)
        account = self.accounts.get(account_id)
        if not account:
            return None
        return {
            "balance": account["balance"],
            "ledger_sum": self.ledger_sum(account_id),
            "entry_count": len(self.ledger_for(account_id)),
        }

    # ------------------------------------------------------------------
    # Badges
    # ------------------------------------------------------------------

    def _badge_active_at(self, badge, at) -> bool:
        return (
            badge["is_active"]
            and (badge["active_from"] is None or badge["active_from"] <= at)
            and (badge["active_until"] is None or badge["active_until"] >= at)
        )

    async def get_active_badge_bonuses(self, conn, account_id, at):
        await asyncio.sleep(0)
        rows = []
        for held in self.earned:
            badge = self.badges.get(held["badge_id"])
            if held["account_id"] == account_id and held["is_active"] and badge and self._badge_active_at(badge, at):
                rows.append({"badge_id": badge["id"], "multiplier_bonus": badge["multiplier_bonus"]})
        return rows

    async def get_earned_badge_ids(self, conn, account_id):
        await asyncio.sleep(0)
        return {held["badge_id"] for held in self.earned if held["account_id"] == account_id}

    async def get_badges_by_requirement(self, conn, requirement_type, max_value):
        await asyncio.sleep(0)
        rows = [
            dict(badge) for badge in self.badges.values()
            if badge["requirement_type"] == requirement_type
            and badge["requirement_value"] is not None
            and badge["requirement_value"] <= max_value
        ]
        return sorted(rows, key=lambda row: row["requirement_value"])

    async def award_badge(self, conn, account_id, badge_id, earned_at):
        await asyncio.sleep(0)
        badge = self.badges.get(badge_id)
        if not badge or not badge["is_active"]:
            return None
        if badge["max_supply"] is not None and badge["current_supply"] >= badge["max_supply"]:
            return "supply_exhausted"
        if any(h["account_id"] == account_id and h["badge_id"] == badge_id for h in self.earned):
            return "duplicate"
        badge["current_supply"] += 1
        self.give_badge(account_id, badge_id)
        self.earned[-1]["earned_at"] = earned_at
        return "awarded"

    async def list_earned_badges(self, conn, account_id):
        await asyncio.sleep(0)
        rows = []
        for held in self.earned:
            if held["account_id"] == account_id:
                row = dict(self.badges[held["badge_id"]])
                row.update(earned_at=held["earned_at"], holding_active=held["is_active"])
                rows.append(row)
        return rows

    # ------------------------------------------------------------------
    # Boxes
    # ------------------------------------------------------------------

    async def get_box(self, conn, box_id):
        await asyncio.sleep(0)
        box = self.boxes.get(box_id)
        return dict(box) if box else None

    async def insert_box(self, conn, account_id, rarity, base_points, slot_start, generated_at, expires_at):
        await asyncio.sleep(0)
        if any(b["account_id"] == account_id and b["slot_start"] == slot_start for b in self.boxes.values()):
            return None
        box = self.add_box(
            account_id,
            expires_at,
            rarity=rarity,
            base_points=base_points,
            slot_start=slot_start,
            generated_at=generated_at,
        )
        conn.undo.append(lambda: self.boxes.pop(box["id"], None))
        return dict(box)

    async def count_boxes_since(self, conn, account_id, since):
        await asyncio.sleep(0)
        return sum(
            1 for b in self.boxes.values()
            if b["account_id"] == account_id and b["generated_at"] is not None and b["generated_at"] >= since
        )

    async def open_box_conditionally(self, conn, box_id, account_id, opened_at, multiplier, final_points):
        await asyncio.sleep(0)
        box = self.boxes.get(box_id)
        if (
            not box
            or box["account_id"] != account_id
            or box["opened_at"] is not None
            or box["is_expired"]
            or box["expires_at"] < opened_at
        ):
            return False
        box.update(opened_at=opened_at, multiplier_applied=multiplier, final_points=final_points)
        conn.undo.append(lambda: box.update(opened_at=None, multiplier_applied=None, final_points=None))
        return True

    async def mark_box_expired(self, conn, box_id):
        await asyncio.sleep(0)
        box = self.boxes.get(box_id)
        if not box or box["opened_at"] is not None or box["is_expired"]:
            return False
        box["is_expired"] = True
        conn.undo.append(lambda: box.update(is_expired=False))
        return True

    async def expire_overdue_boxes(self, conn, now):
        await asyncio.sleep(0)
        count = 0
        for box in self.boxes.values():
            if box["opened_at"] is None and not box["is_expired"] and box["expires_at"] < now:
                box["is_expired"] = True
                count += 1
        return count

    async def list_pending_boxes(self, conn, account_id, now):
        await asyncio.sleep(0)
        rows = [
            dict(b) for b in self.boxes.values()
            if b["account_id"] == account_id
            and b["opened_at"] is None
            and not b["is_expired"]
            and b["expires_at"] >= now
        ]
        return sorted(rows, key=lambda row: row["expires_at"])

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def get_task(self, conn, task_id):
        await asyncio.sleep(0)
        task = self.tasks.get(task_id)
        return dict(task) if task else None

    async def get_task_progress(self, conn, account_id, task_id):
        await asyncio.sleep(0)
        progress = self.progress.get((account_id, task_id))
        return dict(progress) if progress else None

    async def claim_task_progress(self, conn, account_id, task_id, expected_count, completed_at):
        await asyncio.sleep(0)
        key = (account_id, task_id)
        current = self.progress.get(key)
        current_count = current["completion_count"] if current else 0
        if current_count != expected_count:
            return False
        previous = copy.deepcopy(current)
        self.progress[key] = {"completion_count": expected_count + 1, "last_completed_at": completed_at}

        def undo():
            if previous is None:
                self.progress.pop(key, None)
            else:
                self.progress[key] = previous

        conn.undo.append(undo)
        return True

    async def insert_task_completion(self, conn, account_id, task_id, points_awarded, verification_data, completed_at):
        await asyncio.sleep(0)
        record = {
            "id": str(uuid4()),
            "account_id": account_id,
            "task_id": task_id,
            "points_awarded": points_awarded,
            "verification_data": verification_data,
            "completed_at": completed_at,
        }
        self.completions.append(record)
        conn.undo.append(lambda: self.completions.remove(record))
        return dict(record)

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    async def get_config_value(self, conn, key):
        await asyncio.sleep(0)
        return copy.deepcopy(self.config.get(key))

    def patch_queries(self):
        """Patch every query function with this store's implementation"""
        return patch.multiple(
            queries,
            **{name: getattr(self, name) for name in queries.__all__}
        )
