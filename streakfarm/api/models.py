"""Pydantic models for API request/response validation"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID


class CreateAccountRequest(BaseModel):
    """Request to provision an account for an external identity"""
    telegram_id: str = Field(..., min_length=1, max_length=64, description="Verified external identity")
    username: Optional[str] = Field(default=None, max_length=64)
    referral_code: Optional[str] = Field(default=None, max_length=32, description="Code of the referring account")


class AccountSummaryResponse(BaseModel):
    """Account state with derived multiplier and check-in window"""
    id: str
    telegram_id: str
    username: Optional[str] = None
    balance: int
    streak_current: int
    streak_best: int
    last_checkin: Optional[datetime] = None
    boxes_opened: int
    tasks_completed: int
    wallet_address: Optional[str] = None
    is_banned: bool = False
    referral_code: str
    referred_by: Optional[str] = None
    referrals_count: int = 0
    multiplier: float
    can_check_in: bool
    next_checkin_at: datetime


class CheckinResponse(BaseModel):
    """Result of a successful daily check-in"""
    streak_current: int
    streak_best: int
    streak_maintained: bool
    base_points: int
    streak_bonus: int
    multiplier: float
    points_awarded: int
    new_balance: int
    earned_badges: List[str] = Field(default_factory=list)
    next_checkin_at: datetime


class BoxResponse(BaseModel):
    """A pending reward box"""
    id: UUID
    rarity: str
    base_points: int
    generated_at: datetime
    expires_at: datetime


class BoxListResponse(BaseModel):
    boxes: List[BoxResponse]
    count: int


class OpenBoxResponse(BaseModel):
    """Result of opening a box"""
    box_id: str
    rarity: str
    base_points: int
    multiplier_applied: float
    final_points: int
    new_balance: int
    total_boxes_opened: int
    earned_badges: List[str] = Field(default_factory=list)


class CompleteTaskRequest(BaseModel):
    """Optional verification payload, stored verbatim"""
    verification_data: Optional[Dict[str, Any]] = None


class TaskCompletionResponse(BaseModel):
    """Result of completing a task"""
    task_id: str
    points_awarded: int
    multiplier: float
    new_balance: int
    total_tasks_completed: int
    earned_badges: List[str] = Field(default_factory=list)


class WalletConnectRequest(BaseModel):
    wallet_address: str = Field(..., description="External wallet identifier")


class WalletConnectResponse(BaseModel):
    wallet_address: str
    points_awarded: int
    new_balance: int
    earned_badges: List[str] = Field(default_factory=list)


class LedgerEntryResponse(BaseModel):
    """One immutable ledger entry"""
    id: UUID
    amount: int
    balance_after: int
    source: str
    source_id: Optional[str] = None
    description: str = ""
    created_at: datetime


class LedgerResponse(BaseModel):
    account_id: str
    entries: List[LedgerEntryResponse]
    count: int


class LedgerVerificationResponse(BaseModel):
    """Stored balance compared with the ledger running sum"""
    account_id: str
    balance: int
    ledger_sum: int
    entry_count: int
    consistent: bool


class BadgeResponse(BaseModel):
    """An earned badge with catalog details"""
    id: str
    name: str
    rarity: str
    category: str
    multiplier_bonus: float
    earned_at: datetime
    is_active: bool


class BadgeListResponse(BaseModel):
    account_id: str
    badges: List[BadgeResponse]
    count: int


class GenerateBoxesResponse(BaseModel):
    boxes_created: int
    accounts_scanned: int
    errors_count: int


class ExpireBoxesResponse(BaseModel):
    boxes_expired: int


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    database: str = Field(..., description="Database connection status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Stable machine-readable error code")
    message: str = Field(..., description="What went wrong")
    request_id: Optional[str] = None
    timestamp: datetime
