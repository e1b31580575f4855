"""API routes for the reward economy"""
import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from streakfarm.api.models import (
    CreateAccountRequest, AccountSummaryResponse,
    CheckinResponse,
    BoxResponse, BoxListResponse, OpenBoxResponse,
    CompleteTaskRequest, TaskCompletionResponse,
    WalletConnectRequest, WalletConnectResponse,
    LedgerEntryResponse, LedgerResponse, LedgerVerificationResponse,
    BadgeResponse, BadgeListResponse,
    GenerateBoxesResponse, ExpireBoxesResponse,
    HealthCheckResponse
)
from streakfarm.api.auth import verify_api_key
from streakfarm.api.middleware import limiter
from streakfarm.db.connection import db
from streakfarm.services import EconomyService, get_economy_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ==========================================
# Accounts
# ==========================================

@router.post("/api/v1/accounts", response_model=AccountSummaryResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_account(
    request: Request,
    body: CreateAccountRequest,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Create the account for a verified identity, or return the existing one"""
    summary = await service.ensure_account(body.telegram_id, body.username, body.referral_code)
    return AccountSummaryResponse(**summary)


@router.get("/api/v1/accounts/{account_id}", response_model=AccountSummaryResponse)
@limiter.limit("30/minute")
async def get_account(
    request: Request,
    account_id: str,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Balance, streaks, counters, multiplier and next check-in time"""
    summary = await service.get_account_summary(account_id)
    return AccountSummaryResponse(**summary)


# ==========================================
# Check-in
# ==========================================

@router.post("/api/v1/accounts/{account_id}/checkin", response_model=CheckinResponse)
@limiter.limit("10/minute")
async def check_in(
    request: Request,
    account_id: str,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Daily check-in (409 already_checked_in with next_checkin_at when done today)"""
    result = await service.check_in(account_id)
    return CheckinResponse(**result)


# ==========================================
# Boxes
# ==========================================

@router.get("/api/v1/accounts/{account_id}/boxes", response_model=BoxListResponse)
@limiter.limit("30/minute")
async def list_boxes(
    request: Request,
    account_id: str,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Pending (unopened, unexpired) boxes"""
    boxes = await service.list_pending_boxes(account_id)
    return BoxListResponse(
        boxes=[
            BoxResponse(
                id=box["id"],
                rarity=box["rarity"],
                base_points=box["base_points"],
                generated_at=box["generated_at"],
                expires_at=box["expires_at"]
            )
            for box in boxes
        ],
        count=len(boxes)
    )


@router.post("/api/v1/accounts/{account_id}/boxes/{box_id}/open", response_model=OpenBoxResponse)
@limiter.limit("30/minute")
async def open_box(
    request: Request,
    account_id: str,
    box_id: str,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Open a box (not_found, not_owned, already_opened or expired on rejection)"""
    result = await service.open_box(account_id, box_id)
    return OpenBoxResponse(**result)


# ==========================================
# Tasks
# ==========================================

@router.post("/api/v1/accounts/{account_id}/tasks/{task_id}/complete", response_model=TaskCompletionResponse)
@limiter.limit("20/minute")
async def complete_task(
    request: Request,
    account_id: str,
    task_id: str,
    body: Optional[CompleteTaskRequest] = None,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Complete a task with an optional verification payload"""
    verification_data = body.verification_data if body else None
    result = await service.complete_task(account_id, task_id, verification_data)
    return TaskCompletionResponse(**result)


# ==========================================
# Wallet
# ==========================================

@router.post("/api/v1/accounts/{account_id}/wallet", response_model=WalletConnectResponse)
@limiter.limit("5/minute")
async def connect_wallet(
    request: Request,
    account_id: str,
    body: WalletConnectRequest,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Link a wallet and credit the one-time connection bonus"""
    result = await service.connect_wallet(account_id, body.wallet_address)
    return WalletConnectResponse(**result)


# ==========================================
# Ledger and badges
# ==========================================

@router.get("/api/v1/accounts/{account_id}/ledger", response_model=LedgerResponse)
@limiter.limit("30/minute")
async def get_ledger(
    request: Request,
    account_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Most recent ledger entries, newest first"""
    entries = await service.get_ledger(account_id, limit)
    return LedgerResponse(
        account_id=account_id,
        entries=[
            LedgerEntryResponse(
                id=entry["id"],
                amount=entry["amount"],
                balance_after=entry["balance_after"],
                source=entry["source"],
                source_id=entry.get("source_id"),
                description=entry.get("description") or "",
                created_at=entry["created_at"]
            )
            for entry in entries
        ],
        count=len(entries)
    )


@router.get("/api/v1/accounts/{account_id}/ledger/verify", response_model=LedgerVerificationResponse)
@limiter.limit("10/minute")
async def verify_ledger(
    request: Request,
    account_id: str,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Check the stored balance against the ledger running sum"""
    result = await service.verify_ledger(account_id)
    return LedgerVerificationResponse(**result)


@router.get("/api/v1/accounts/{account_id}/badges", response_model=BadgeListResponse)
@limiter.limit("30/minute")
async def list_badges(
    request: Request,
    account_id: str,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Badges held by the account"""
    badges = await service.list_badges(account_id)
    return BadgeListResponse(
        account_id=account_id,
        badges=[
            BadgeResponse(
                id=badge["id"],
                name=badge["name"],
                rarity=badge["rarity"],
                category=badge["category"],
                multiplier_bonus=float(badge["multiplier_bonus"]),
                earned_at=badge["earned_at"],
                is_active=bool(badge["holding_active"])
            )
            for badge in badges
        ],
        count=len(badges)
    )


# ==========================================
# Scheduled jobs (external cron)
# ==========================================

@router.post("/api/v1/jobs/generate-boxes", response_model=GenerateBoxesResponse)
@limiter.limit("5/minute")
async def generate_boxes_job(
    request: Request,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Generate boxes for the current hourly slot"""
    result = await service.generate_boxes()
    return GenerateBoxesResponse(**result)


@router.post("/api/v1/jobs/expire-boxes", response_model=ExpireBoxesResponse)
@limiter.limit("5/minute")
async def expire_boxes_job(
    request: Request,
    api_key: str = Depends(verify_api_key),
    service: EconomyService = Depends(get_economy_service)
):
    """Expire overdue boxes"""
    result = await service.expire_boxes()
    return ExpireBoxesResponse(**result)


# ==========================================
# Health and metrics
# ==========================================

@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    try:
        async with db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
                await cur.fetchone()

        db_status = "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "disconnected"

    return HealthCheckResponse(
        status="healthy" if db_status == "connected" else "degraded",
        database=db_status,
        timestamp=datetime.now(timezone.utc)
    )


@router.get("/metrics")
async def metrics_endpoint():
    """Expose Prometheus metrics"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
