"""
Input validation for caller-supplied identifiers

Malformed identifiers are rejected before any store access.
"""

import json
import logging
import re
from typing import Any, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from streakfarm.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Task ids are catalog slugs such as "join_channel" or "daily-ad-1"
TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")
WALLET_ADDRESS_PATTERN = re.compile(r"^[A-Za-z0-9_\-:]{16,128}$")
REFERRAL_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{4,32}$")
MAX_VERIFICATION_PAYLOAD_BYTES = 4096


def require_uuid(value: Any, field: str) -> str:
    """Return `value` as a canonical UUID string or raise ValidationError"""
    if isinstance(value, UUID):
        return str(value)
    if not isinstance(value, str) or not value:
        raise ValidationError("must be a UUID", field=field, value=value)
    try:
        return str(UUID(value))
    except ValueError:
        raise ValidationError("must be a UUID", field=field, value=value)


def require_task_id(value: Any) -> str:
    if not isinstance(value, str) or not TASK_ID_PATTERN.match(value):
        raise ValidationError("must be a non-empty task identifier", field="task_id", value=value)
    return value


def normalize_referral_code(value: Any) -> Optional[str]:
    """Blank or missing codes mean no referral; anything else must look like a code"""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("must be a string", field="referral_code", value=value)
    value = value.strip()
    if not value:
        return None
    if not REFERRAL_CODE_PATTERN.match(value):
        raise ValidationError("is not a valid referral code", field="referral_code", value=value)
    return value


class WalletConnectInput(BaseModel):
    """Wallet link request"""
    wallet_address: str = Field(..., min_length=16, max_length=128)

    @field_validator("wallet_address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        v = v.strip()
        if not WALLET_ADDRESS_PATTERN.match(v):
            raise ValueError("wallet address contains invalid characters")
        return v


def validate_wallet_address(value: Any) -> str:
    try:
        return WalletConnectInput(wallet_address=value).wallet_address
    except PydanticValidationError as e:
        raise ValidationError("is not a valid wallet address", field="wallet_address", value=value, cause=e)


def validate_verification_payload(payload: Optional[dict]) -> dict:
    """
    Payload is stored verbatim; only its shape and size are checked here.
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("must be a JSON object", field="verification_data", value=type(payload).__name__)
    if len(json.dumps(payload, default=str)) > MAX_VERIFICATION_PAYLOAD_BYTES:
        raise ValidationError("is too large", field="verification_data")
    return payload
