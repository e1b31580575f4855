"""API middleware for rate limiting, CORS and error responses"""
import logging
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from streakfarm.config import CORS_ORIGINS
from streakfarm.exceptions import StreakFarmError, ValidationError

logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

# Context keys never echoed back to callers
PRIVATE_CONTEXT_KEYS = {"query", "value"}


def setup_cors(app):
    """Configure CORS middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(f"CORS configured for origins: {CORS_ORIGINS}")


def setup_rate_limiting(app):
    """Configure rate limiting"""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.info("Rate limiting configured")


def error_body(exc: StreakFarmError) -> dict:
    """
    Response body for a rejected request

    Conflict context (next_checkin_at, next_available_at, ...) is merged in.
    Persistence failures only expose the user-facing message.
    """
    body = exc.to_dict()
    if exc.http_status >= 500:
        body["message"] = exc.user_message
        return body

    for key, value in exc.context.items():
        if key not in PRIVATE_CONTEXT_KEYS and key not in body and value is not None:
            body[key] = value
    return jsonable_encoder(body)


async def streakfarm_error_handler(request: Request, exc: StreakFarmError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=error_body(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters use the invalid_request shape"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or None
    error = ValidationError(first.get("msg", "Invalid request"), field=field)
    return JSONResponse(status_code=error.http_status, content=error_body(error))


def setup_error_handlers(app):
    """Map our exception hierarchy onto HTTP responses"""
    app.add_exception_handler(StreakFarmError, streakfarm_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
