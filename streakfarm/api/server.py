"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from streakfarm.api.routes import router
from streakfarm.api.middleware import setup_cors, setup_error_handlers, setup_rate_limiting
from streakfarm.config import (
    LOG_LEVEL,
    ENABLE_BOX_SCHEDULER,
    BOX_GENERATION_INTERVAL_SECONDS,
    BOX_EXPIRY_INTERVAL_SECONDS,
    validate_config,
)
from streakfarm.db.connection import db
from streakfarm.scheduler.box_scheduler import BoxScheduler
from streakfarm.services import init_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    validate_config()
    await db.init_pool()
    logger.info("Database pool initialized")

    container = init_container(db)

    scheduler = None
    if ENABLE_BOX_SCHEDULER:
        scheduler = BoxScheduler(
            container.economy_service,
            generation_interval=BOX_GENERATION_INTERVAL_SECONDS,
            expiry_interval=BOX_EXPIRY_INTERVAL_SECONDS
        )
        scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    if scheduler:
        await scheduler.stop()
    await db.close_pool()
    logger.info("Database pool closed")


def create_api_application() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="StreakFarm API",
        description="Reward economy: check-ins, boxes, tasks and badges",
        version="1.0.0",
        lifespan=lifespan
    )

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)
    setup_error_handlers(app)

    # Include routes
    app.include_router(router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "Internal server error"}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
