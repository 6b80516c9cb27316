"""
Steelix - Commission & Agent-Tier Engine

Main FastAPI application with:
- Commission calculation, preview and settlement
- Versioned agent tier configuration and promotion
- Leadership bonus ledger
- Commission approval workflow with SLA escalation
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api import api_router
from src.config import settings
from src.scheduler.jobs import scheduler, setup_scheduler
from src.services.errors import EngineError, PersistenceError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
    - Schedules the overdue approval escalation job

    Shutdown:
    - Stops the scheduler
    """
    logger.info("Starting Steelix commission engine...")

    setup_scheduler()
    scheduler.start()

    logger.info("Steelix commission engine started successfully!")

    yield

    logger.info("Shutting down Steelix commission engine...")
    scheduler.shutdown(wait=False)


# Create FastAPI application
app = FastAPI(
    title="Steelix Commission Engine",
    description="Commission calculation, agent tiers, leadership bonuses and approvals",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.include_router(api_router)  # /api/* endpoints


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """Render engine errors as {"error", "message", "details"} JSON."""
    if isinstance(exc, PersistenceError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        details = {}
    else:
        details = exc.details

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": exc.public_message,
            "details": details,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
