"""fantastic-task - Family task completion and points accounting service."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import constants, settings
from src.core.db_client import get_client
from src.core.events import RefreshReason
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.api_router import refresh_notifier
from src.interface.api_router import router as api_router


logger = logging.getLogger(__name__)


async def check_pocketbase_connectivity() -> None:
    """Verify PocketBase is reachable and the admin credentials work.

    Raises:
        ConnectionError: If unable to connect to PocketBase
    """
    try:
        async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{settings.pocketbase_url}/api/health")
            if not response.is_success:
                raise ConnectionError(f"PocketBase returned status {response.status_code}")
        await get_client()
        logger.info("startup_validation", extra={"service": "pocketbase", "status": "ok"})
    except Exception as e:
        logger.error("startup_validation", extra={"service": "pocketbase", "status": "failed", "error": str(e)})
        raise ConnectionError(f"PocketBase connectivity check failed: {e}") from e


async def validate_startup_configuration() -> None:
    """Validate credentials and PocketBase connectivity, exiting on failure."""
    logger.info("startup_validation_begin")

    try:
        settings.require_credential("pocketbase_admin_email", "PocketBase admin email")
        settings.require_credential("pocketbase_admin_password", "PocketBase admin password")
        logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})

        await check_pocketbase_connectivity()

        logger.info("startup_validation_complete", extra={"status": "ok"})

    except (ValueError, ConnectionError) as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


def log_refresh(family_id: str, reason: RefreshReason) -> None:
    """Default refresh observer: record that a family's views are stale."""
    logger.info("family_refresh", extra={"family_id": family_id, "reason": str(reason)})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so validation logs are captured
    configure_logfire()

    await validate_startup_configuration()

    refresh_notifier.register(log_refresh)
    yield
    refresh_notifier.unregister(log_refresh)


app = FastAPI(
    title="fantastic-task",
    description="Family task completion and points accounting",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(api_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
