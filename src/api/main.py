"""Admin HTTP API for the EnVivo ingestion core.

Run with:
    uvicorn src.api.main:app --port 8000

Every ``/admin`` route requires ``Authorization: Bearer <ADMIN_API_KEY>``.
"""

import secrets
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from src.adapters import build_sources
from src.config.settings import Settings, get_settings
from src.core.admin_service import DEFAULT_DELETE_REASON
from src.core.base_adapter import BaseAdapter, FetchParams
from src.core.exceptions import ConfigurationError, EventNotFoundError, StorageError
from src.core.services import Services, build_services
from src.logging import get_logger, setup_logging

logger = get_logger(__name__)

SourceBuilder = Callable[[list[str] | None], list[BaseAdapter]]

bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_services() -> Services:
    return build_services()


def get_source_builder() -> SourceBuilder:
    return build_sources


def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """Check the bearer token against ADMIN_API_KEY."""
    if not settings.admin_api_key:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Admin API is disabled (ADMIN_API_KEY not set)")

    if credentials is None or not secrets.compare_digest(credentials.credentials, settings.admin_api_key):
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid or missing admin token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class ScrapeRequest(BaseModel):
    """Request to run the ingestion."""

    sources: list[str] | None = Field(None, description="Source names to run (default: all)")
    max_pages: int | None = Field(None, ge=1, description="Page limit for paginated scrapers")


class DeleteEventRequest(BaseModel):
    reason: str = Field(DEFAULT_DELETE_REASON, description="Stored with the blacklist entry")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.log_file)
    yield
    if get_services.cache_info().currsize:
        get_services().close()


app = FastAPI(
    title="EnVivo Admin API",
    description="Administración de la ingesta de eventos en vivo",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health", tags=["Health"])
async def health(services: Services = Depends(get_services)) -> dict[str, Any]:
    """Service status and stored counts."""
    try:
        events = await services.events.count()
        blacklisted = await services.blacklist.count()
    except StorageError as e:
        logger.error("health_check_failed", error=str(e))
        return {"status": "degraded", "database": "error", "error": str(e)}

    return {
        "status": "ok",
        "database": "connected",
        "events": events,
        "blacklisted": blacklisted,
    }


@app.post("/admin/scrape", tags=["Admin"], dependencies=[Depends(require_admin)])
async def scrape(
    request: ScrapeRequest | None = None,
    services: Services = Depends(get_services),
    source_builder: SourceBuilder = Depends(get_source_builder),
) -> dict[str, Any]:
    """Run every (or the requested) source and return the run report."""
    request = request or ScrapeRequest()
    try:
        adapters = source_builder(request.sources)
    except ConfigurationError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(e)) from e

    logger.info("admin_scrape_requested", sources=[a.name for a in adapters])
    orchestrator = services.create_orchestrator(adapters)
    report = await orchestrator.fetch_all(FetchParams(max_pages=request.max_pages))
    if not report.success:
        # Every source failed; the body still carries the full report
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=report.to_dict())
    return report.to_dict()


@app.delete("/admin/events/{event_id}", tags=["Admin"], dependencies=[Depends(require_admin)])
async def delete_event(
    event_id: str,
    request: DeleteEventRequest | None = None,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Delete the event and blacklist it in one transaction."""
    reason = (request or DeleteEventRequest()).reason
    try:
        event = await services.admin.delete_event_and_blacklist(event_id, reason)
    except EventNotFoundError as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(e)) from e

    return {
        "deleted": event_id,
        "blacklisted": {"source": event.source, "external_id": event.external_id},
        "reason": reason,
    }


@app.post("/admin/reset", tags=["Admin"], dependencies=[Depends(require_admin)])
async def reset(services: Services = Depends(get_services)) -> dict[str, int]:
    """Delete every event and blacklist entry."""
    result = await services.admin.reset_database()
    return {
        "events_deleted": result.events_deleted,
        "blacklist_deleted": result.blacklist_deleted,
    }
