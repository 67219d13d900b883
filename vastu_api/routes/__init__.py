"""
API Routes — unload beacon, analytics archive + summary, health.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from vastu_api.database import get_archive_session
from vastu_api.routes.pages import get_page_views
from vastu_api.schemas import AnalyticsSummary, ArchiveResult, HealthResponse, UnloadBeacon
from vastu_api.services.analytics_archiver import archive_page_analytics, summarize
from vastu_api.services.firebase import backend_status
from vastu_api.services.page_views import PageViewRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health(page_views: PageViewRegistry = Depends(get_page_views)):
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        firebase=backend_status(),
        live_page_views=len(page_views),
    )


# ── Page unload beacon ──────────────────────────────────

@router.post("/analytics/unload", status_code=204, tags=["analytics"])
async def page_unload(
    request: Request,
    page_views: PageViewRegistry = Depends(get_page_views),
):
    """
    Unload beacon from the landing page.

    ``navigator.sendBeacon`` cannot set arbitrary headers, so the raw body is
    parsed as JSON whatever its content type.
    """
    body = await request.body()
    try:
        beacon = UnloadBeacon.model_validate_json(body)
    except ValidationError:
        raise HTTPException(status_code=422, detail="Invalid unload beacon")

    if not page_views.unload(beacon.view_id):
        logger.debug("Unload for unknown page view %s", beacon.view_id)
    return Response(status_code=204)


# ── Archive ─────────────────────────────────────────────

@router.get("/analytics/summary", response_model=AnalyticsSummary, tags=["analytics"])
async def analytics_summary(session: AsyncSession = Depends(get_archive_session)):
    return await summarize(session)


@router.post("/analytics/archive", response_model=ArchiveResult, tags=["analytics"])
async def run_archive():
    return await archive_page_analytics()
