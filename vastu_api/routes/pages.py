"""
Page Routes — landing page (mount + submit) and the success page.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse

from vastu_api.config import settings
from vastu_api.exceptions import SubmissionInProgressError
from vastu_api.schemas.registration import FloorPlanUpload
from vastu_api.services.analytics import PageContext
from vastu_api.services.beacon import BeaconTransport
from vastu_api.services.firebase import FirebaseBackend
from vastu_api.services.page_views import PageViewRegistry
from vastu_api.services.pages import render_registration_page, render_success_page
from vastu_api.services.session import CookieSessionStorage, SessionIdentityProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])

_registry: Optional[PageViewRegistry] = None


def get_page_views() -> PageViewRegistry:
    """FastAPI dependency — the process-wide page-view registry, built on first use."""
    global _registry
    if _registry is None:
        backend = FirebaseBackend(make_public=settings.make_uploads_public)
        _registry = PageViewRegistry(
            backend,
            backend,
            BeaconTransport(settings.beacon_endpoint, timeout=settings.beacon_timeout_secs),
            bucket=settings.firebase_storage_bucket,
            registrations_table=settings.registrations_table,
            analytics_table=settings.analytics_table,
            bounce_threshold=settings.bounce_threshold_secs,
            max_upload_bytes=settings.max_upload_bytes,
            capacity=settings.max_page_views,
        )
    return _registry


def current_registry() -> Optional[PageViewRegistry]:
    """The registry if one was built, without building it."""
    return _registry


def _page_context(request: Request) -> PageContext:
    return PageContext(
        page_url=str(request.url),
        referrer=request.headers.get("referer") or None,
        user_agent=request.headers.get("user-agent", ""),
    )


# ── Landing page ────────────────────────────────────────

@router.get("/", response_class=HTMLResponse)
async def landing_page(
    request: Request,
    page_views: PageViewRegistry = Depends(get_page_views),
):
    storage = CookieSessionStorage(request.cookies, secure=request.url.scheme == "https")
    session = SessionIdentityProvider(storage, key=settings.session_cookie_name).context()

    view = await page_views.open(session, _page_context(request))

    response = HTMLResponse(
        render_registration_page(view, max_upload_bytes=settings.max_upload_bytes)
    )
    storage.write_to(response)
    return response


@router.post("/", response_class=HTMLResponse)
async def submit_registration(
    view_id: str = Form(...),
    name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    date_of_birth: str = Form(""),
    time_of_birth: str = Form(""),
    place_of_birth: str = Form(""),
    floor_plan: Optional[UploadFile] = File(None),
    page_views: PageViewRegistry = Depends(get_page_views),
):
    view = page_views.get(view_id)
    if view is None:
        raise HTTPException(status_code=404, detail="Page expired, reload and try again")

    upload = None
    if floor_plan is not None and floor_plan.filename:
        upload = FloorPlanUpload(
            filename=floor_plan.filename,
            content_type=floor_plan.content_type or "",
            # one byte past the limit is enough to reject an oversized file
            data=await floor_plan.read(settings.max_upload_bytes + 1),
        )

    values = {
        "name": name,
        "phone": phone,
        "email": email,
        "date_of_birth": date_of_birth,
        "time_of_birth": time_of_birth,
        "place_of_birth": place_of_birth,
    }
    try:
        result = await view.form.submit(values, upload)
    except SubmissionInProgressError as e:
        raise HTTPException(status_code=409, detail=e.message)

    if result.ok:
        status_code = 200
    elif result.errors:
        status_code = 422
    else:
        status_code = 502

    return HTMLResponse(
        render_registration_page(view, max_upload_bytes=settings.max_upload_bytes),
        status_code=status_code,
    )


# ── Success page ────────────────────────────────────────

@router.get("/success", response_class=HTMLResponse)
async def success_page():
    return HTMLResponse(render_success_page())
