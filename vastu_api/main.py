"""
FastAPI Application — entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vastu_api.config import settings
from vastu_api.database import close_db, init_db
from vastu_api.exceptions import IntakeError
from vastu_api.routes import router
from vastu_api.routes.pages import current_registry, router as pages_router
from vastu_api.services.analytics_archiver import archive_page_analytics
from vastu_api.services.firebase import init_firebase

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def periodic_archive(interval: int = 3600) -> None:
    """Archive hosted analytics into SQL every ``interval`` seconds."""
    while True:
        try:
            await asyncio.sleep(interval)
            await archive_page_analytics()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Analytics archive error: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting Vastu Samadhan Registration v%s", VERSION)
    await init_db()
    logger.info("✅ Database ready")

    # Hosted backend (optional locally, needs service account key)
    fb_ok = init_firebase(
        cred_path=settings.firebase_cred_path,
        db_url=settings.firebase_db_url,
        storage_bucket=settings.firebase_storage_bucket,
    )
    archive_task = None
    if fb_ok:
        logger.info("✅ Firebase backend ready")
        archive_task = asyncio.create_task(
            periodic_archive(interval=settings.archive_interval)
        )
    else:
        logger.info("ℹ️ Firebase backend disabled (no credentials), submissions will fail")

    yield

    # Shutdown
    if archive_task is not None:
        archive_task.cancel()
        try:
            await archive_task
        except asyncio.CancelledError:
            pass

    registry = current_registry()
    if registry is not None and registry.beacon.pending:
        logger.info("📡 Flushing %d analytics beacon(s)", registry.beacon.pending)
        await registry.beacon.drain(timeout=settings.beacon_timeout_secs)

    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="Vastu Samadhan Registration",
    description="Pre-testing registration form with session analytics.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntakeError)
async def intake_error_handler(request: Request, exc: IntakeError):
    logger.error("Unhandled %s on %s: %s", exc.error_code, request.url.path, exc.message)
    return JSONResponse(status_code=500, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": "Something went wrong. Please try again."},
    )


app.include_router(pages_router)
app.include_router(router, prefix="/api/v1")
