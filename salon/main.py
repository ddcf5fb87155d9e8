import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from salon.api.routes import (
    appointments,
    auth,
    availability,
    categories,
    drive,
    images,
    notifications,
    oauth,
    public_hours,
    reviews,
    services,
)
from salon.core.config import _ENV_FILE, settings
from salon.core.db import async_session_maker
from salon.services.drive_service import drive_service
from salon.services.image_service import delete_temp_images_older_than
from salon.services.integration_token_service import load_drive_token
from salon.services.token_monitor import token_monitor

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 6 * 60 * 60  # 6 hours


async def _run_temp_image_cleanup() -> None:
    """Delete TEMP images older than temp_image_retention_hours."""
    try:
        async with async_session_maker() as session:
            try:
                n = await delete_temp_images_older_than(session, settings.temp_image_retention_hours)
                await session.commit()
                if n:
                    logger.info("Image cleanup: deleted %d temporary image(s)", n)
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        logger.exception("Image cleanup failed: %s", e)


async def _cleanup_loop() -> None:
    while True:
        await _run_temp_image_cleanup()
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)


async def _load_integration_tokens() -> None:
    """Use the stored Drive grant so a re-authorization survives restarts."""
    try:
        async with async_session_maker() as session:
            await load_drive_token(session, drive_service)
            await session.commit()
    except Exception as e:
        logger.exception("Could not load stored integration tokens: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    await _load_integration_tokens()
    if drive_service.configured:
        logger.info("Google Drive: configured, uploads go to Drive")
    else:
        logger.warning("Google Drive: NOT configured, uploads are stored in %s", settings.upload_dir)
    token_monitor.start()
    cleanup = asyncio.create_task(_cleanup_loop())
    yield
    cleanup.cancel()
    try:
        await cleanup
    except asyncio.CancelledError:
        pass
    await token_monitor.stop()


app = FastAPI(
    title="Rachell Nails API",
    description="Backend for the salon: availability, bookings, catalog, gallery and reviews",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Refresh-Token"],
)

for module in (auth, availability, appointments, services, categories, images, reviews, notifications, drive, oauth):
    app.include_router(module.router, prefix="/api")
app.include_router(availability.admin_router, prefix="/api")
app.include_router(public_hours.router, prefix="/api")
app.include_router(public_hours.admin_router, prefix="/api")

Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type, X-Refresh-Token",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


def _field_name(loc: tuple) -> str:
    # Drop the "body"/"query" prefix pydantic puts in front of the field path
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"field": _field_name(e.get("loc", ())), "message": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation error", "errors": errors},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    headers = _cors_headers(request.headers.get("origin"))
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the real error; clients only get a generic message."""
    logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
