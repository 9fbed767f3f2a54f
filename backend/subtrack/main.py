"""SubTrack — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from subtrack.api.v1.jobs import router as jobs_router
from subtrack.api.v1.subscriptions import router as subscriptions_router
from subtrack.api.v1.webhook_configs import router as webhook_configs_router
from subtrack.config import settings
from subtrack.exceptions import SubTrackError
from subtrack.logging_config import configure_logging

configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    yield
    # Shutdown: dispose engine connections
    from subtrack.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Subscription tracking with automatic renewals and signed webhook notifications.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SubTrackError)
async def subtrack_error_handler(request: Request, exc: SubTrackError) -> JSONResponse:
    """Render domain errors as ``{"detail", "code"}`` with their HTTP status."""
    if exc.status_code >= 500:
        logger.error("Request failed: path=%s code=%s error=%s", request.url.path, exc.code, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# Routers
app.include_router(subscriptions_router)
app.include_router(webhook_configs_router)
app.include_router(jobs_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
