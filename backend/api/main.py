"""
ChaosMart API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from core.config import get_settings
from core.errors import DomainError

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("ChaosMart API starting up", version=settings.app_version, env=settings.app_env)
    yield
    logger.info("ChaosMart API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Mock marketplace backend with idempotent events, a versioned inventory ledger and chaos injection",
    lifespan=lifespan,
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Map domain failures onto HTTP: 400 invalid input, 404 missing, 409 conflicts."""
    logger.info(
        "api.domain_error",
        path=request.url.path,
        error=type(exc).__name__,
        status=exc.status_code,
        detail=str(exc),
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import (
    admin_events,
    admin_inventory,
    admin_platform,
    chat,
    events,
    inventory,
    teams,
)

app.include_router(inventory.router)
app.include_router(events.router)
app.include_router(chat.router)
app.include_router(teams.router)
app.include_router(admin_events.router)
app.include_router(admin_inventory.router)
app.include_router(admin_platform.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
