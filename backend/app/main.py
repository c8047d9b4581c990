"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --reload --port 8000

Or from the project root (binds settings.HOST / settings.PORT):
    python -m backend.app.main
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from backend.app.core.config import settings
from backend.app.core.logging_config import setup_logging, get_logger
from backend.app.core.errors import register_error_handlers
from backend.app.core.health import HealthStatus, run_health_check

# ── Dispatch core ──
from backend.app.messaging.dispatcher import build_dispatcher

# ── API routers ──
from backend.app.api.v1.messages import router as messages_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the dispatcher on startup; stop it and close providers on shutdown."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    dispatcher = getattr(app.state, "dispatcher", None) or build_dispatcher(settings)
    app.state.dispatcher = dispatcher
    if settings.DISPATCH_AUTOSTART:
        dispatcher.start()
    yield
    await dispatcher.aclose()
    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Resilient outbound-message dispatch. Queues message identifiers, "
        "admits them under a concurrency cap, retries failed deliveries "
        "with exponential backoff, fails over between providers, and "
        "tracks per-message delivery status."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(messages_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "modules": [
            "status-ledger",
            "dispatch-queue",
            "provider-failover",
            "retry-backoff",
            "admission-control",
        ],
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Deep health probe — checks all subsystems."""
    report = await run_health_check(app.state.dispatcher)
    return report.to_dict()


@app.get("/health/live", tags=["health"])
async def liveness():
    """Kubernetes liveness probe — is the process alive?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness():
    """Kubernetes readiness probe — can we serve traffic?"""
    report = await run_health_check(app.state.dispatcher)
    if report.status is HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()


def run() -> None:
    """Serve the app on the configured host and port."""
    uvicorn.run(
        "backend.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_config=None,
    )


# CLI entry point
if __name__ == "__main__":
    run()
