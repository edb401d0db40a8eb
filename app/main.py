"""
FanoutAPI - Multi-tenant event fan-out service

FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Import observability modules
from app.config import settings
from app.logging_config import configure_logging, get_logger
from app.sentry_config import configure_sentry
from app.middleware.logging import LoggingMiddleware
from app.routes.metrics import router as metrics_router

# Registries and queue
from app.events import build_event_registry
from app.plugins.registry import build_plugin_manager
from app.queue import close_job_queue, get_job_queue

# Import route modules
from app.routes.events import router as events_router
from app.routes.webhooks import router as webhooks_router
from app.routes.integrations import router as integrations_router

# Initialize logging first
configure_logging()

# Initialize Sentry (if SENTRY_DSN is set)
configure_sentry()

log = get_logger(component="api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the plugin manager, then the event registry, then open the queue."""
    app.state.plugins = build_plugin_manager()
    app.state.events = build_event_registry()
    app.state.job_queue = get_job_queue()

    log.info(
        "api_started",
        plugins=sorted(app.state.plugins.slugs()),
        events=len(app.state.events),
    )
    yield

    await close_job_queue()
    log.info("api_stopped")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Multi-tenant event fan-out to signed webhooks and third-party integrations",
    lifespan=lifespan,
)

# Add logging middleware FIRST (runs before other middleware)
app.add_middleware(LoggingMiddleware)

# Add CORS middleware so the dashboard can call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include metrics endpoint FIRST (so it's always available)
app.include_router(metrics_router)

# Include event routes
app.include_router(events_router)

# Include webhook routes
app.include_router(webhooks_router)

# Include integration routes
app.include_router(integrations_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "plugins": len(app.state.plugins.all()) if hasattr(app.state, "plugins") else 0,
        "events": len(app.state.events) if hasattr(app.state, "events") else 0,
    }
