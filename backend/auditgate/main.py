"""
Main entitlement service FastAPI application.
"""
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import Settings, get_settings
from .core.container import Services, build_supabase_services
from .core.errors import AuditGateError
from .api.v1.admin import router as admin_router
from .api.v1.billing import router as billing_router
from .api.v1.plans import router as plans_router
from .api.v1.subscription import router as subscription_router

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Log to stdout for the container log collector."""
    log_level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )

    logging.getLogger("auditgate.admin.audit").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)  # Reduce access log noise
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def audit_gate_error_handler(request: Request, exc: AuditGateError) -> JSONResponse:
    """Render domain errors with their status code and a stable error body."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    headers = {"Retry-After": "5"} if exc.retryable else None
    if exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.
    """
    logger.info("🚀 Starting entitlement service...")
    logger.info(f"📋 Plan catalog: {', '.join(plan.id for plan in app.state.services.catalog.plans())}")
    yield
    logger.info("🔴 Application shutdown complete")


def create_application(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Explicit settings, loaded from the environment when omitted
        services: Explicit service graph, wired to Supabase when omitted
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.project_name,
        description="Plan entitlements and audit usage accounting",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.services = services or build_supabase_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Admin-Token", "X-Admin-Actor"],
    )
    logger.info(f"🔒 CORS configured with {len(settings.allowed_origins)} origins")

    app.add_exception_handler(AuditGateError, audit_gate_error_handler)

    # Include routers
    app.include_router(subscription_router, prefix=settings.api_v1_str)
    app.include_router(plans_router, prefix=settings.api_v1_str)
    app.include_router(billing_router, prefix=settings.api_v1_str)
    app.include_router(admin_router, prefix=settings.api_v1_str)
    if settings.admin_enabled:
        logger.info("🛠️  Admin endpoints enabled at /api/v1/admin")
    else:
        logger.warning("⚠️  ADMIN_API_KEY not set - admin endpoints will reject every request")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Entitlement Service API",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs" if settings.debug else "disabled",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "entitlements-api",
            "environment": settings.environment,
        }

    return app
