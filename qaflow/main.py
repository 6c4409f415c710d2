"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from qaflow.api.router import api_router
from qaflow.config import settings
from qaflow.errors import WorkflowError
from qaflow.models.database import close_db, init_db
from qaflow.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # Startup
    setup_logging()

    # Sentry init if configured
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1,
        )

    await init_db()
    logger.info("startup", version=settings.APP_VERSION, blob_backend=settings.BLOB_BACKEND)

    yield

    # Shutdown
    await close_db()


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Translate workflow errors into their HTTP equivalents."""
    level = "error" if exc.status_code >= 500 else "info"
    getattr(logger, level)(
        "workflow_error",
        error=exc.name,
        message=exc.message,
        path=request.url.path,
        status_code=exc.status_code,
    )
    body = {"detail": exc.message, "error": exc.name}
    if exc.details:
        body.update(exc.details)
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Recording QA Workflow",
        description="Upload paired audio/transcript recordings and route them through QA review.",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics endpoint
    if settings.PROMETHEUS_ENABLED:
        from prometheus_client import make_asgi_app
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    app.add_exception_handler(WorkflowError, workflow_error_handler)

    # Include all API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()
