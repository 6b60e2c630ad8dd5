"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from scheme_tracker.api.middleware import RequestIDMiddleware, MetricsMiddleware
from scheme_tracker.api.v1 import holders, jobs, payments
from scheme_tracker.infrastructure.observability.logging import setup_logging
from scheme_tracker.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Savings Scheme Tracker",
        description="Weekly savings scheme progress, WhatsApp notifications and reports",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(holders.router, prefix="/v1", tags=["holders"])
    app.include_router(jobs.router, prefix="/v1", tags=["jobs"])

    return app


app = create_app()
