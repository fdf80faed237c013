"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from quota_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from quota_gateway.api.v1 import cod, orders, packages, quota, subscriptions
from quota_gateway.infrastructure.observability.logging import setup_logging
from quota_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Village Commerce Quota Gateway",
        description="Merchant transaction-quota ledger and COD risk service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(cod.router, prefix="/v1", tags=["cod"])
    app.include_router(quota.router, prefix="/v1", tags=["quota"])
    app.include_router(subscriptions.router, prefix="/v1", tags=["subscriptions"])
    app.include_router(packages.router, prefix="/v1", tags=["packages"])
    app.include_router(orders.router, prefix="/v1", tags=["orders"])

    return app


app = create_app()
