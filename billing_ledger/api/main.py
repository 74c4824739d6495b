"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from billing_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from billing_ledger.api.v1 import calculator, cycle, financings, payments
from billing_ledger.infrastructure.observability.logging import setup_logging
from billing_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Billing Ledger",
        description="Installment financing schedules, payments and weekly billing cycle",
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
    app.include_router(financings.router, prefix="/v1", tags=["financings"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(cycle.router, prefix="/v1", tags=["cycle"])
    app.include_router(calculator.router, prefix="/v1", tags=["calculator"])

    return app


app = create_app()
