"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from fintara_gateway.api.errors import register_exception_handlers
from fintara_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from fintara_gateway.api.v1 import approvals, loan_requests, schedules
from fintara_gateway.infrastructure.observability.logging import setup_logging
from fintara_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Fintara Loan Gateway",
        description="Loan request submission and multi-stage approval service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Static /loan-requests/* paths must register before /loan-requests/{loan_request_id}
    app.include_router(loan_requests.router, prefix="/v1", tags=["loan-requests"])
    app.include_router(schedules.router, prefix="/v1", tags=["schedules"])
    app.include_router(approvals.router, prefix="/v1", tags=["approvals"])

    return app


app = create_app()
