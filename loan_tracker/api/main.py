"""FastAPI application factory"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loan_tracker.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loan_tracker.api.routes import loans
from loan_tracker.infrastructure.observability.logging import setup_logging
from loan_tracker.infrastructure.storage.selector import StorageSelector, build_storage_selector
from loan_tracker.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def create_app(storage_selector: Optional[StorageSelector] = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Loan Tracker",
        description="Borrower loans, payments, penalties and running balances",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.storage_selector = storage_selector or build_storage_selector(settings)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    )

    # Malformed request bodies answer 400, not 422
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logging.warning(f"Rejected request body: {exc.errors()}")
        return JSONResponse(status_code=400, content={"detail": "Invalid request."})

    # Health check endpoint
    @app.get("/health")
    def health_check(request: Request):
        backend = request.app.state.storage_selector.current()
        return {"status": "ok", "service": settings.service_name, "storage": backend.name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(loans.router, prefix="/api", tags=["loans"])

    return app


app = create_app()
