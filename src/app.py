"""Storefront FastAPI application.

Catalogue, cart, checkout, order administration and payment reconciliation
served from one process on a single protean domain. Services are built once
per app and shared through ``app.state``; every request runs inside the
domain context and routes run their blocking work in the threadpool, so many
checkouts and webhook deliveries can be in flight at the same time.

Usage:
    uvicorn app:create_app --factory --app-dir src --host 0.0.0.0 --port 8000
"""

from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from catalogue.api import product_router
from ordering.api.routes import cart_router, checkout_router, internal_router, order_router
from ordering.checkout.orchestrator import CheckoutOrchestrator
from payments.api.routes import payment_router
from payments.gateway import build_gateway
from payments.gateway.port import PaymentGateway
from payments.reconciliation.cart_signal import CartClearSignal, build_cart_signal, install_cart_signal
from payments.reconciliation.reconciler import PaymentReconciler
from shared.config import Settings
from shared.domain import configure_domain, setup_database, storefront
from shared.errors import register_service_error_handlers
from shared.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    gateway: PaymentGateway | None = None,
    cart_signal: CartClearSignal | None = None,
) -> FastAPI:
    """Build the application. Collaborators default to what ``settings`` describes."""
    settings = settings or Settings.from_env()
    configure_logging(settings)

    configure_domain(settings)
    setup_database()
    gateway = gateway or build_gateway(settings)
    install_cart_signal(cart_signal or build_cart_signal(settings))

    app = FastAPI(
        title="Storefront API",
        description="Catalogue, carts, checkout and payment reconciliation",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    register_service_error_handlers(app)

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the storefront domain context and tag log lines with the request id and path."""
        clear_context()
        add_context(request_id=request.headers.get("x-request-id") or uuid4().hex, path=request.url.path)
        try:
            with storefront.domain_context():
                response = await call_next(request)
            return response
        finally:
            clear_context()

    # -----------------------------------------------------------------------
    # Shared services
    # -----------------------------------------------------------------------
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.orchestrator = CheckoutOrchestrator(gateway, settings)
    app.state.reconciler = PaymentReconciler(gateway, settings)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(product_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(internal_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "environment": settings.environment,
                "payment_gateway": type(gateway).__name__,
            }
        )

    logger.info(
        "Storefront application created",
        environment=settings.environment,
        payment_gateway=type(gateway).__name__,
        cart_clear_mode=settings.cart_clear_mode,
    )
    return app
