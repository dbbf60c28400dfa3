"""The storefront domain: catalogue, ordering and payments share one protean Domain.

Checkout inserts the order and takes stock in the same transaction, so every
aggregate lives in one domain backed by one database provider. Events are
processed synchronously: handlers run right after the unit of work that
raised them commits.
"""

import importlib

import structlog
from protean.domain import Domain

from shared.config import Settings

storefront = Domain(
    name="storefront",
    config={
        "event_processing": "sync",
        "command_processing": "sync",
    },
)

logger = structlog.get_logger(__name__)

# Modules that register aggregates, entities, repositories, events and handlers
ELEMENT_MODULES = (
    "catalogue.product.product",
    "catalogue.product.store",
    "ordering.order.events",
    "ordering.order.order",
    "ordering.order.ledger",
    "ordering.cart.cart",
    "ordering.cart.order_events",
)

_configured_url: str | None = None


def database_config(settings: Settings) -> dict:
    """Provider settings for the ``default`` database, derived from DATABASE_URL."""
    if settings.database_url.startswith("postgresql"):
        return {"provider": "postgresql", "database_uri": settings.database_url}

    # Concurrent writers wait on the file lock instead of failing fast
    return {
        "provider": "sqlite",
        "database_uri": settings.database_url,
        "connect_args": {"check_same_thread": False, "timeout": 30},
    }


def configure_domain(settings: Settings) -> Domain:
    """Point the domain at the configured database and initialize it once per database."""
    global _configured_url

    if _configured_url == settings.database_url:
        return storefront

    storefront.config["databases"]["default"] = database_config(settings)
    for module in ELEMENT_MODULES:
        importlib.import_module(module)
    storefront.init(traverse=False)

    _configured_url = settings.database_url
    logger.info("Storefront domain initialized", provider=storefront.config["databases"]["default"]["provider"])
    return storefront


def setup_database() -> None:
    with storefront.domain_context():
        storefront.setup_database()


def drop_database() -> None:
    with storefront.domain_context():
        storefront.drop_database()
