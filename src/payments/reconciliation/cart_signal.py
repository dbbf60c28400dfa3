"""Cart-clear signal: empties a shopper's cart once their payment is confirmed.

Two adapters:
- LocalCartClearSignal clears the cart in this service's own database.
- HttpCartClearSignal calls the cart owner's service over HTTP with a
  service-to-service bearer token, for deployments where carts live
  elsewhere.

The ``OrderPaid`` handler reads the installed signal through
``current_cart_signal``; the application installs one at startup.
"""

from abc import ABC, abstractmethod

import requests
import structlog

from ordering.cart.management import CartService
from shared.config import Settings

logger = structlog.get_logger(__name__)


class CartClearSignal(ABC):
    @abstractmethod
    def clear(self, owner: str) -> None:
        """Empty the cart belonging to ``owner``."""
        ...


class LocalCartClearSignal(CartClearSignal):
    def clear(self, owner: str) -> None:
        CartService().clear(owner)


class HttpCartClearSignal(CartClearSignal):
    def __init__(self, url_template: str, token: str, timeout: float = 5.0) -> None:
        self.url_template = url_template
        self.token = token
        self.timeout = timeout

    def clear(self, owner: str) -> None:
        response = requests.post(
            self.url_template.format(owner=owner),
            json={},
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=self.timeout,
        )
        response.raise_for_status()


def build_cart_signal(settings: Settings) -> CartClearSignal:
    if settings.cart_clear_mode == "http":
        if not settings.internal_api_token:
            raise ValueError("INTERNAL_API_TOKEN is required for the http cart-clear signal")
        return HttpCartClearSignal(settings.cart_clear_url, settings.internal_api_token)
    return LocalCartClearSignal()


_installed: CartClearSignal = LocalCartClearSignal()


def install_cart_signal(signal: CartClearSignal) -> CartClearSignal:
    """Make ``signal`` the one used after payments. Returns the previous signal."""
    global _installed
    previous, _installed = _installed, signal
    logger.debug("Cart-clear signal installed", signal=type(signal).__name__)
    return previous


def current_cart_signal() -> CartClearSignal:
    return _installed
