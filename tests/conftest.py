from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

from app import create_app
from catalogue.product.product import Product
from payments.gateway.fake_adapter import FakeGateway
from payments.reconciliation.cart_signal import CartClearSignal, install_cart_signal
from shared.config import Settings
from shared.domain import configure_domain, setup_database, storefront


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


class RecordingCartSignal(CartClearSignal):
    """Cart-clear signal that remembers who it was asked to clear."""

    def __init__(self, fail: bool = False) -> None:
        self.cleared: list[str] = []
        self.fail = fail

    def clear(self, owner: str) -> None:
        self.cleared.append(owner)
        if self.fail:
            raise RuntimeError("cart service unreachable")


@pytest.fixture(scope="session")
def database_url(tmp_path_factory):
    """A file-backed SQLite database, so worker threads share one store."""
    return f"sqlite:///{tmp_path_factory.mktemp('db') / 'storefront.db'}"


@pytest.fixture(scope="session")
def storefront_bed(database_url):
    configure_domain(Settings(environment="test", database_url=database_url))
    setup_database()

    bed = DomainFixture(storefront)
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture()
def settings(database_url):
    return Settings(environment="test", database_url=database_url)


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def cart_signal():
    signal = RecordingCartSignal()
    previous = install_cart_signal(signal)
    yield signal
    install_cart_signal(previous)


@pytest.fixture()
def failing_cart_signal():
    signal = RecordingCartSignal(fail=True)
    previous = install_cart_signal(signal)
    yield signal
    install_cart_signal(previous)


@pytest.fixture()
def add_product():
    """Factory fixture: insert a product and return its id."""

    def _add(name="Arctic Mint", price=5.00, stock=10, images=None, flavors=None, strengths=None, product_id=None):
        product = Product.create(
            name=name,
            price=price,
            stock=stock,
            images=images if images is not None else [f"https://cdn.example.com/{name}.png"],
            flavors=flavors if flavors is not None else ["Mint", "Spearmint"],
            strengths=strengths if strengths is not None else [3, 6, 12],
            product_id=product_id,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    return _add


@pytest.fixture()
def stock_of():
    def _stock(product_id):
        return current_domain.repository_for(Product).require(product_id).stock

    return _stock


@pytest.fixture()
def api_settings(database_url):
    return Settings(environment="test", database_url=database_url, internal_api_token="internal-token")


@pytest.fixture()
def client(api_settings, gateway, cart_signal):
    app = create_app(settings=api_settings, gateway=gateway, cart_signal=cart_signal)
    with TestClient(app) as test_client:
        yield test_client
