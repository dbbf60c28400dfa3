"""Application tests for stock adjustments in the catalog store."""

import pytest
from protean import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from catalogue.product.product import Product


@pytest.fixture()
def store():
    return current_domain.repository_for(Product)


class TestTakeStock:
    def test_take_within_stock(self, store, add_product, stock_of):
        product_id = add_product(stock=5)

        assert store.take_stock(product_id, 5) is True

        assert stock_of(product_id) == 0

    def test_take_beyond_stock_is_refused(self, store, add_product, stock_of):
        product_id = add_product(stock=2)

        assert store.take_stock(product_id, 3) is False

        assert stock_of(product_id) == 2

    def test_unknown_product_is_refused(self, store):
        assert store.take_stock("missing", 1) is False

    def test_restore(self, store, add_product, stock_of):
        product_id = add_product(stock=2)

        store.take_stock(product_id, 2)
        store.restore_stock(product_id, 2)

        assert stock_of(product_id) == 2

    def test_rolled_back_with_the_unit_of_work(self, store, add_product, stock_of):
        product_id = add_product(stock=3)

        with pytest.raises(RuntimeError):
            with UnitOfWork():
                store.take_stock(product_id, 3)
                raise RuntimeError("checkout aborted")

        assert stock_of(product_id) == 3


class TestLookups:
    def test_require_unknown_product(self, store):
        with pytest.raises(ValidationError) as exc:
            store.require("missing")
        assert exc.value.messages == {"product_id": ["Product with ID missing not found"]}

    def test_catalogue_is_sorted_by_name(self, store, add_product):
        add_product(name="Beta")
        add_product(name="Alpha")

        assert [p.name for p in store.catalogue()] == ["Alpha", "Beta"]

    def test_defaults_for_variants(self, store):
        product = store.add(Product.create(name="Plain", price=1.00))

        assert store.get(product.id).flavors == ["None"]
        assert store.get(product.id).strengths == [0, 3, 6, 12]
