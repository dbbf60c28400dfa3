"""Catalog store: product repository with conditional stock updates.

``take_stock`` is the only concurrency-sensitive operation in the catalogue:
it is a single ``UPDATE ... WHERE stock >= amount`` so two checkouts racing
for the last unit cannot both succeed, whatever the isolation level. It runs
inside the caller's unit of work, next to the order insert.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.query import Q

from catalogue.product.product import Product
from shared.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.repository(part_of=Product)
class CatalogStore:
    def require(self, product_id: str) -> Product:
        product = self.get_or_none(str(product_id))
        if product is None:
            raise ValidationError({"product_id": [f"Product with ID {product_id} not found"]})
        return product

    def catalogue(self) -> list[Product]:
        return self.query.order_by("name").limit(None).all().items

    def take_stock(self, product_id: str, amount: int) -> bool:
        """Atomically take ``amount`` units. Returns False when stock is insufficient."""
        model = self._dao.database_model_cls
        updated = self._dao._update_all(
            Q(id=str(product_id), stock__gte=amount),
            {"stock": model.stock - amount},
        )
        if updated != 1:
            logger.info("Stock decrement rejected", product_id=str(product_id), amount=amount)
        return updated == 1

    def restore_stock(self, product_id: str, amount: int) -> None:
        """Give back units taken by ``take_stock`` (compensation path)."""
        model = self._dao.database_model_cls
        self._dao._update_all(Q(id=str(product_id)), {"stock": model.stock + amount})
        logger.info("Stock restored", product_id=str(product_id), amount=amount)
