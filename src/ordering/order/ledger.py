"""Order ledger: the Order repository.

Payment transitions are aggregate methods persisted under the optimistic
``_version`` check, so when two deliveries race for the same session only
one commit lands; the loser sees ``ExpectedVersionError`` and re-reads.
"""

import structlog
from protean import UnitOfWork
from protean.exceptions import InvalidStateError, ObjectNotFoundError

from ordering.order.order import Order
from shared.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.repository(part_of=Order)
class OrderLedger:
    def require(self, order_id: str) -> Order:
        order = self.get_or_none(str(order_id))
        if order is None:
            raise ObjectNotFoundError("Order not found")
        return order

    def for_session(self, session_ref: str) -> Order | None:
        try:
            return self.find_by(payment_session_ref=session_ref)
        except ObjectNotFoundError:
            return None

    def history(self, owner: str | None = None) -> list[Order]:
        query = self.query.order_by("-created_at").limit(None)
        if owner is not None:
            query = query.filter(owner=str(owner))
        return query.all().items

    def discard(self, order_id: str) -> None:
        """Delete an unpaid pending order together with its line items."""
        with UnitOfWork():
            order = self.require(order_id)
            if not order.is_deletable:
                raise InvalidStateError("Only unpaid pending orders can be deleted")

            order.remove_items(list(order.items))
            self.add(order)
            self._dao.delete(order)
        logger.info("Pending order deleted", order_id=str(order_id))
