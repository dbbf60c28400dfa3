"""Product aggregate: the slice of the catalogue that checkout depends on.

Product CRUD lives outside this service; what matters here is the selling
price, the stock counter and the variant attributes a shopper may pick.
Stock only ever moves through ``CatalogStore``'s conditional updates.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Float, Integer, List, String

from shared.domain import storefront

DEFAULT_FLAVORS = ["None"]
DEFAULT_STRENGTHS = [0, 3, 6, 12]
PLACEHOLDER_IMAGE = "https://via.placeholder.com/150"


@storefront.aggregate
class Product:
    name = String(max_length=255, required=True)
    price = Float(required=True, min_value=0)
    stock = Integer(min_value=0, default=0)
    images = List(content_type=String(max_length=1024, sanitize=False))
    flavors = List(content_type=String(max_length=100))
    strengths = List(content_type=Integer())
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, price, stock=0, images=None, flavors=None, strengths=None, product_id=None):
        now = datetime.now(UTC)
        values = dict(
            name=name,
            price=price,
            stock=stock,
            images=list(images or []),
            flavors=list(DEFAULT_FLAVORS if flavors is None else flavors),
            strengths=list(DEFAULT_STRENGTHS if strengths is None else strengths),
            created_at=now,
            updated_at=now,
        )
        if product_id is not None:
            values["id"] = product_id
        return cls(**values)

    def allows_flavor(self, flavor) -> bool:
        return flavor in (self.flavors or [])

    def allows_strength(self, strength) -> bool:
        try:
            return int(strength) in [int(s) for s in (self.strengths or [])]
        except (TypeError, ValueError):
            return False

    def resolve_image(self, selected_image: str | None) -> str:
        """Return the selected image if it belongs to this product, else the default."""
        if selected_image and selected_image in (self.images or []):
            return selected_image
        return self.images[0] if self.images else PLACEHOLDER_IMAGE

    def variant_errors(self, flavor, strength) -> list[str]:
        """List why a flavor/strength selection is not valid for this product."""
        errors = []
        if strength is None:
            errors.append(f"Strength is required for {self.name}")
        elif not self.allows_strength(strength):
            errors.append(f"Invalid strength for {self.name}")

        if not flavor:
            errors.append(f"Flavor is required for {self.name}")
        elif not self.allows_flavor(flavor):
            errors.append(f"Invalid flavor for {self.name}")
        return errors
