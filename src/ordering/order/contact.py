"""Shipping and contact details captured on an order.

Validated before any catalogue lookup so malformed requests never touch
storage.
"""

import re
from dataclasses import dataclass

from protean.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Optional leading +, then 10 to 15 digits
PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")


@dataclass(frozen=True)
class ContactDetails:
    shipping_address: str
    email: str
    phone: str


def validate_contact(shipping_address: str | None, email: str | None, phone: str | None) -> ContactDetails:
    """Return normalized contact details or raise ValidationError listing every problem."""
    shipping_address = (shipping_address or "").strip()
    email = (email or "").strip()
    phone = (phone or "").strip()

    errors: dict[str, list[str]] = {}
    if not shipping_address:
        errors["shipping_address"] = ["Shipping address is required"]

    if not email:
        errors["contact_email"] = ["Email address is required"]
    elif not EMAIL_PATTERN.match(email):
        errors["contact_email"] = ["Invalid email address"]

    if not phone:
        errors["contact_phone"] = ["Phone number is required"]
    elif not PHONE_PATTERN.match(phone):
        errors["contact_phone"] = ["Invalid phone number"]

    if errors:
        raise ValidationError(errors)

    return ContactDetails(shipping_address=shipping_address, email=email, phone=phone)
