"""
Shared helpers for domain models: money arithmetic and slugs
"""
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

TWO_PLACES = Decimal("0.01")

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def to_money(value) -> Decimal:
    """Coerce a number/string/None to a Decimal rounded to cents"""
    if value is None or value == "":
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Amount in the smallest currency unit (cents)"""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def slugify(text: str) -> str:
    """
    Lower-case, non-alphanumerics collapsed to '-', no leading/trailing '-'

    >>> slugify("Summer Sale 2025!")
    'summer-sale-2025'
    """
    return _SLUG_INVALID.sub("-", (text or "").lower()).strip("-")


def unique_slug(base_slug: str, existing: Iterable[str], exclude: Optional[str] = None) -> str:
    """First of base, base-1, base-2, ... that is not taken"""
    taken = {s for s in existing if s != exclude}
    slug = base_slug
    counter = 1
    while slug in taken:
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug
