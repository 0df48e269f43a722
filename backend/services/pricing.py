# backend/services/pricing.py
"""
Totals calculation for carts, web orders and counter sales.

Everything here is pure: callers pass (quantity, unit_price) pairs and get the
money figures back. Shipping and tax are policies (plain callables) so the
current zero-cost behavior can be swapped without touching the engines.
"""
import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple

from config import settings

# (subtotal, total item count) -> shipping cost
ShippingPolicy = Callable[[float, int], float]
# subtotal -> tax amount
TaxPolicy = Callable[[float], float]


@dataclass(frozen=True)
class Totals:
    subtotal: float
    shipping: float
    tax: float
    total: float
    total_items: int


def as_number(value: Any) -> float:
    """Coerce a price or quantity to a finite float; anything unusable counts as zero."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def line_total(quantity: Any, unit_price: Any) -> float:
    return round(as_number(quantity) * as_number(unit_price), 2)


def no_charge(*_args) -> float:
    return 0.0


def flat_shipping(rate: float) -> ShippingPolicy:
    def _policy(subtotal: float, total_items: int) -> float:
        return as_number(rate) if total_items > 0 else 0.0
    return _policy


def percent_tax(percent: float) -> TaxPolicy:
    def _policy(subtotal: float) -> float:
        return round(subtotal * as_number(percent) / 100.0, 2)
    return _policy


def default_shipping_policy() -> ShippingPolicy:
    return flat_shipping(settings.SHIPPING_FLAT_RATE) if settings.SHIPPING_FLAT_RATE else no_charge


def default_tax_policy() -> TaxPolicy:
    return percent_tax(settings.TAX_RATE_PERCENT) if settings.TAX_RATE_PERCENT else no_charge


def calculate_totals(
    lines: Iterable[Tuple[Any, Any]],
    shipping_policy: Optional[ShippingPolicy] = None,
    tax_policy: Optional[TaxPolicy] = None,
) -> Totals:
    shipping_policy = shipping_policy or default_shipping_policy()
    tax_policy = tax_policy or default_tax_policy()

    subtotal = 0.0
    total_items = 0
    for quantity, unit_price in lines:
        subtotal += line_total(quantity, unit_price)
        total_items += int(as_number(quantity))
    subtotal = round(subtotal, 2)

    shipping = round(as_number(shipping_policy(subtotal, total_items)), 2)
    tax = round(as_number(tax_policy(subtotal)), 2)
    return Totals(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        total=round(subtotal + shipping + tax, 2),
        total_items=total_items,
    )
