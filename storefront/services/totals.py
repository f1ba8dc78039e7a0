# storefront/services/totals.py
"""
The only place order money is computed. Cart views, checkout and order
records all call compute_totals; nothing patches a total incrementally.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from storefront.domain.errors import ValidationError
from storefront.utils import settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class PricedLine(Protocol):
    unit_price: Decimal | None
    quantity: int


@dataclass(frozen=True)
class TotalsPolicy:
    tax_rate: Decimal
    free_shipping_threshold: Decimal
    flat_shipping_fee: Decimal

    @classmethod
    def from_settings(cls) -> "TotalsPolicy":
        return cls(
            tax_rate=settings.TAX_RATE,
            free_shipping_threshold=settings.FREE_SHIPPING_THRESHOLD,
            flat_shipping_fee=settings.FLAT_SHIPPING_FEE,
        )


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "tax": self.tax,
            "shipping": self.shipping,
            "total": self.total,
        }


def compute_totals(lines: Iterable[PricedLine], policy: TotalsPolicy | None = None) -> OrderTotals:
    policy = policy or TotalsPolicy.from_settings()

    subtotal = Decimal(0)
    count = 0
    for line in lines:
        if line.unit_price is None:
            raise ValidationError("Cannot total a line without a unit price")
        if line.quantity <= 0:
            raise ValidationError("Line quantity must be positive", quantity=line.quantity)
        subtotal += Decimal(line.unit_price) * line.quantity
        count += 1

    if count == 0:
        return OrderTotals(ZERO, ZERO, ZERO, ZERO)

    # rounded once, here, not per line
    subtotal = subtotal.quantize(CENT, rounding=ROUND_HALF_UP)
    tax = (subtotal * policy.tax_rate).quantize(CENT, rounding=ROUND_HALF_UP)
    shipping = ZERO if subtotal > policy.free_shipping_threshold else policy.flat_shipping_fee.quantize(CENT)
    total = subtotal + tax + shipping

    return OrderTotals(subtotal=subtotal, tax=tax, shipping=shipping, total=total)
