# storefront/services/cart_merge.py
"""
Pure merge of cart line collections.

Lines are identified by (product_id, size, color). Duplicates are summed
and the result is clamped to the per-line cap. Clamping never fails, every
merged line reports its pre-clamp and post-clamp quantity so callers can
warn the user.
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable

from storefront.domain.cart import CartLine, LineKey
from storefront.utils.settings import MAX_LINE_QUANTITY


@dataclass(frozen=True)
class QuantityAdjustment:
    line_id: str
    requested: int
    applied: int

    @property
    def clamped(self) -> bool:
        return self.applied != self.requested


@dataclass(frozen=True)
class MergeResult:
    lines: tuple[CartLine, ...]
    adjustments: tuple[QuantityAdjustment, ...]

    @property
    def clamped(self) -> tuple[QuantityAdjustment, ...]:
        return tuple(a for a in self.adjustments if a.clamped)


def collapse(lines: Iterable[CartLine]) -> "OrderedDict[LineKey, CartLine]":
    """Sum every occurrence of the same identity. No cap applied here."""
    collapsed: OrderedDict[LineKey, CartLine] = OrderedDict()
    for line in lines:
        existing = collapsed.get(line.key)
        if existing is None:
            collapsed[line.key] = line
        else:
            collapsed[line.key] = existing.with_quantity(existing.quantity + line.quantity)
    return collapsed


def merge(
    base_lines: Iterable[CartLine],
    incoming_lines: Iterable[CartLine],
    cap: int = MAX_LINE_QUANTITY,
) -> MergeResult:
    """
    Fold incoming lines into base lines. Incoming duplicates are summed first,
    so the result does not depend on incoming order. Always starts from the
    given base snapshot, nothing is shared between calls.
    """
    merged = collapse(base_lines)
    incoming = collapse(incoming_lines)
    adjustments: list[QuantityAdjustment] = []

    for key, line in incoming.items():
        existing = merged.get(key)
        requested = line.quantity + (existing.quantity if existing else 0)
        applied = min(requested, cap)

        if existing is None:
            merged[key] = line.with_quantity(applied)
        else:
            # base keeps its variant/stock snapshot
            merged[key] = existing.with_quantity(applied)

        adjustments.append(QuantityAdjustment(line.line_id, requested, applied))

    # base lines above the cap are clamped too
    for key, line in list(merged.items()):
        if key not in incoming and line.quantity > cap:
            adjustments.append(QuantityAdjustment(line.line_id, line.quantity, cap))
            merged[key] = line.with_quantity(cap)

    return MergeResult(lines=tuple(merged.values()), adjustments=tuple(adjustments))


def merge_line(base_lines: Iterable[CartLine], line: CartLine, cap: int = MAX_LINE_QUANTITY) -> MergeResult:
    """Single-line form: find-or-append with summed, capped quantity."""
    return merge(base_lines, [line], cap=cap)


def normalize(lines: Iterable[CartLine], cap: int = MAX_LINE_QUANTITY) -> MergeResult:
    """De-duplicate and cap a single collection, e.g. a cart read from a cookie."""
    return merge([], lines, cap=cap)
