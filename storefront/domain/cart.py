# storefront/domain/cart.py
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal

LineKey = tuple[int, str, str]


def line_id_for(product_id: int, size: str, color: str) -> str:
    return f"{product_id}:{size}:{color}"


@dataclass(frozen=True)
class CartLine:
    product_id: int
    size: str
    color: str
    quantity: int
    variant_id: int | None = None
    unit_price: Decimal | None = None
    currency: str | None = None
    # stock snapshot from the last validation
    available_stock: int | None = None

    @property
    def key(self) -> LineKey:
        return (self.product_id, self.size, self.color)

    @property
    def line_id(self) -> str:
        return line_id_for(self.product_id, self.size, self.color)

    def with_quantity(self, quantity: int) -> "CartLine":
        return replace(self, quantity=quantity)


@dataclass(frozen=True)
class Cart:
    """
    Snapshot of a cart. Ephemeral carts have no user_id and live in the
    client cookie; durable carts belong to a user and live in the database.
    Every operation returns a new snapshot, the old one stays valid.
    """

    id: str
    user_id: int | None = None
    lines: tuple[CartLine, ...] = ()
    is_synced: bool = False
    last_error: str | None = None
    absorbed_cart_ids: frozenset[str] = field(default_factory=frozenset)
    version: int | None = None

    @classmethod
    def new_ephemeral(cls) -> "Cart":
        return cls(id=uuid.uuid4().hex)

    @property
    def is_ephemeral(self) -> bool:
        return self.user_id is None

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def find_line(self, line_id: str) -> CartLine | None:
        return next((line for line in self.lines if line.line_id == line_id), None)

    def with_lines(self, lines, **changes) -> "Cart":
        return replace(self, lines=tuple(lines), **changes)
