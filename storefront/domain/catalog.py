# storefront/domain/catalog.py
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    base_price: Decimal
    currency: str
    sizes: tuple[str, ...]
    colors: tuple[str, ...]
    sale_price: Decimal | None = None

    @property
    def list_price(self) -> Decimal:
        return self.sale_price if self.sale_price is not None else self.base_price


@dataclass(frozen=True)
class Variant:
    id: int
    product_id: int
    size: str
    color: str
    price_delta: Decimal
    stock: int


@dataclass(frozen=True)
class VariantSelector:
    """Either a variant id or an explicit size + color pair."""

    variant_id: int | None = None
    size: str | None = None
    color: str | None = None

    @classmethod
    def by_id(cls, variant_id: int) -> "VariantSelector":
        return cls(variant_id=variant_id)

    @classmethod
    def by_option(cls, size: str, color: str) -> "VariantSelector":
        return cls(size=size, color=color)
