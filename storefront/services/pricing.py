# storefront/services/pricing.py
from dataclasses import dataclass
from decimal import Decimal

from storefront.domain.catalog import Product, Variant, VariantSelector
from storefront.domain.errors import NotFoundError
from storefront.repos.catalog_repo import CatalogRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PriceQuote:
    unit_price: Decimal
    currency: str
    variant_id: int


def effective_unit_price(product: Product, variant: Variant) -> Decimal:
    """
    (sale_price or base_price) + variant delta.
    A delta that drives the price below zero is clamped to zero, never negative.
    """
    price = product.list_price + variant.price_delta
    if price < ZERO:
        logger.warning(
            f"Variant {variant.id} of product {product.id} prices below zero "
            f"({price}), clamping to {ZERO}"
        )
        return ZERO
    return price.quantize(Decimal("0.01"))


class PricingResolver:
    def __init__(self, catalog: CatalogRepo):
        self.catalog = catalog

    def resolve_price(self, product_id: int, selector: VariantSelector) -> PriceQuote:
        product = self.catalog.get_product(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found", product_id=product_id)

        if selector.variant_id is not None:
            variant = self.catalog.get_variant_by_id(selector.variant_id)
            # variant must belong to the product
            if variant and variant.product_id != product_id:
                variant = None
        else:
            variant = self.catalog.get_variant(product_id, selector.size, selector.color)

        if not variant:
            raise NotFoundError(
                f"Variant not found for product {product_id}",
                product_id=product_id,
                variant_id=selector.variant_id,
                size=selector.size,
                color=selector.color,
            )

        return PriceQuote(
            unit_price=effective_unit_price(product, variant),
            currency=product.currency,
            variant_id=variant.id,
        )
