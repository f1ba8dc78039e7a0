# storefront/services/stock_validator.py
from dataclasses import dataclass, replace
from typing import Iterable

from storefront.domain.cart import CartLine
from storefront.domain.catalog import Product
from storefront.domain.errors import (
    InsufficientStockError,
    InvalidSelectionError,
    NotFoundError,
    StorefrontError,
)
from storefront.repos.catalog_repo import CatalogRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LineValidation:
    line: CartLine
    is_valid: bool
    available_stock: int = 0
    error: StorefrontError | None = None


@dataclass(frozen=True)
class BatchValidation:
    is_valid: bool
    errors: tuple[StorefrontError, ...]
    # valid lines, annotated with variant_id and available_stock
    lines: tuple[CartLine, ...]
    results: tuple[LineValidation, ...]


class StockValidator:
    """
    Read-only availability check. Nothing is reserved here, the atomic
    decrement at payment confirmation is what actually commits stock.
    """

    def __init__(self, catalog: CatalogRepo):
        self.catalog = catalog

    def validate(self, line: CartLine) -> LineValidation:
        product = self.catalog.get_product(line.product_id)
        return self._check(line, product)

    def validate_all(self, lines: Iterable[CartLine]) -> BatchValidation:
        lines = list(lines)
        products = self.catalog.get_products(line.product_id for line in lines)

        # one bad line never aborts the batch
        results = tuple(self._check(line, products.get(line.product_id)) for line in lines)
        errors = tuple(r.error for r in results if r.error is not None)

        return BatchValidation(
            is_valid=not errors,
            errors=errors,
            lines=tuple(r.line for r in results if r.is_valid),
            results=results,
        )

    def _check(self, line: CartLine, product: Product | None) -> LineValidation:
        # checks in order, first failure wins
        if product is None:
            return self._invalid(
                line,
                NotFoundError(
                    f"Product {line.product_id} does not exist",
                    product_id=line.product_id,
                ),
            )

        if line.size not in product.sizes:
            return self._invalid(
                line,
                InvalidSelectionError(
                    f"Size {line.size} is not available for product {product.id}",
                    product_id=product.id,
                    size=line.size,
                ),
            )

        if line.color not in product.colors:
            return self._invalid(
                line,
                InvalidSelectionError(
                    f"Color {line.color} is not available for product {product.id}",
                    product_id=product.id,
                    color=line.color,
                ),
            )

        variant = self.catalog.get_variant(product.id, line.size, line.color)
        if variant is None:
            return self._invalid(
                line,
                InvalidSelectionError(
                    f"Combination size {line.size} / color {line.color} "
                    f"is unavailable for product {product.id}",
                    product_id=product.id,
                    size=line.size,
                    color=line.color,
                ),
            )

        if variant.stock < line.quantity:
            return LineValidation(
                line=replace(line, variant_id=variant.id, available_stock=variant.stock),
                is_valid=False,
                available_stock=variant.stock,
                error=InsufficientStockError(
                    requested=line.quantity,
                    available=variant.stock,
                    message=(
                        f"Only {variant.stock} units left for product {product.id} "
                        f"in size {line.size} and color {line.color}"
                    ),
                    product_id=product.id,
                    size=line.size,
                    color=line.color,
                ),
            )

        return LineValidation(
            line=replace(line, variant_id=variant.id, available_stock=variant.stock),
            is_valid=True,
            available_stock=variant.stock,
        )

    @staticmethod
    def _invalid(line: CartLine, error: StorefrontError) -> LineValidation:
        logger.info(f"Line {line.line_id} rejected: {error.message}")
        return LineValidation(line=line, is_valid=False, error=error)
