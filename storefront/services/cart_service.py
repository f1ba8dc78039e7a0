# storefront/services/cart_service.py
from dataclasses import dataclass, replace
from typing import Iterable

from storefront.domain.cart import Cart, CartLine
from storefront.domain.catalog import VariantSelector
from storefront.domain.errors import NotFoundError, StorefrontError, ValidationError
from storefront.domain.results import Error, Ok, Result
from storefront.repos.catalog_repo import CatalogRepo
from storefront.services.cart_merge import QuantityAdjustment, merge, normalize
from storefront.services.cart_store import CartStore
from storefront.services.pricing import PricingResolver
from storefront.services.stock_validator import StockValidator
from storefront.services.totals import OrderTotals, TotalsPolicy, compute_totals
from storefront.utils.logging import get_logger
from storefront.utils.settings import MAX_LINE_QUANTITY

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartView:
    cart: Cart
    totals: OrderTotals
    warnings: tuple[QuantityAdjustment, ...] = ()


class CartService:
    """
    Cart aggregate. Commands (add, update, remove, clear, sync) build a new
    snapshot, validate it against stock, persist it through the store and
    only then return it. A failed command leaves the given cart untouched.
    """

    def __init__(
        self,
        catalog: CatalogRepo,
        store: CartStore,
        policy: TotalsPolicy | None = None,
        cap: int = MAX_LINE_QUANTITY,
    ):
        self.catalog = catalog
        self.store = store
        self.validator = StockValidator(catalog)
        self.pricing = PricingResolver(catalog)
        self.policy = policy or TotalsPolicy.from_settings()
        self.cap = cap

    #query
    def current(self) -> Cart:
        """Cart held by the store, de-duplicated (a cookie may carry repeated lines)."""
        cart = self.store.load()
        return cart.with_lines(normalize(cart.lines, cap=self.cap).lines)

    def view(self, cart: Cart) -> Result[CartView, StorefrontError]:
        return Ok(self._view(cart))

    #commands
    def add_item(
        self, cart: Cart, product_id: int, size: str, color: str, quantity: int
    ) -> Result[CartView, StorefrontError]:
        line = CartLine(product_id=product_id, size=size, color=color, quantity=quantity)
        return self.add_items(cart, [line])

    def add_items(self, cart: Cart, items: Iterable[CartLine]) -> Result[CartView, StorefrontError]:
        items = list(items)
        if not items:
            return Error(ValidationError("No items to add"))
        for item in items:
            if item.quantity <= 0:
                return Error(
                    ValidationError("Quantity must be greater than 0", line_id=item.line_id)
                )

        merged = merge(cart.lines, items, cap=self.cap)
        touched = {item.key for item in items}

        # validate the quantity the cart would hold, not the increment
        validation = self.validator.validate_all(line for line in merged.lines if line.key in touched)
        if not validation.is_valid:
            logger.info(f"Add to cart {cart.id} rejected: {validation.errors[0].message}")
            return Error(validation.errors[0])

        validated = {line.key: line for line in validation.lines}
        lines = []
        try:
            for line in merged.lines:
                line = validated.get(line.key, line)
                if line.key in touched:
                    quote = self.pricing.resolve_price(line.product_id, VariantSelector.by_id(line.variant_id))
                    line = replace(line, unit_price=quote.unit_price, currency=quote.currency)
                lines.append(line)
        except NotFoundError as e:
            return Error(e)

        for adjustment in merged.clamped:
            logger.warning(
                f"Line {adjustment.line_id} in cart {cart.id} clamped "
                f"from {adjustment.requested} to {adjustment.applied}"
            )

        logger.info(f"Added {len(items)} item(s) to cart {cart.id}")
        return self._commit(cart.with_lines(lines, last_error=None), warnings=merged.clamped)

    def update_quantity(self, cart: Cart, line_id: str, new_quantity: int) -> Result[CartView, StorefrontError]:
        if new_quantity <= 0:
            return self.remove_item(cart, line_id)

        line = cart.find_line(line_id)
        if line is None:
            return Error(NotFoundError(f"Line {line_id} is not in the cart", line_id=line_id))

        warnings = ()
        applied = min(new_quantity, self.cap)
        if applied != new_quantity:
            warnings = (QuantityAdjustment(line_id, new_quantity, applied),)

        # absolute quantity, not incremental
        check = self.validator.validate(line.with_quantity(applied))
        if not check.is_valid:
            logger.info(f"Quantity update on {line_id} rejected: {check.error.message}")
            return Error(check.error)

        try:
            quote = self.pricing.resolve_price(line.product_id, VariantSelector.by_id(check.line.variant_id))
        except NotFoundError as e:
            return Error(e)
        updated = replace(check.line, unit_price=quote.unit_price, currency=quote.currency)
        lines = [updated if other.line_id == line_id else other for other in cart.lines]

        logger.info(f"Line {line_id} in cart {cart.id} set to {applied}")
        return self._commit(cart.with_lines(lines, last_error=None), warnings=warnings)

    def remove_item(self, cart: Cart, line_id: str) -> Result[CartView, StorefrontError]:
        lines = [line for line in cart.lines if line.line_id != line_id]
        if len(lines) == len(cart.lines):
            # nothing to remove
            return Ok(self._view(cart))

        logger.info(f"Removed line {line_id} from cart {cart.id}")
        return self._commit(cart.with_lines(lines))

    def clear(self, cart: Cart) -> Result[CartView, StorefrontError]:
        if not cart.lines:
            return Ok(self._view(cart))

        logger.info(f"Clearing cart {cart.id}")
        return self._commit(cart.with_lines([], last_error=None))

    def load_from_server(self) -> Result[CartView, StorefrontError]:
        server = self.store.load()
        reconciled, notes = self._reconcile(server.lines)
        cart = server.with_lines(reconciled, is_synced=True, last_error="; ".join(notes) or None)

        if notes:
            return self._commit(cart)
        return Ok(self._view(cart))

    def sync_with_server(self, local: Cart) -> Result[CartView, StorefrontError]:
        """
        Reconcile a client-held snapshot with the durable store.
        A guest cart is summed into the server cart once; a stale snapshot of
        the durable cart itself defers to the server lines.
        """
        server = self.store.load()

        if not local.is_ephemeral:
            base, incoming, absorbed = server.lines, (), server.absorbed_cart_ids
        elif local.id in server.absorbed_cart_ids:
            logger.info(f"Guest cart {local.id} already absorbed into cart {server.id}")
            base, incoming, absorbed = server.lines, (), server.absorbed_cart_ids
        else:
            base, incoming, absorbed = server.lines, local.lines, server.absorbed_cart_ids | {local.id}

        merged = merge(base, incoming, cap=self.cap)
        reconciled, notes = self._reconcile(merged.lines)

        cart = server.with_lines(
            reconciled,
            is_synced=True,
            last_error="; ".join(notes) or None,
            absorbed_cart_ids=frozenset(absorbed),
        )
        logger.info(f"Synced cart {server.id} ({len(incoming)} incoming line(s))")
        return self._commit(cart, warnings=merged.clamped)

    # helpers

    def _reconcile(self, lines) -> tuple[list[CartLine], list[str]]:
        """Refresh stock snapshots; cap lines to what is left, drop what is gone."""
        validation = self.validator.validate_all(lines)
        kept, notes = [], []

        for result in validation.results:
            if result.is_valid:
                kept.append(result.line)
            elif result.available_stock > 0:
                kept.append(result.line.with_quantity(result.available_stock))
                notes.append(result.error.message)
            else:
                notes.append(result.error.message)

        return kept, notes

    def _commit(self, cart: Cart, warnings=()) -> Result[CartView, StorefrontError]:
        try:
            saved = self.store.save(cart)
        except StorefrontError as e:
            logger.error(f"Could not persist cart {cart.id}: {e.message}")
            return Error(e)
        return Ok(self._view(saved, warnings))

    def _view(self, cart: Cart, warnings=()) -> CartView:
        priced = []
        for line in cart.lines:
            if line.unit_price is None:
                selector = (
                    VariantSelector.by_id(line.variant_id)
                    if line.variant_id is not None
                    else VariantSelector.by_option(line.size, line.color)
                )
                try:
                    quote = self.pricing.resolve_price(line.product_id, selector)
                except NotFoundError:
                    # unpriceable lines stay visible but out of the totals
                    priced.append(line)
                    continue
                line = replace(line, unit_price=quote.unit_price, currency=quote.currency, variant_id=quote.variant_id)
            priced.append(line)

        cart = cart.with_lines(priced)
        totals = compute_totals((line for line in priced if line.unit_price is not None), self.policy)
        return CartView(cart=cart, totals=totals, warnings=tuple(warnings))
