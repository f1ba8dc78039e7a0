import pytest

from storefront.data.models.inventory import InventoryAdjustmentModel
from storefront.domain.errors import InsufficientStockError, NotFoundError, UnauthorizedError, ValidationError
from storefront.domain.results import error_of
from storefront.services.inventory_service import InventoryService, StockOperation

ADMIN_ID = 99


@pytest.fixture()
def service(db):
    return InventoryService(db)


@pytest.fixture()
def variant_id(catalog):
    return catalog.get_variant(1, "M", "black").id


class TestAdjust:
    def test_increment(self, service, catalog, variant_id):
        result = service.adjust(variant_id, StockOperation.INCREMENT, 4, ADMIN_ID)

        assert result.value.stock_before == 3
        assert result.value.stock_after == 7
        assert catalog.get_stock(variant_id) == 7

    def test_set(self, service, catalog, variant_id):
        service.adjust(variant_id, StockOperation.SET, 0, ADMIN_ID)
        assert catalog.get_stock(variant_id) == 0

    def test_decrement(self, service, catalog, variant_id):
        service.adjust(variant_id, StockOperation.DECREMENT, 2, ADMIN_ID)
        assert catalog.get_stock(variant_id) == 1

    def test_decrement_never_goes_below_zero(self, service, catalog, variant_id):
        result = service.adjust(variant_id, StockOperation.DECREMENT, 5, ADMIN_ID)

        assert isinstance(error_of(result), InsufficientStockError)
        assert error_of(result).available == 3
        assert catalog.get_stock(variant_id) == 3

    def test_audit_row(self, db, service, variant_id):
        service.adjust(variant_id, StockOperation.INCREMENT, 1, ADMIN_ID)

        entry = db.query(InventoryAdjustmentModel).one()
        assert (entry.operation, entry.quantity, entry.stock_after, entry.admin_id) == ("increment", 1, 4, ADMIN_ID)

    def test_customer_cannot_adjust(self, service, catalog, variant_id):
        result = service.adjust(variant_id, StockOperation.SET, 100, admin_id=1)

        assert isinstance(error_of(result), UnauthorizedError)
        assert catalog.get_stock(variant_id) == 3

    def test_zero_increment(self, service, variant_id):
        assert isinstance(error_of(service.adjust(variant_id, StockOperation.INCREMENT, 0, ADMIN_ID)), ValidationError)

    def test_unknown_variant(self, service):
        assert isinstance(error_of(service.adjust(404, StockOperation.SET, 1, ADMIN_ID)), NotFoundError)
