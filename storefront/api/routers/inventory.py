# storefront/api/routers/inventory.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import raise_for, require_admin
from storefront.data.database import get_db
from storefront.domain.identity import UserIdentity
from storefront.domain.schemas import InventoryAdjustIn, InventoryAdjustOut
from storefront.services.inventory_service import InventoryService, StockOperation

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("/variants/{variant_id}", response_model=InventoryAdjustOut)
def adjust_stock(
    variant_id: int,
    payload: InventoryAdjustIn,
    admin: UserIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    adjustment = raise_for(
        InventoryService(db).adjust(variant_id, StockOperation(payload.operation), payload.quantity, admin.id)
    )
    return InventoryAdjustOut(
        variant_id=adjustment.variant_id,
        operation=adjustment.operation.value,
        quantity=adjustment.quantity,
        stock_before=adjustment.stock_before,
        stock_after=adjustment.stock_after,
        admin_id=adjustment.admin_id,
    )
