# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal
from decimal import Decimal
from datetime import datetime


class UserCreate(BaseModel):
    """User registration (request)."""

    id: int = Field(..., gt=0, description="User id (must be > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    is_admin: bool = False


class UserRead(BaseModel):
    id: int
    name: str
    is_admin: bool = False

    model_config = ConfigDict(from_attributes=True)


# catalog


class VariantOut(BaseModel):
    id: int
    size: str
    color: str
    stock: int
    unit_price: Decimal


class ProductOut(BaseModel):
    """Product with its variants and effective prices (response)."""

    id: int
    name: str
    currency: str
    base_price: Decimal
    sale_price: Decimal | None = None
    sizes: List[str]
    colors: List[str]
    variants: List[VariantOut]


# cart


class ItemIn(BaseModel):
    """One product selection to add to the cart."""

    product_id: int = Field(..., gt=0, description="Product id (must be > 0)")
    size: str = Field(..., min_length=1)
    color: str = Field(..., min_length=1)
    quantity: int = Field(1, gt=0, description="Quantity to add (must be > 0)")


class AddItemsIn(BaseModel):
    """Batch form of ItemIn."""

    items: List[ItemIn] = Field(..., min_length=1)


class QuantityIn(BaseModel):
    """New absolute quantity; 0 or less removes the line."""

    quantity: int


class CartLineOut(BaseModel):
    line_id: str
    product_id: int
    size: str
    color: str
    quantity: int
    variant_id: int | None = None
    unit_price: Decimal | None = None
    currency: str | None = None
    available_stock: int | None = None


class TotalsOut(BaseModel):
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


class AdjustmentOut(BaseModel):
    line_id: str
    requested: int
    applied: int


class CartOut(BaseModel):
    """Cart snapshot with recomputed totals (response)."""

    id: str
    user_id: int | None = None
    is_synced: bool
    last_error: str | None = None
    item_count: int
    items: List[CartLineOut]
    totals: TotalsOut
    warnings: List[AdjustmentOut] = []


# checkout / orders


class ContactIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    name: str = Field(..., min_length=1, max_length=100)
    phone: str | None = None


class ShippingIn(BaseModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field("AR", min_length=2, max_length=2)


class CheckoutIn(BaseModel):
    """Checkout request: the cart comes from the session, not the body."""

    provider: Literal["stripe", "mercadopago"]
    contact: ContactIn
    shipping: ShippingIn | None = None


class CheckoutOut(BaseModel):
    order_id: int
    status: str
    provider: str
    provider_ref_id: str
    currency: str
    totals: TotalsOut
    redirect_url: str | None = None
    client_secret: str | None = None


class OrderItemOut(BaseModel):
    product_id: int
    variant_id: int
    name: str
    size: str
    color: str
    quantity: int
    unit_price: Decimal


class PaymentOut(BaseModel):
    provider: str
    provider_ref_id: str
    amount: Decimal
    status: str


class OrderOut(BaseModel):
    """Order with frozen lines and totals (response)."""

    id: int
    user_id: int | None = None
    status: str
    currency: str
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    items: List[OrderItemOut]
    payments: List[PaymentOut]
    created_at: datetime
    paid_at: datetime | None = None


class OrderStatusOut(BaseModel):
    id: int
    status: str
    paid_at: datetime | None = None


class WebhookAck(BaseModel):
    received: bool = True
    applied: bool = False
    order_id: int | None = None
    status: str | None = None
    reason: str | None = None


# inventory


class InventoryAdjustIn(BaseModel):
    operation: Literal["increment", "decrement", "set"]
    quantity: int = Field(..., ge=0)


class InventoryAdjustOut(BaseModel):
    variant_id: int
    operation: str
    quantity: int
    stock_before: int
    stock_after: int
    admin_id: int
