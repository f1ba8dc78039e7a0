# storefront/api/__init__.py
from fastapi import APIRouter

from storefront.api.routers import cart, checkout, health, inventory, orders, payments, products, users

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(users.router)
api_router.include_router(products.router)
api_router.include_router(cart.router)
api_router.include_router(checkout.router)
api_router.include_router(orders.router)
api_router.include_router(payments.router)
api_router.include_router(inventory.router)
