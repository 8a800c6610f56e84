"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from marketplace.api.admin_orders import router as admin_orders_router
from marketplace.api.carts import router as carts_router
from marketplace.api.health import router as health_router
from marketplace.api.me_cart import router as me_cart_router
from marketplace.api.me_orders import router as me_orders_router
from marketplace.api.store import router as store_router

__all__ = [
    "admin_orders_router",
    "carts_router",
    "health_router",
    "me_cart_router",
    "me_orders_router",
    "store_router",
]
