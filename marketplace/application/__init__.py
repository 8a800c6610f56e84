"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and the ports they are handed.
"""

from marketplace.application.cart_merge import CartMergeService
from marketplace.application.cart_service import CartLineView, CartService, CartView
from marketplace.application.inventory_ledger import InventoryLedger, Reservation
from marketplace.application.order_placement import (
    OrderPlacementService,
    OrderTotals,
    PlaceOrderCommand,
    compute_totals,
)
from marketplace.application.order_state_machine import (
    AdminRefund,
    OrderStateMachine,
    SellerStatusUpdate,
)
from marketplace.application.pagination import Page
from marketplace.application.returns_service import ReturnsService

__all__ = [
    "AdminRefund",
    "CartLineView",
    "CartMergeService",
    "CartService",
    "CartView",
    "compute_totals",
    "InventoryLedger",
    "OrderPlacementService",
    "OrderStateMachine",
    "OrderTotals",
    "Page",
    "PlaceOrderCommand",
    "Reservation",
    "ReturnsService",
    "SellerStatusUpdate",
]
