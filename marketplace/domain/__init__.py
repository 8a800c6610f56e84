"""Domain layer - Entities, value objects, state machines, domain events.

This module exports the core domain building blocks:

- **Entities**: Cart, CartLine, Order, OrderLine, ReturnRequest
- **Value Objects**: Money, Address, PaymentMethodSummary, CartOwner, Principal
- **State Machines**: CartStatus, OrderStatus, OrderItemStatus, ReturnStatus
- **Domain Events**: published through the order events port
- **Exceptions**: NotFound / BadRequest / Conflict / Forbidden families

Example usage:
    from marketplace.domain import Cart, CartOwner

    cart = Cart.create(CartOwner.user("user-1"))
    cart.add_line(variant_snapshot, quantity=2)
    print(cart.subtotal())  # $200.00 USD
"""

from marketplace.domain.base import AggregateRoot, DomainEvent, Entity, ValueObject
from marketplace.domain.entities import (
    Cart,
    CartLine,
    Order,
    OrderLine,
    ReturnRequest,
    StatusHistoryEntry,
)
from marketplace.domain.events import (
    CartMerged,
    OrderCancelled,
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
    ReturnRequested,
    ReturnStatusChanged,
)
from marketplace.domain.exceptions import (
    BadRequestError,
    CartEmptyError,
    CartItemNotFoundError,
    CartNotEditableError,
    CartNotFoundError,
    ConcurrentModificationError,
    ConflictError,
    CurrencyMismatchError,
    DomainError,
    ForbiddenError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    NegativeMoneyError,
    NotFoundError,
    OrderNotCancellableError,
    OrderNotFoundError,
    ProductUnavailableError,
    RefundExceedsBalanceError,
    UnauthorizedError,
)
from marketplace.domain.state_machines import (
    CartStatus,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
    ReturnStatus,
)
from marketplace.domain.value_objects import (
    Address,
    CartOwner,
    Money,
    PaymentMethodSummary,
    Principal,
    Role,
    VariantSnapshot,
)

__all__ = [
    # Base classes
    "AggregateRoot",
    "DomainEvent",
    "Entity",
    "ValueObject",
    # Entities
    "Cart",
    "CartLine",
    "Order",
    "OrderLine",
    "ReturnRequest",
    "StatusHistoryEntry",
    # Value Objects
    "Address",
    "CartOwner",
    "Money",
    "PaymentMethodSummary",
    "Principal",
    "Role",
    "VariantSnapshot",
    # State Machines
    "CartStatus",
    "OrderItemStatus",
    "OrderStatus",
    "PaymentStatus",
    "ReturnStatus",
    # Domain Events
    "CartMerged",
    "OrderPlaced",
    "OrderStatusChanged",
    "OrderCancelled",
    "OrderRefunded",
    "ReturnRequested",
    "ReturnStatusChanged",
    # Exceptions
    "DomainError",
    "NotFoundError",
    "BadRequestError",
    "ConflictError",
    "ForbiddenError",
    "UnauthorizedError",
    "InvalidStateTransitionError",
    "CartNotFoundError",
    "CartItemNotFoundError",
    "CartNotEditableError",
    "CartEmptyError",
    "InvalidQuantityError",
    "ConcurrentModificationError",
    "InsufficientStockError",
    "ProductUnavailableError",
    "OrderNotFoundError",
    "OrderNotCancellableError",
    "RefundExceedsBalanceError",
    "CurrencyMismatchError",
    "NegativeMoneyError",
]
