"""Domain events for the marketplace commerce engine.

Domain events represent significant occurrences in the domain. They are
published through the order events port for downstream notification and
analytics consumers.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from marketplace.domain.base import DomainEvent


# ============================================================================
# Cart Events
# ============================================================================


@dataclass(frozen=True)
class CartMerged(DomainEvent):
    """Event raised when an anonymous cart is folded into a user cart."""

    event_type: ClassVar[str] = "cart.merged"

    anonymous_cart_id: str = ""
    user_cart_id: str = ""
    user_id: str = ""
    lines_merged: int = 0
    units_dropped: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "anonymous_cart_id": self.anonymous_cart_id,
            "user_cart_id": self.user_cart_id,
            "user_id": self.user_id,
            "lines_merged": self.lines_merged,
            "units_dropped": self.units_dropped,
        }


# ============================================================================
# Order Events
# ============================================================================


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Event raised when a cart is turned into an order."""

    event_type: ClassVar[str] = "order.placed"

    order_id: str = ""
    buyer_id: str = ""
    cart_id: str = ""
    seller_ids: tuple[str, ...] = field(default_factory=tuple)
    total_cents: int = 0
    currency: str = "USD"
    line_count: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "order_id": self.order_id,
            "buyer_id": self.buyer_id,
            "cart_id": self.cart_id,
            "seller_ids": list(self.seller_ids),
            "total_cents": self.total_cents,
            "currency": self.currency,
            "line_count": self.line_count,
        }


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Event raised on every order-level status change."""

    event_type: ClassVar[str] = "order.status_changed"

    order_id: str = ""
    from_status: str = ""
    to_status: str = ""
    actor_role: str = ""
    actor_id: str = ""
    line_ids: tuple[str, ...] = field(default_factory=tuple)

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "order_id": self.order_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_role": self.actor_role,
            "actor_id": self.actor_id,
            "line_ids": list(self.line_ids),
        }


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Event raised when order lines are cancelled and stock is restored."""

    event_type: ClassVar[str] = "order.cancelled"

    order_id: str = ""
    cancelled_by: str = ""
    line_ids: tuple[str, ...] = field(default_factory=tuple)
    units_restocked: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "order_id": self.order_id,
            "cancelled_by": self.cancelled_by,
            "line_ids": list(self.line_ids),
            "units_restocked": self.units_restocked,
        }


@dataclass(frozen=True)
class OrderRefunded(DomainEvent):
    """Event raised when a refund is booked against an order."""

    event_type: ClassVar[str] = "order.refunded"

    order_id: str = ""
    amount_cents: int = 0
    refunded_total_cents: int = 0
    currency: str = "USD"
    reason: str | None = None

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "refunded_total_cents": self.refunded_total_cents,
            "currency": self.currency,
            "reason": self.reason,
        }


# ============================================================================
# Return Events
# ============================================================================


@dataclass(frozen=True)
class ReturnRequested(DomainEvent):
    """Event raised when a buyer asks to return an order line."""

    event_type: ClassVar[str] = "return.requested"

    return_id: str = ""
    order_id: str = ""
    order_line_id: str = ""
    seller_id: str = ""
    quantity: int = 0
    reason: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "return_id": self.return_id,
            "order_id": self.order_id,
            "order_line_id": self.order_line_id,
            "seller_id": self.seller_id,
            "quantity": self.quantity,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ReturnStatusChanged(DomainEvent):
    """Event raised when a seller moves a return request."""

    event_type: ClassVar[str] = "return.status_changed"

    return_id: str = ""
    order_id: str = ""
    from_status: str = ""
    to_status: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "return_id": self.return_id,
            "order_id": self.order_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
        }
