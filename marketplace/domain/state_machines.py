"""State machines for domain entities.

Deterministic state machines that define valid state transitions
for carts, orders, order lines and return requests. Order-level
authority is role-scoped: buyers, sellers and administrators each
own a disjoint slice of the order lifecycle.
"""

from enum import Enum

from marketplace.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Cart State Machine
# ============================================================================


class CartStatus(str, Enum):
    """Cart lifecycle states.

    State diagram:
        ACTIVE ───────────────┬──────────────────► ABANDONED
          │                   │
          │ merge             │ place order
          ▼                   ▼
        MERGED            COMPLETED
    """

    ACTIVE = "active"
    MERGED = "merged"
    ABANDONED = "abandoned"
    COMPLETED = "completed"

    def can_transition_to(self, target: "CartStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _CART_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["CartStatus"]:
        """Get list of valid target states."""
        return list(_CART_TRANSITIONS.get(self, set()))

    def is_editable(self) -> bool:
        """Only active carts accept line changes."""
        return self == CartStatus.ACTIVE

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_CART_TRANSITIONS.get(self, set())) == 0


# Cart state transitions (defined outside enum to avoid Enum restrictions)
_CART_TRANSITIONS: dict[CartStatus, set[CartStatus]] = {
    CartStatus.ACTIVE: {CartStatus.MERGED, CartStatus.COMPLETED, CartStatus.ABANDONED},
    CartStatus.MERGED: set(),  # Terminal state
    CartStatus.ABANDONED: set(),  # Terminal state
    CartStatus.COMPLETED: set(),  # Terminal state
}


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram (happy path and side branches):
        PENDING_PAYMENT ──► PROCESSING ──► SHIPPED ──► OUT_FOR_DELIVERY
              │                 │                          │
              │                 ├──► CANCELLED_BY_USER     ▼
              ├──► CANCELLED_BY_USER                   DELIVERED ──► COMPLETED
              │                 └──► CANCELLED_BY_SELLER   │
              ▼                                            ▼
        PAYMENT_FAILED                          REFUND_PENDING ──► REFUNDED

    Administrators may override to any state.
    """

    PENDING_PAYMENT = "pending_payment"
    PAYMENT_FAILED = "payment_failed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED_BY_USER = "cancelled_by_user"
    CANCELLED_BY_SELLER = "cancelled_by_seller"
    CANCELLED_BY_ADMIN = "cancelled_by_admin"
    REFUND_PENDING = "refund_pending"
    REFUNDED = "refunded"

    def is_cancellable_by_buyer(self) -> bool:
        """Check if the buyer may still cancel.

        Returns:
            True if order has not entered fulfilment yet.
        """
        return self in _BUYER_CANCELLABLE

    def is_settable_by_seller(self) -> bool:
        """Check if a seller may move an order into this state."""
        return self in _SELLER_TARGETS

    def is_cancellation(self) -> bool:
        """Check if this state represents a cancelled order."""
        return self in _CANCELLATIONS

    def is_closed(self) -> bool:
        """Check if fulfilment has ended for this order.

        Returns:
            True if sellers can no longer act on the order.
        """
        return self in _CLOSED

    def is_returnable(self) -> bool:
        """Check if the buyer may request returns."""
        return self in {OrderStatus.DELIVERED, OrderStatus.COMPLETED}

    @classmethod
    def seller_targets(cls) -> list["OrderStatus"]:
        """States a seller may request, in lifecycle order."""
        return [s for s in cls if s in _SELLER_TARGETS]


_BUYER_CANCELLABLE = {OrderStatus.PENDING_PAYMENT, OrderStatus.PROCESSING}

_SELLER_TARGETS = {
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED_BY_SELLER,
}

_CANCELLATIONS = {
    OrderStatus.CANCELLED_BY_USER,
    OrderStatus.CANCELLED_BY_SELLER,
    OrderStatus.CANCELLED_BY_ADMIN,
}

_CLOSED = _CANCELLATIONS | {
    OrderStatus.PAYMENT_FAILED,
    OrderStatus.COMPLETED,
    OrderStatus.REFUNDED,
}


# ============================================================================
# Order Line (Item) State Machine
# ============================================================================


class OrderItemStatus(str, Enum):
    """Per-line fulfilment states, driven by the owning seller.

    State diagram:
        PENDING ──► PROCESSING ──► SHIPPED ──► OUT_FOR_DELIVERY ──► DELIVERED
           │            │             └──────────────────────────────┘ │
           └────────────┴──► CANCELLED                                 ▼
                                          RETURN_REQUESTED ◄──────── (return)
                                                 │
                                                 ▼
                                             RETURNED ──► REFUNDED
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return_requested"
    RETURNED = "returned"
    REFUNDED = "refunded"

    def can_transition_to(self, target: "OrderItemStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _ITEM_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderItemStatus"]:
        """Get list of valid target states."""
        return list(_ITEM_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_ITEM_TRANSITIONS.get(self, set())) == 0


_ITEM_TRANSITIONS: dict[OrderItemStatus, set[OrderItemStatus]] = {
    OrderItemStatus.PENDING: {
        OrderItemStatus.PROCESSING,
        OrderItemStatus.SHIPPED,
        OrderItemStatus.CANCELLED,
    },
    OrderItemStatus.PROCESSING: {OrderItemStatus.SHIPPED, OrderItemStatus.CANCELLED},
    OrderItemStatus.SHIPPED: {OrderItemStatus.OUT_FOR_DELIVERY, OrderItemStatus.DELIVERED},
    OrderItemStatus.OUT_FOR_DELIVERY: {OrderItemStatus.DELIVERED},
    OrderItemStatus.DELIVERED: {OrderItemStatus.RETURN_REQUESTED},
    OrderItemStatus.RETURN_REQUESTED: {OrderItemStatus.RETURNED, OrderItemStatus.DELIVERED},
    OrderItemStatus.RETURNED: {OrderItemStatus.REFUNDED},
    OrderItemStatus.CANCELLED: set(),  # Terminal state
    OrderItemStatus.REFUNDED: set(),  # Terminal state
}

# Order-level status a seller requests -> item status applied to their lines
SELLER_ITEM_STATUS: dict[OrderStatus, OrderItemStatus] = {
    OrderStatus.PROCESSING: OrderItemStatus.PROCESSING,
    OrderStatus.SHIPPED: OrderItemStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY: OrderItemStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED: OrderItemStatus.DELIVERED,
    OrderStatus.CANCELLED_BY_SELLER: OrderItemStatus.CANCELLED,
}


# ============================================================================
# Payment Status
# ============================================================================


class PaymentStatus(str, Enum):
    """Payment bookkeeping states (gateway is simulated)."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"

    def is_captured(self) -> bool:
        """Check if money was taken from the buyer."""
        return self in {PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED}


# ============================================================================
# Return Request State Machine
# ============================================================================


class ReturnStatus(str, Enum):
    """Return request lifecycle states.

    State diagram:
        PENDING_APPROVAL ──► APPROVED ──► ITEM_RECEIVED ──► REFUNDED
              │
              └──► REJECTED
    """

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    ITEM_RECEIVED = "item_received"
    REFUNDED = "refunded"

    def can_transition_to(self, target: "ReturnStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _RETURN_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["ReturnStatus"]:
        """Get list of valid target states."""
        return list(_RETURN_TRANSITIONS.get(self, set()))

    def is_open(self) -> bool:
        """Check if the request still blocks a new one for the same line."""
        return self in {
            ReturnStatus.PENDING_APPROVAL,
            ReturnStatus.APPROVED,
            ReturnStatus.ITEM_RECEIVED,
        }


_RETURN_TRANSITIONS: dict[ReturnStatus, set[ReturnStatus]] = {
    ReturnStatus.PENDING_APPROVAL: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.ITEM_RECEIVED},
    ReturnStatus.ITEM_RECEIVED: {ReturnStatus.REFUNDED},
    ReturnStatus.REJECTED: set(),  # Terminal state
    ReturnStatus.REFUNDED: set(),  # Terminal state
}


# ============================================================================
# State Machine Helpers
# ============================================================================


def validate_cart_transition(
    cart_id: str,
    current_status: CartStatus,
    target_status: CartStatus,
) -> None:
    """Validate and raise if cart state transition is invalid.

    Args:
        cart_id: Cart identifier for error message.
        current_status: Current cart status.
        target_status: Target cart status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Cart",
            entity_id=cart_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_item_transition(
    line_id: str,
    current_status: OrderItemStatus,
    target_status: OrderItemStatus,
) -> None:
    """Validate and raise if an order line transition is invalid.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="OrderLine",
            entity_id=line_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_return_transition(
    return_id: str,
    current_status: ReturnStatus,
    target_status: ReturnStatus,
) -> None:
    """Validate and raise if a return request transition is invalid.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="ReturnRequest",
            entity_id=return_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
