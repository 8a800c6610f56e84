"""Domain exceptions.

All domain-level errors that represent business rule violations.
Services raise these; the API layer maps each family onto an HTTP
status (see ``marketplace.api.errors``).
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Error Families
# ============================================================================


class NotFoundError(DomainError):
    """An entity is absent or not owned by the caller."""

    error_code = "NOT_FOUND"


class BadRequestError(DomainError):
    """The request is well-formed but violates a business rule."""

    error_code = "BAD_REQUEST"


class ConflictError(DomainError):
    """The operation conflicts with the current state of an entity."""

    error_code = "CONFLICT"


class ForbiddenError(DomainError):
    """The caller may not act on this entity."""

    error_code = "FORBIDDEN"


class UnauthorizedError(DomainError):
    """No authenticated principal."""

    error_code = "UNAUTHORIZED"


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(BadRequestError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order", "OrderLine").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Cart Errors
# ============================================================================


class CartNotFoundError(NotFoundError):
    """Raised when a cart does not exist, is inactive, or is not the caller's."""

    error_code = "CART_NOT_FOUND"

    def __init__(self, cart_ref: str, reason: str = "Cart not found") -> None:
        super().__init__(
            f"{reason}: {cart_ref}",
            details={"cart": cart_ref},
        )


class CartItemNotFoundError(NotFoundError):
    """Raised when a cart line is not found."""

    error_code = "CART_ITEM_NOT_FOUND"

    def __init__(self, cart_id: str, item_id: str) -> None:
        """Initialize cart item not found error.

        Args:
            cart_id: ID of the cart.
            item_id: ID of the item.
        """
        super().__init__(
            f"Item {item_id} not found in cart {cart_id}",
            details={"cart_id": cart_id, "item_id": item_id},
        )


class CartNotEditableError(ConflictError):
    """Raised when trying to modify a cart that is no longer active."""

    error_code = "CART_NOT_EDITABLE"

    def __init__(self, cart_id: str, current_status: str) -> None:
        super().__init__(
            f"Cart {cart_id} is not editable in status '{current_status}'",
            details={"cart_id": cart_id, "current_status": current_status},
        )


class CartEmptyError(BadRequestError):
    """Raised when trying to place an order from an empty cart."""

    error_code = "CART_EMPTY"

    def __init__(self, cart_id: str) -> None:
        super().__init__(
            "Cannot place an order with an empty cart.",
            details={"cart_id": cart_id},
        )


class InvalidQuantityError(BadRequestError):
    """Raised when an invalid quantity is provided."""

    error_code = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str = "Quantity must be at least 1") -> None:
        """Initialize invalid quantity error.

        Args:
            quantity: The invalid quantity value.
            reason: Explanation of why the quantity is invalid.
        """
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            details={"quantity": quantity, "reason": reason},
        )


class ConcurrentModificationError(ConflictError):
    """Raised when a save races with another write to the same aggregate."""

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"{entity_type} {entity_id} was modified concurrently "
            f"(expected version {expected}, found {actual})",
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "expected_version": expected,
                "actual_version": actual,
            },
        )


# ============================================================================
# Inventory Errors
# ============================================================================


class InsufficientStockError(BadRequestError):
    """Raised when one or more variants cannot cover the requested quantity.

    Attributes:
        shortfalls: One entry per variant with requested and available units.
    """

    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, shortfalls: list[dict[str, Any]]) -> None:
        """Initialize insufficient stock error.

        Args:
            shortfalls: Dicts with ``variant_id``, ``requested`` and ``available``.
        """
        self.shortfalls = shortfalls
        parts = [
            f"{s['variant_id']} (requested {s['requested']}, available {s['available']})"
            for s in shortfalls
        ]
        super().__init__(
            f"Insufficient stock for variant(s): {', '.join(parts)}",
            details={"shortfalls": shortfalls},
        )

    @classmethod
    def single(cls, variant_id: str, requested: int, available: int) -> "InsufficientStockError":
        """Build the error for one variant."""
        return cls([{"variant_id": variant_id, "requested": requested, "available": available}])


class ProductUnavailableError(NotFoundError):
    """Raised when a product or variant is missing, unpublished or inactive."""

    error_code = "PRODUCT_UNAVAILABLE"


# ============================================================================
# Order Errors
# ============================================================================


class OrderNotFoundError(NotFoundError):
    """Raised when an order is absent or not visible to the caller."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str) -> None:
        super().__init__("Order not found.", details={"order_id": order_id})


class OrderNotCancellableError(BadRequestError):
    """Raised when trying to cancel an order that cannot be cancelled."""

    error_code = "ORDER_NOT_CANCELLABLE"

    def __init__(self, order_id: str, current_status: str) -> None:
        """Initialize order not cancellable error.

        Args:
            order_id: ID of the order.
            current_status: Current status of the order.
        """
        super().__init__(
            f"Order cannot be cancelled in its current status: {current_status}.",
            details={"order_id": order_id, "current_status": current_status},
        )


class RefundExceedsBalanceError(BadRequestError):
    """Raised when a refund would exceed what remains refundable."""

    error_code = "REFUND_EXCEEDS_BALANCE"

    def __init__(self, order_id: str, amount_cents: int, refundable_cents: int) -> None:
        super().__init__(
            f"Refund amount {amount_cents} exceeds refundable amount {refundable_cents}.",
            details={
                "order_id": order_id,
                "amount_cents": amount_cents,
                "refundable_cents": refundable_cents,
            },
        )


# ============================================================================
# Money Errors
# ============================================================================


class CurrencyMismatchError(BadRequestError):
    """Raised when attempting to combine money with different currencies."""

    error_code = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str) -> None:
        """Initialize currency mismatch error.

        Args:
            currency1: First currency code.
            currency2: Second currency code.
        """
        super().__init__(
            f"Cannot combine money with different currencies: {currency1} and {currency2}",
            details={"currency1": currency1, "currency2": currency2},
        )


class NegativeMoneyError(BadRequestError):
    """Raised when attempting to create money with negative amount."""

    error_code = "NEGATIVE_MONEY"

    def __init__(self, amount: int) -> None:
        """Initialize negative money error.

        Args:
            amount: The negative amount in cents.
        """
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )
