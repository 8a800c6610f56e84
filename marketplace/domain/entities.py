"""Domain entities for the marketplace commerce engine.

Entities are domain objects with identity that persists across state changes.
This module contains the core aggregates: Cart, Order and ReturnRequest.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from marketplace.domain.base import AggregateRoot, Entity, new_id, utcnow
from marketplace.domain.events import (
    OrderCancelled,
    OrderRefunded,
    OrderStatusChanged,
    ReturnRequested,
    ReturnStatusChanged,
)
from marketplace.domain.exceptions import (
    CartItemNotFoundError,
    CartNotEditableError,
    InvalidQuantityError,
    RefundExceedsBalanceError,
)
from marketplace.domain.state_machines import (
    CartStatus,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
    ReturnStatus,
    validate_cart_transition,
    validate_item_transition,
    validate_return_transition,
)
from marketplace.domain.value_objects import (
    Address,
    CartOwner,
    Money,
    PaymentMethodSummary,
    Role,
    VariantSnapshot,
)


# ============================================================================
# Cart Line Entity
# ============================================================================


@dataclass(eq=False)
class CartLine(Entity):
    """A (cart, variant) pairing with quantity and a price snapshot.

    The unit price and currency are captured when the line is first
    created and never refreshed afterwards.

    Attributes:
        id: Unique identifier for this cart line.
        product_id: Product the variant belongs to.
        variant_id: Purchasable variant.
        quantity: Number of units (at least 1).
        unit_price: Price snapshot taken at add time.
        added_at: Timestamp when the line was created.
    """

    product_id: str
    variant_id: str
    quantity: int
    unit_price: Money
    added_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        """Validate cart line constraints."""
        if self.quantity < 1:
            raise InvalidQuantityError(self.quantity)

    @property
    def currency(self) -> str:
        return self.unit_price.currency

    @property
    def line_total(self) -> Money:
        """Unit price snapshot multiplied by quantity."""
        return self.unit_price * self.quantity


# ============================================================================
# Cart Aggregate Root
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Cart(AggregateRoot):
    """Shopping cart aggregate root.

    Owned by a user account or an anonymous token. Totals are never
    stored; they are derived from the lines on every read.

    Attributes:
        id: Unique cart identifier.
        owner: Account or anonymous token owning the cart.
        status: Current cart status (state machine).
        lines: Cart lines, at most one per variant.
        merged_into_user_id: Account that consumed this cart in a merge.
    """

    owner: CartOwner
    status: CartStatus = CartStatus.ACTIVE
    lines: list[CartLine] = field(default_factory=list)
    merged_into_user_id: str | None = None

    @classmethod
    def create(cls, owner: CartOwner) -> "Cart":
        """Create a new active cart for an owner."""
        return cls(id=new_id(), owner=owner)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return len(self.lines) == 0

    @property
    def total_quantity(self) -> int:
        """Sum of quantities across all lines."""
        return sum(line.quantity for line in self.lines)

    @property
    def currency(self) -> str | None:
        """Currency of the first line, None for an empty cart."""
        return self.lines[0].currency if self.lines else None

    @property
    def subtotal_cents(self) -> int:
        """Raw sum of line totals, recomputed from the lines."""
        return sum(line.line_total.amount_cents for line in self.lines)

    def subtotal(self) -> Money:
        """Sum of line totals as Money.

        Raises:
            CurrencyMismatchError: If lines carry different currencies.
        """
        if not self.lines:
            return Money.zero()
        total = Money.zero(self.lines[0].currency)
        for line in self.lines:
            total = total + line.line_total
        return total

    def get_line(self, line_id: str) -> CartLine:
        """Find line by ID.

        Raises:
            CartItemNotFoundError: If no such line exists in this cart.
        """
        for line in self.lines:
            if line.id == line_id:
                return line
        raise CartItemNotFoundError(self.id, line_id)

    def find_line_by_variant(self, variant_id: str) -> CartLine | None:
        for line in self.lines:
            if line.variant_id == variant_id:
                return line
        return None

    # -------------------------------------------------------------------------
    # Line Operations
    # -------------------------------------------------------------------------

    def _ensure_editable(self) -> None:
        if not self.status.is_editable():
            raise CartNotEditableError(self.id, self.status.value)

    def add_line(self, variant: VariantSnapshot, quantity: int) -> CartLine:
        """Add units of a variant.

        An existing line for the variant is incremented and keeps its
        original price snapshot; otherwise a new line snapshots the
        variant's current price.

        Raises:
            CartNotEditableError: If cart is not active.
            InvalidQuantityError: If quantity is below 1.
        """
        self._ensure_editable()
        if quantity < 1:
            raise InvalidQuantityError(quantity)

        line = self.find_line_by_variant(variant.variant_id)
        if line is not None:
            line.quantity += quantity
        else:
            line = CartLine(
                id=new_id(),
                product_id=variant.product_id,
                variant_id=variant.variant_id,
                quantity=quantity,
                unit_price=variant.price,
            )
            self.lines.append(line)
        self._touch()
        return line

    def copy_line(self, source: CartLine, quantity: int) -> CartLine:
        """Add a line copied from another cart, keeping its price snapshot."""
        self._ensure_editable()
        line = CartLine(
            id=new_id(),
            product_id=source.product_id,
            variant_id=source.variant_id,
            quantity=quantity,
            unit_price=source.unit_price,
            added_at=source.added_at,
        )
        self.lines.append(line)
        self._touch()
        return line

    def set_quantity(self, line_id: str, quantity: int) -> CartLine:
        """Set a line's quantity to exactly ``quantity``.

        Raises:
            InvalidQuantityError: If quantity is below 1.
            CartItemNotFoundError: If the line does not exist.
        """
        self._ensure_editable()
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        line = self.get_line(line_id)
        line.quantity = quantity
        self._touch()
        return line

    def remove_line(self, line_id: str) -> CartLine:
        self._ensure_editable()
        line = self.get_line(line_id)
        self.lines.remove(line)
        self._touch()
        return line

    def clear(self) -> None:
        self._ensure_editable()
        self.lines.clear()
        self._touch()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def mark_merged(self, user_id: str) -> None:
        """Terminal: consumed by the merge engine and linked to the account."""
        validate_cart_transition(self.id, self.status, CartStatus.MERGED)
        self.status = CartStatus.MERGED
        self.merged_into_user_id = user_id
        self._touch()

    def mark_completed(self) -> None:
        """Terminal: consumed by order placement."""
        validate_cart_transition(self.id, self.status, CartStatus.COMPLETED)
        self.status = CartStatus.COMPLETED
        self._touch()


# ============================================================================
# Order Line Entity
# ============================================================================


@dataclass(eq=False)
class OrderLine(Entity):
    """One purchased variant inside an order.

    ``seller_id`` is denormalized from the product so sellers can find
    orders containing their items without joining through the catalog.

    Attributes:
        order_id: Parent order.
        product_id: Product purchased.
        variant_id: Variant purchased.
        seller_id: Seller owning the product at placement time.
        product_name: Product name snapshot.
        sku: Variant SKU snapshot.
        attributes: Variant attribute snapshot.
        quantity: Units ordered.
        unit_price_cents: Price snapshot from the cart line.
        line_total_cents: unit price times quantity.
        currency: Currency code.
        item_status: Per-line fulfilment status.
    """

    order_id: str
    product_id: str
    variant_id: str
    seller_id: str
    product_name: str
    sku: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    currency: str = "USD"
    attributes: dict[str, str] = field(default_factory=dict)
    item_status: OrderItemStatus = OrderItemStatus.PENDING

    def move_to(self, target: OrderItemStatus) -> OrderItemStatus:
        """Move the line to ``target`` through the item state machine.

        Returns:
            Previous status.

        Raises:
            InvalidStateTransitionError: If the move is not allowed.
        """
        validate_item_transition(self.id, self.item_status, target)
        previous = self.item_status
        self.item_status = target
        return previous

    def override(self, target: OrderItemStatus) -> OrderItemStatus:
        """Set ``target`` without consulting the item state machine (admin only)."""
        previous = self.item_status
        self.item_status = target
        return previous


@dataclass(frozen=True)
class StatusHistoryEntry:
    """Status history entry."""

    from_status: str | None
    to_status: str
    actor_role: str
    actor_id: str | None = None
    reason: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_role": self.actor_role,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
        }


# ============================================================================
# Order Aggregate Root
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Order(AggregateRoot):
    """Order aggregate root.

    Created atomically by order placement; afterwards mutated only by
    the order state machine and the returns subsystem. Totals are fixed
    at placement; only ``refunded_amount_cents`` moves later.

    Attributes:
        buyer_id: Account that placed the order.
        cart_id: Source cart.
        status: Order-level status.
        payment_status: Payment bookkeeping status.
        lines: Order lines (one per cart line).
        subtotal_cents, tax_cents, shipping_cents, total_cents: Totals.
        currency: Currency code shared by every line.
        shipping_address, billing_address: Address snapshots.
        payment_method: Payment method summary snapshot.
    """

    buyer_id: str
    cart_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    lines: list[OrderLine]
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    total_cents: int
    currency: str
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethodSummary
    shipping_method: str = "standard"
    notes_by_buyer: str | None = None
    payment_transaction_id: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    internal_notes: str | None = None
    refunded_amount_cents: int = 0
    status_history: list[StatusHistoryEntry] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def seller_ids(self) -> list[str]:
        """Distinct sellers with lines in this order, in line order."""
        seen: list[str] = []
        for line in self.lines:
            if line.seller_id not in seen:
                seen.append(line.seller_id)
        return seen

    @property
    def refundable_cents(self) -> int:
        return self.total_cents - self.refunded_amount_cents

    def has_seller(self, seller_id: str) -> bool:
        return any(line.seller_id == seller_id for line in self.lines)

    def lines_for_seller(self, seller_id: str) -> list[OrderLine]:
        return [line for line in self.lines if line.seller_id == seller_id]

    def get_line(self, line_id: str) -> OrderLine | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def transition(
        self,
        target: OrderStatus,
        actor_role: Role,
        actor_id: str | None,
        reason: str | None = None,
        line_ids: list[str] | None = None,
    ) -> None:
        """Set the order-level status and record history and an event.

        Role checks happen in the order state machine service; this
        method only books the change.
        """
        from_status = self.status
        self.status = target
        self.status_history.append(
            StatusHistoryEntry(
                from_status=from_status.value,
                to_status=target.value,
                actor_role=actor_role.value,
                actor_id=actor_id,
                reason=reason,
            )
        )
        self._touch()
        self._record_event(
            OrderStatusChanged(
                aggregate_id=self.id,
                aggregate_type="Order",
                order_id=self.id,
                from_status=from_status.value,
                to_status=target.value,
                actor_role=actor_role.value,
                actor_id=actor_id or "",
                line_ids=tuple(line_ids or ()),
            )
        )

    def move_line(self, line: OrderLine, target: OrderItemStatus) -> OrderItemStatus:
        """Move one of this order's lines through the item state machine."""
        previous = line.move_to(target)
        self._touch()
        return previous

    def record_cancellation(self, cancelled_by: Role, lines: list[OrderLine]) -> None:
        """Record that ``lines`` were cancelled and their units go back to stock."""
        self._record_event(
            OrderCancelled(
                aggregate_id=self.id,
                aggregate_type="Order",
                order_id=self.id,
                cancelled_by=cancelled_by.value,
                line_ids=tuple(line.id for line in lines),
                units_restocked=sum(line.quantity for line in lines),
            )
        )

    def append_note(self, prefix: str, text: str) -> None:
        """Append a line to the internal notes."""
        entry = f"{prefix}: {text}"
        self.internal_notes = f"{self.internal_notes}\n{entry}" if self.internal_notes else entry
        self._touch()

    def record_refund(self, amount_cents: int, reason: str | None = None) -> bool:
        """Book a refund against the order.

        Args:
            amount_cents: Amount to refund, at most what remains refundable.
            reason: Free-text reason for the audit trail.

        Returns:
            True when the order is now fully refunded.

        Raises:
            RefundExceedsBalanceError: If amount is not positive or too large.
        """
        if amount_cents <= 0 or amount_cents > self.refundable_cents:
            raise RefundExceedsBalanceError(self.id, amount_cents, self.refundable_cents)

        self.refunded_amount_cents += amount_cents
        fully_refunded = self.refunded_amount_cents == self.total_cents
        self.payment_status = (
            PaymentStatus.REFUNDED if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED
        )
        self._touch()
        self._record_event(
            OrderRefunded(
                aggregate_id=self.id,
                aggregate_type="Order",
                order_id=self.id,
                amount_cents=amount_cents,
                refunded_total_cents=self.refunded_amount_cents,
                currency=self.currency,
                reason=reason,
            )
        )
        return fully_refunded


# ============================================================================
# Return Request Aggregate Root
# ============================================================================


@dataclass(kw_only=True, eq=False)
class ReturnRequest(AggregateRoot):
    """A buyer's request to send back units of one order line.

    Attributes:
        order_id: Order the line belongs to.
        order_line_id: Line being returned.
        buyer_id: Requesting buyer.
        seller_id: Seller who decides on the request.
        quantity: Units to return.
        reason: Buyer's reason.
        status: Request status (state machine).
        seller_notes: Seller's notes, required when rejecting.
    """

    order_id: str
    order_line_id: str
    buyer_id: str
    seller_id: str
    quantity: int
    reason: str
    status: ReturnStatus = ReturnStatus.PENDING_APPROVAL
    seller_notes: str | None = None

    @classmethod
    def open(
        cls,
        order: Order,
        line: OrderLine,
        quantity: int,
        reason: str,
    ) -> "ReturnRequest":
        """Open a request for units of ``line`` and record ``ReturnRequested``."""
        request = cls(
            id=new_id(),
            order_id=order.id,
            order_line_id=line.id,
            buyer_id=order.buyer_id,
            seller_id=line.seller_id,
            quantity=quantity,
            reason=reason,
        )
        request._record_event(
            ReturnRequested(
                aggregate_id=request.id,
                aggregate_type="ReturnRequest",
                return_id=request.id,
                order_id=order.id,
                order_line_id=line.id,
                seller_id=line.seller_id,
                quantity=quantity,
                reason=reason,
            )
        )
        return request

    def transition(self, target: ReturnStatus, notes: str | None = None) -> ReturnStatus:
        """Move the request through the return state machine.

        Returns:
            Previous status.
        """
        validate_return_transition(self.id, self.status, target)
        previous = self.status
        self.status = target
        if notes:
            self.seller_notes = notes
        self._touch()
        self._record_event(
            ReturnStatusChanged(
                aggregate_id=self.id,
                aggregate_type="ReturnRequest",
                return_id=self.id,
                order_id=self.order_id,
                from_status=previous.value,
                to_status=target.value,
            )
        )
        return previous
