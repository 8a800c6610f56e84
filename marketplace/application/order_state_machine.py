"""Order state machine service.

Role-scoped order lifecycle management:
- Buyers list, view and cancel their own orders
- Sellers move their own lines and the order-level status
- Administrators override any status and book refunds

Every write is saved against the order version before stock is
released, so a lost race never gives units back twice.
"""

from dataclasses import dataclass

import structlog

from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.application.pagination import Page
from marketplace.domain.entities import Order, OrderLine
from marketplace.domain.exceptions import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    OrderNotCancellableError,
    OrderNotFoundError,
)
from marketplace.domain.ports import OrderEventsPort, OrderRepository
from marketplace.domain.state_machines import (
    SELLER_ITEM_STATUS,
    OrderItemStatus,
    OrderStatus,
    validate_item_transition,
)
from marketplace.domain.value_objects import Money, Role

logger = structlog.get_logger()

# Lines a seller can still push through fulfilment
_FULFILMENT_STATES = {
    OrderItemStatus.PENDING,
    OrderItemStatus.PROCESSING,
    OrderItemStatus.SHIPPED,
    OrderItemStatus.OUT_FOR_DELIVERY,
    OrderItemStatus.DELIVERED,
}

# Lines an administrator cancellation still takes back into stock
_UNDELIVERED_STATES = {
    OrderItemStatus.PENDING,
    OrderItemStatus.PROCESSING,
    OrderItemStatus.SHIPPED,
    OrderItemStatus.OUT_FOR_DELIVERY,
}


# ============================================================================
# Result Types
# ============================================================================


@dataclass
class SellerStatusUpdate:
    """Seller request to move an order."""

    status: OrderStatus
    tracking_number: str | None = None
    carrier: str | None = None
    notes: str | None = None


@dataclass
class AdminRefund:
    """Administrator refund request."""

    amount_cents: int
    reason: str
    order_line_id: str | None = None


# ============================================================================
# Order State Machine Service
# ============================================================================


class OrderStateMachine:
    """Application service for order transitions and order queries.

    Example usage:
        machine = OrderStateMachine(orders, ledger, events)
        order = await machine.cancel_by_buyer("buyer-1", order_id)
    """

    def __init__(
        self,
        orders: OrderRepository,
        ledger: InventoryLedger,
        events: OrderEventsPort,
    ) -> None:
        self.orders = orders
        self.ledger = ledger
        self.events = events

    # -------------------------------------------------------------------------
    # Buyer
    # -------------------------------------------------------------------------

    async def list_buyer_orders(
        self,
        buyer_id: str,
        page: int,
        limit: int,
        status: OrderStatus | None = None,
    ) -> Page[Order]:
        orders, total = await self.orders.list_all(page, limit, buyer_id=buyer_id, status=status)
        return Page(results=orders, page=page, limit=limit, total_results=total)

    async def get_buyer_order(self, buyer_id: str, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None or order.buyer_id != buyer_id:
            raise OrderNotFoundError(order_id)
        return order

    async def cancel_by_buyer(
        self, buyer_id: str, order_id: str, reason: str | None = None
    ) -> Order:
        """Cancel an order that has not entered fulfilment.

        Every line still holding stock is cancelled and its units are
        released; a captured payment is refunded in full.

        Raises:
            OrderNotFoundError: If the order is not the buyer's.
            OrderNotCancellableError: Outside pending_payment/processing,
                or when a seller already shipped part of the order.
        """
        order = await self.get_buyer_order(buyer_id, order_id)
        if not order.status.is_cancellable_by_buyer():
            raise OrderNotCancellableError(order.id, order.status.value)

        to_cancel = [line for line in order.lines if not line.item_status.is_terminal()]
        if any(
            not line.item_status.can_transition_to(OrderItemStatus.CANCELLED)
            for line in to_cancel
        ):
            raise OrderNotCancellableError(order.id, order.status.value)

        expected = order.version
        for line in to_cancel:
            line.move_to(OrderItemStatus.CANCELLED)

        if order.payment_status.is_captured() and order.refundable_cents > 0:
            order.record_refund(order.refundable_cents, reason="Order cancelled by buyer")

        order.transition(
            OrderStatus.CANCELLED_BY_USER,
            actor_role=Role.BUYER,
            actor_id=buyer_id,
            reason=reason,
            line_ids=[line.id for line in to_cancel],
        )
        order.record_cancellation(Role.BUYER, to_cancel)

        await self.orders.save(order, expected)
        await self._release_lines(to_cancel)
        await self.events.publish(order.collect_events())

        logger.info(
            "Order cancelled by buyer",
            order_id=order.id,
            buyer_id=buyer_id,
            lines=len(to_cancel),
            refunded_cents=order.refunded_amount_cents,
        )
        return order

    # -------------------------------------------------------------------------
    # Seller
    # -------------------------------------------------------------------------

    async def list_seller_orders(
        self,
        seller_id: str,
        page: int,
        limit: int,
        status: OrderStatus | None = None,
        buyer_id: str | None = None,
    ) -> Page[Order]:
        orders, total = await self.orders.list_all(
            page, limit, seller_id=seller_id, status=status, buyer_id=buyer_id
        )
        return Page(results=orders, page=page, limit=limit, total_results=total)

    async def get_seller_order(self, seller_id: str, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None or not order.has_seller(seller_id):
            raise NotFoundError(
                "Order not found or no items in this order belong to you.",
                details={"order_id": order_id},
            )
        return order

    async def update_by_seller(
        self, seller_id: str, order_id: str, update: SellerStatusUpdate
    ) -> Order:
        """Move the seller's lines and set the order-level status.

        Only this seller's lines change; the order-level status is set
        to the requested one even when other sellers' lines lag behind.

        Raises:
            BadRequestError: Target not allowed for sellers, order closed,
                tracking number missing for ``shipped``, or a line cannot
                make the move.
            OrderNotFoundError: If the order does not exist.
            ForbiddenError: If the seller has no lines in the order.
        """
        target = update.status
        if not target.is_settable_by_seller():
            raise BadRequestError(
                f"Invalid status update: {target.value}.",
                details={"allowed": [s.value for s in OrderStatus.seller_targets()]},
            )

        order = await self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.has_seller(seller_id):
            raise ForbiddenError(
                "You do not have items in this order to update its status.",
                details={"order_id": order_id},
            )
        if order.status.is_closed():
            raise BadRequestError(
                f"Order can no longer be updated in status: {order.status.value}.",
                details={"order_id": order_id, "current_status": order.status.value},
            )
        if target == OrderStatus.SHIPPED and not (update.tracking_number or "").strip():
            raise BadRequestError(
                "Tracking number required for shipped status.",
                details={"order_id": order_id},
            )

        item_target = SELLER_ITEM_STATUS[target]
        seller_lines = [
            line for line in order.lines_for_seller(seller_id)
            if line.item_status in _FULFILMENT_STATES
        ]
        to_move = [line for line in seller_lines if line.item_status != item_target]
        if not seller_lines:
            raise BadRequestError(
                "None of your items in this order can be updated.",
                details={"order_id": order_id},
            )
        # Validate every line before touching any of them
        for line in to_move:
            validate_item_transition(line.id, line.item_status, item_target)

        expected = order.version
        for line in to_move:
            line.move_to(item_target)

        if target == OrderStatus.SHIPPED:
            order.tracking_number = update.tracking_number.strip()
            order.carrier = update.carrier or order.carrier

        cancelled: list[OrderLine] = []
        if target == OrderStatus.CANCELLED_BY_SELLER:
            cancelled = to_move
            refund = sum(line.line_total_cents for line in cancelled)
            refund = min(refund, order.refundable_cents)
            if order.payment_status.is_captured() and refund > 0:
                order.record_refund(refund, reason="Items cancelled by seller")

        order.transition(
            target,
            actor_role=Role.SELLER,
            actor_id=seller_id,
            reason=update.notes,
            line_ids=[line.id for line in to_move],
        )
        if cancelled:
            order.record_cancellation(Role.SELLER, cancelled)
        if update.notes:
            order.append_note("Seller Note", update.notes)

        await self.orders.save(order, expected)
        await self._release_lines(cancelled)
        await self.events.publish(order.collect_events())

        logger.info(
            "Order status updated by seller",
            order_id=order.id,
            seller_id=seller_id,
            status=target.value,
            lines=len(to_move),
        )
        return order

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    async def list_all_orders(
        self,
        page: int,
        limit: int,
        buyer_id: str | None = None,
        seller_id: str | None = None,
        status: OrderStatus | None = None,
        order_id: str | None = None,
    ) -> Page[Order]:
        orders, total = await self.orders.list_all(
            page,
            limit,
            buyer_id=buyer_id,
            seller_id=seller_id,
            status=status,
            order_id=order_id,
        )
        return Page(results=orders, page=page, limit=limit, total_results=total)

    async def get_any_order(self, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def override_by_admin(
        self,
        admin_id: str,
        order_id: str,
        status: OrderStatus,
        notes: str | None = None,
    ) -> Order:
        """Set any order status.

        Moving a live order into a cancellation cancels the lines that
        were not delivered yet and puts their units back in stock.
        """
        order = await self.get_any_order(order_id)
        expected = order.version

        cancelled: list[OrderLine] = []
        if status.is_cancellation() and not order.status.is_cancellation():
            cancelled = [line for line in order.lines if line.item_status in _UNDELIVERED_STATES]
            for line in cancelled:
                line.override(OrderItemStatus.CANCELLED)

        order.transition(
            status,
            actor_role=Role.ADMIN,
            actor_id=admin_id,
            reason=notes,
            line_ids=[line.id for line in cancelled],
        )
        if cancelled:
            order.record_cancellation(Role.ADMIN, cancelled)
        if notes:
            order.append_note("Admin Note", notes)

        await self.orders.save(order, expected)
        await self._release_lines(cancelled)
        await self.events.publish(order.collect_events())

        logger.info(
            "Order status overridden by admin",
            order_id=order.id,
            admin_id=admin_id,
            status=status.value,
            lines_cancelled=len(cancelled),
        )
        return order

    async def refund_by_admin(self, admin_id: str, order_id: str, refund: AdminRefund) -> Order:
        """Book a full or partial refund.

        Raises:
            OrderNotFoundError: If the order does not exist.
            NotFoundError: If ``order_line_id`` is not part of the order.
            RefundExceedsBalanceError: Unless 0 < amount <= remaining balance.
        """
        order = await self.get_any_order(order_id)

        line = None
        if refund.order_line_id:
            line = order.get_line(refund.order_line_id)
            if line is None:
                raise NotFoundError(
                    "Item not found in this order.",
                    details={"order_id": order_id, "order_line_id": refund.order_line_id},
                )

        expected = order.version
        fully_refunded = order.record_refund(refund.amount_cents, reason=refund.reason)
        if line is not None:
            line.override(OrderItemStatus.REFUNDED)

        order.transition(
            OrderStatus.REFUNDED if fully_refunded else OrderStatus.REFUND_PENDING,
            actor_role=Role.ADMIN,
            actor_id=admin_id,
            reason=refund.reason,
            line_ids=[line.id] if line else None,
        )
        amount = Money(amount_cents=refund.amount_cents, currency=order.currency)
        order.append_note("Admin Refund", f"{amount.to_decimal():.2f} ({refund.reason}).")

        await self.orders.save(order, expected)
        await self.events.publish(order.collect_events())

        logger.info(
            "Refund booked by admin",
            order_id=order.id,
            admin_id=admin_id,
            amount_cents=refund.amount_cents,
            refunded_total_cents=order.refunded_amount_cents,
            fully_refunded=fully_refunded,
        )
        return order

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _release_lines(self, lines: list[OrderLine]) -> None:
        for line in lines:
            await self.ledger.release(line.variant_id, line.quantity)
