"""Return and refund service.

Buyers open return requests for delivered lines; the selling seller
approves or rejects them, confirms receipt (units go back to stock)
and finally books the refund on the order.
"""

import copy

import structlog

from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.application.pagination import Page
from marketplace.domain.entities import Order, OrderLine, ReturnRequest
from marketplace.domain.exceptions import (
    BadRequestError,
    ConflictError,
    InvalidQuantityError,
    NotFoundError,
    OrderNotFoundError,
)
from marketplace.domain.ports import OrderEventsPort, OrderRepository, ReturnRepository
from marketplace.domain.state_machines import OrderItemStatus, ReturnStatus

logger = structlog.get_logger()

# Item status a line takes when its return request reaches each state
_LINE_STATUS_FOR_RETURN = {
    ReturnStatus.REJECTED: OrderItemStatus.DELIVERED,
    ReturnStatus.ITEM_RECEIVED: OrderItemStatus.RETURNED,
    ReturnStatus.REFUNDED: OrderItemStatus.REFUNDED,
}


class ReturnsService:
    """Application service for return requests."""

    def __init__(
        self,
        returns: ReturnRepository,
        orders: OrderRepository,
        ledger: InventoryLedger,
        events: OrderEventsPort,
    ) -> None:
        self.returns = returns
        self.orders = orders
        self.ledger = ledger
        self.events = events

    # -------------------------------------------------------------------------
    # Buyer
    # -------------------------------------------------------------------------

    async def request_return(
        self,
        buyer_id: str,
        order_id: str,
        order_line_id: str,
        quantity: int,
        reason: str,
    ) -> ReturnRequest:
        """Open a return request for units of a delivered line.

        Raises:
            OrderNotFoundError: If the order is not the buyer's.
            BadRequestError: Order not delivered/completed, or quantity
                above the ordered quantity.
            NotFoundError: If the line is not part of the order.
            ConflictError: Line already returned/refunded or with an
                open request.
        """
        order = await self.orders.get(order_id)
        if order is None or order.buyer_id != buyer_id:
            raise OrderNotFoundError(order_id)
        if not order.status.is_returnable():
            raise BadRequestError(
                "Items from this order cannot be returned in its current "
                f"status: {order.status.value}.",
                details={"order_id": order_id, "current_status": order.status.value},
            )

        line = order.get_line(order_line_id)
        if line is None:
            raise NotFoundError(
                "Item not found in this order.",
                details={"order_id": order_id, "order_line_id": order_line_id},
            )
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        if quantity > line.quantity:
            raise BadRequestError(
                "Return quantity cannot exceed ordered quantity.",
                details={"requested": quantity, "ordered": line.quantity},
            )
        if line.item_status in {OrderItemStatus.RETURNED, OrderItemStatus.REFUNDED}:
            raise ConflictError(
                "This item has already been processed for return/refund.",
                details={"order_line_id": line.id, "item_status": line.item_status.value},
            )
        existing = await self.returns.find_for_line(line.id)
        if any(r.status.is_open() for r in existing):
            raise ConflictError(
                "A return request for this item is already open.",
                details={"order_line_id": line.id},
            )

        expected = order.version
        order.move_line(line, OrderItemStatus.RETURN_REQUESTED)
        request = ReturnRequest.open(order, line, quantity, reason)

        await self.orders.save(order, expected)
        await self.returns.add(request)
        await self.events.publish(request.collect_events())

        logger.info(
            "Return requested",
            return_id=request.id,
            order_id=order.id,
            order_line_id=line.id,
            buyer_id=buyer_id,
            quantity=quantity,
        )
        return request

    # -------------------------------------------------------------------------
    # Seller
    # -------------------------------------------------------------------------

    async def list_seller_returns(
        self,
        seller_id: str,
        page: int,
        limit: int,
        status: ReturnStatus | None = None,
        order_id: str | None = None,
    ) -> Page[ReturnRequest]:
        requests, total = await self.returns.list_all(
            page, limit, seller_id=seller_id, status=status, order_id=order_id
        )
        return Page(results=requests, page=page, limit=limit, total_results=total)

    async def update_by_seller(
        self,
        seller_id: str,
        return_id: str,
        status: ReturnStatus,
        notes: str | None = None,
    ) -> ReturnRequest:
        """Move a return request and apply its effect on the order line.

        - approved: nothing moves yet
        - rejected: notes required, line back to ``delivered``
        - item_received: units released to stock, line ``returned``
        - refunded: unit price times quantity refunded, line ``refunded``

        Raises:
            NotFoundError: If the request is not this seller's.
            BadRequestError: Rejection without a reason, or a move the
                return state machine does not allow.
        """
        request = await self.returns.get(return_id)
        if request is None or request.seller_id != seller_id:
            raise NotFoundError(
                "Return request not found or does not belong to you.",
                details={"return_id": return_id},
            )
        if status == ReturnStatus.REJECTED and not (notes or "").strip():
            raise BadRequestError(
                "Reason is required when rejecting a return.",
                details={"return_id": return_id},
            )

        order, line = await self._order_and_line(request)
        request_expected = request.version
        order_expected = order.version
        request_before = copy.deepcopy(request)

        request.transition(status, notes=notes)

        line_target = _LINE_STATUS_FOR_RETURN.get(status)
        if line_target is not None:
            order.move_line(line, line_target)

        refund_cents = 0
        if status == ReturnStatus.REFUNDED:
            refund_cents = min(line.unit_price_cents * request.quantity, order.refundable_cents)
            if refund_cents > 0:
                order.record_refund(refund_cents, reason=f"Return {request.id}")

        # The request version guards the decision; the order follows it
        await self.returns.save(request, request_expected)
        if order.version != order_expected:
            try:
                await self.orders.save(order, order_expected)
            except Exception:
                logger.warning(
                    "Order save failed, restoring return request",
                    return_id=request.id,
                    order_id=order.id,
                )
                request_before.version = request.version + 1
                await self.returns.save(request_before, request.version)
                raise

        if status == ReturnStatus.ITEM_RECEIVED:
            await self.ledger.release(line.variant_id, request.quantity)

        await self.events.publish(request.collect_events() + order.collect_events())

        logger.info(
            "Return status updated",
            return_id=request.id,
            order_id=order.id,
            seller_id=seller_id,
            status=status.value,
            refund_cents=refund_cents,
        )
        return request

    async def _order_and_line(self, request: ReturnRequest) -> tuple[Order, OrderLine]:
        order = await self.orders.get(request.order_id)
        if order is None:
            raise OrderNotFoundError(request.order_id)
        line = order.get_line(request.order_line_id)
        if line is None:
            raise NotFoundError(
                "Item not found in this order.",
                details={"order_id": order.id, "order_line_id": request.order_line_id},
            )
        return order, line
