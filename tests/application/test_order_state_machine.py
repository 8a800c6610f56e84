"""Tests for role-scoped order transitions."""

import pytest
import pytest_asyncio

from marketplace.application.order_state_machine import (
    AdminRefund,
    OrderStateMachine,
    SellerStatusUpdate,
)
from marketplace.domain import (
    CartOwner,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
)
from marketplace.domain.exceptions import (
    BadRequestError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    OrderNotCancellableError,
    OrderNotFoundError,
    RefundExceedsBalanceError,
)
from tests.factories import ADMIN_ID, BUYER_ID, SELLER_A, SELLER_B, place_command

USER = CartOwner.user(BUYER_ID)


@pytest_asyncio.fixture
async def two_seller_order(cart_service, placement):
    """Order with 2 wig-black (seller-a) and 1 comb (seller-b): total 235.05."""
    await cart_service.add_line(USER, "prod-wig", "wig-black", 2)
    await cart_service.add_line(USER, "prod-comb", "comb", 1)
    return await placement.place(place_command())


def line_for(order, seller_id):
    return order.lines_for_seller(seller_id)[0]


class TestBuyerCancel:
    @pytest.mark.asyncio
    async def test_cancel_restores_stock_and_refunds(
        self, state_machine: OrderStateMachine, two_seller_order, ledger, event_bus
    ) -> None:
        assert await ledger.available("wig-black") == 8

        order = await state_machine.cancel_by_buyer(BUYER_ID, two_seller_order.id, "Changed mind")

        assert order.status == OrderStatus.CANCELLED_BY_USER
        assert order.payment_status == PaymentStatus.REFUNDED
        assert order.refunded_amount_cents == order.total_cents
        assert all(line.item_status == OrderItemStatus.CANCELLED for line in order.lines)
        assert await ledger.available("wig-black") == 10
        assert await ledger.available("comb") == 5

        cancelled = event_bus.of_type("order.cancelled")[0]
        assert cancelled.cancelled_by == "buyer"
        assert cancelled.units_restocked == 3

    @pytest.mark.asyncio
    async def test_cancel_twice_fails(self, state_machine, two_seller_order, ledger) -> None:
        await state_machine.cancel_by_buyer(BUYER_ID, two_seller_order.id)
        with pytest.raises(OrderNotCancellableError):
            await state_machine.cancel_by_buyer(BUYER_ID, two_seller_order.id)
        assert await ledger.available("wig-black") == 10

    @pytest.mark.asyncio
    async def test_cancel_after_shipping_fails(self, state_machine, two_seller_order) -> None:
        await state_machine.update_by_seller(
            SELLER_A,
            two_seller_order.id,
            SellerStatusUpdate(OrderStatus.SHIPPED, tracking_number="1Z999"),
        )
        with pytest.raises(OrderNotCancellableError):
            await state_machine.cancel_by_buyer(BUYER_ID, two_seller_order.id)

    @pytest.mark.asyncio
    async def test_other_buyer_cannot_see_order(self, state_machine, two_seller_order) -> None:
        with pytest.raises(OrderNotFoundError):
            await state_machine.get_buyer_order("buyer-2", two_seller_order.id)
        with pytest.raises(OrderNotFoundError):
            await state_machine.cancel_by_buyer("buyer-2", two_seller_order.id)


class TestSellerUpdate:
    @pytest.mark.asyncio
    async def test_shipped_requires_tracking_number(self, state_machine, two_seller_order) -> None:
        with pytest.raises(BadRequestError):
            await state_machine.update_by_seller(
                SELLER_A, two_seller_order.id, SellerStatusUpdate(OrderStatus.SHIPPED)
            )

    @pytest.mark.asyncio
    async def test_seller_without_lines_is_forbidden(self, state_machine, two_seller_order) -> None:
        with pytest.raises(ForbiddenError):
            await state_machine.update_by_seller(
                "seller-z", two_seller_order.id, SellerStatusUpdate(OrderStatus.PROCESSING)
            )

    @pytest.mark.asyncio
    async def test_target_outside_seller_authority(self, state_machine, two_seller_order) -> None:
        with pytest.raises(BadRequestError):
            await state_machine.update_by_seller(
                SELLER_A, two_seller_order.id, SellerStatusUpdate(OrderStatus.REFUNDED)
            )

    @pytest.mark.asyncio
    async def test_only_the_sellers_lines_move(self, state_machine, two_seller_order) -> None:
        order = await state_machine.update_by_seller(
            SELLER_A,
            two_seller_order.id,
            SellerStatusUpdate(
                OrderStatus.SHIPPED, tracking_number=" 1Z999 ", carrier="UPS", notes="Boxed"
            ),
        )

        assert order.status == OrderStatus.SHIPPED
        assert order.tracking_number == "1Z999"
        assert order.carrier == "UPS"
        assert line_for(order, SELLER_A).item_status == OrderItemStatus.SHIPPED
        assert line_for(order, SELLER_B).item_status == OrderItemStatus.PENDING
        assert order.internal_notes == "Seller Note: Boxed"
        assert order.status_history[-1].actor_role == "seller"

    @pytest.mark.asyncio
    async def test_invalid_line_move_changes_nothing(
        self, state_machine, two_seller_order, orders
    ) -> None:
        with pytest.raises(InvalidStateTransitionError):
            await state_machine.update_by_seller(
                SELLER_A, two_seller_order.id, SellerStatusUpdate(OrderStatus.DELIVERED)
            )

        stored = await orders.get(two_seller_order.id)
        assert stored.status == OrderStatus.PROCESSING
        assert line_for(stored, SELLER_A).item_status == OrderItemStatus.PENDING

    @pytest.mark.asyncio
    async def test_seller_cancel_refunds_their_lines(
        self, state_machine, two_seller_order, ledger
    ) -> None:
        order = await state_machine.update_by_seller(
            SELLER_B, two_seller_order.id, SellerStatusUpdate(OrderStatus.CANCELLED_BY_SELLER)
        )

        assert order.status == OrderStatus.CANCELLED_BY_SELLER
        assert line_for(order, SELLER_B).item_status == OrderItemStatus.CANCELLED
        assert line_for(order, SELLER_A).item_status == OrderItemStatus.PENDING
        assert order.refunded_amount_cents == 1500
        assert order.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert await ledger.available("comb") == 5
        assert await ledger.available("wig-black") == 8

    @pytest.mark.asyncio
    async def test_closed_order_rejects_updates(self, state_machine, two_seller_order) -> None:
        await state_machine.cancel_by_buyer(BUYER_ID, two_seller_order.id)
        with pytest.raises(BadRequestError):
            await state_machine.update_by_seller(
                SELLER_A, two_seller_order.id, SellerStatusUpdate(OrderStatus.PROCESSING)
            )

    @pytest.mark.asyncio
    async def test_seller_sees_only_orders_with_their_lines(
        self, state_machine, two_seller_order
    ) -> None:
        page = await state_machine.list_seller_orders(SELLER_B, page=1, limit=10)
        assert [o.id for o in page.results] == [two_seller_order.id]

        page = await state_machine.list_seller_orders("seller-z", page=1, limit=10)
        assert page.total_results == 0

        with pytest.raises(NotFoundError):
            await state_machine.get_seller_order("seller-z", two_seller_order.id)


class TestAdmin:
    @pytest.mark.asyncio
    async def test_override_cancels_undelivered_lines(
        self, state_machine, two_seller_order, ledger, event_bus
    ) -> None:
        await state_machine.update_by_seller(
            SELLER_A,
            two_seller_order.id,
            SellerStatusUpdate(OrderStatus.SHIPPED, tracking_number="1Z999"),
        )

        order = await state_machine.override_by_admin(
            ADMIN_ID, two_seller_order.id, OrderStatus.CANCELLED_BY_ADMIN, notes="Fraud check"
        )

        assert order.status == OrderStatus.CANCELLED_BY_ADMIN
        assert all(line.item_status == OrderItemStatus.CANCELLED for line in order.lines)
        assert await ledger.available("wig-black") == 10
        assert await ledger.available("comb") == 5
        assert order.internal_notes == "Admin Note: Fraud check"
        assert event_bus.of_type("order.cancelled")[0].cancelled_by == "admin"

    @pytest.mark.asyncio
    async def test_override_to_non_cancellation_keeps_stock(
        self, state_machine, two_seller_order, ledger
    ) -> None:
        order = await state_machine.override_by_admin(
            ADMIN_ID, two_seller_order.id, OrderStatus.COMPLETED
        )
        assert order.status == OrderStatus.COMPLETED
        assert await ledger.available("wig-black") == 8

    @pytest.mark.asyncio
    async def test_partial_then_full_refund(self, state_machine, two_seller_order) -> None:
        order = await state_machine.refund_by_admin(
            ADMIN_ID, two_seller_order.id, AdminRefund(amount_cents=5000, reason="Damaged box")
        )
        assert order.status == OrderStatus.REFUND_PENDING
        assert order.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert order.internal_notes == "Admin Refund: 50.00 (Damaged box)."

        order = await state_machine.refund_by_admin(
            ADMIN_ID,
            two_seller_order.id,
            AdminRefund(amount_cents=order.refundable_cents, reason="Goodwill"),
        )
        assert order.status == OrderStatus.REFUNDED
        assert order.payment_status == PaymentStatus.REFUNDED
        assert order.refunded_amount_cents == order.total_cents

    @pytest.mark.asyncio
    async def test_refund_above_balance(self, state_machine, two_seller_order) -> None:
        with pytest.raises(RefundExceedsBalanceError):
            await state_machine.refund_by_admin(
                ADMIN_ID,
                two_seller_order.id,
                AdminRefund(amount_cents=two_seller_order.total_cents + 1, reason="Too much"),
            )

    @pytest.mark.asyncio
    async def test_refund_for_line(self, state_machine, two_seller_order, ledger) -> None:
        line = line_for(two_seller_order, SELLER_B)
        order = await state_machine.refund_by_admin(
            ADMIN_ID,
            two_seller_order.id,
            AdminRefund(amount_cents=1500, reason="Missing", order_line_id=line.id),
        )
        assert order.get_line(line.id).item_status == OrderItemStatus.REFUNDED
        # Refunds never move stock
        assert await ledger.available("comb") == 4

    @pytest.mark.asyncio
    async def test_refund_for_unknown_line(self, state_machine, two_seller_order) -> None:
        with pytest.raises(NotFoundError):
            await state_machine.refund_by_admin(
                ADMIN_ID,
                two_seller_order.id,
                AdminRefund(amount_cents=100, reason="x", order_line_id="nope"),
            )

    @pytest.mark.asyncio
    async def test_list_filters(self, state_machine, two_seller_order) -> None:
        page = await state_machine.list_all_orders(page=1, limit=10, seller_id=SELLER_A)
        assert page.total_results == 1

        page = await state_machine.list_all_orders(
            page=1, limit=10, status=OrderStatus.SHIPPED
        )
        assert page.total_results == 0

        page = await state_machine.list_all_orders(
            page=1, limit=10, order_id=two_seller_order.id, buyer_id="someone-else"
        )
        assert page.total_results == 1

        page = await state_machine.list_buyer_orders(BUYER_ID, page=1, limit=10)
        assert page.total_pages == 1


class TestEventsPublishedOnce:
    @pytest.mark.asyncio
    async def test_each_transition_publishes_its_own_events(
        self, state_machine, two_seller_order, orders, event_bus
    ) -> None:
        await state_machine.update_by_seller(
            SELLER_A,
            two_seller_order.id,
            SellerStatusUpdate(OrderStatus.SHIPPED, tracking_number="TRACK123"),
        )
        for _ in range(2):
            await state_machine.refund_by_admin(
                ADMIN_ID, two_seller_order.id, AdminRefund(amount_cents=100, reason="Late")
            )

        assert [e.to_status for e in event_bus.of_type("order.status_changed")] == [
            "shipped",
            "refund_pending",
            "refund_pending",
        ]
        assert [e.amount_cents for e in event_bus.of_type("order.refunded")] == [100, 100]

        stored = await orders.get(two_seller_order.id)
        assert stored.collect_events() == []
