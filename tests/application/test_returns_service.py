"""Tests for return requests and return refunds."""

import pytest
import pytest_asyncio

from marketplace.application.order_state_machine import SellerStatusUpdate
from marketplace.application.returns_service import ReturnsService
from marketplace.domain import (
    CartOwner,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
    ReturnStatus,
)
from marketplace.domain.exceptions import (
    BadRequestError,
    ConcurrentModificationError,
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    OrderNotFoundError,
)
from tests.factories import BUYER_ID, SELLER_A, SELLER_B, place_command

USER = CartOwner.user(BUYER_ID)


@pytest_asyncio.fixture
async def placed_order(cart_service, placement):
    await cart_service.add_line(USER, "prod-wig", "wig-black", 2)
    return await placement.place(place_command())


@pytest_asyncio.fixture
async def delivered_order(placed_order, state_machine):
    await state_machine.update_by_seller(
        SELLER_A,
        placed_order.id,
        SellerStatusUpdate(OrderStatus.SHIPPED, tracking_number="1Z999"),
    )
    return await state_machine.update_by_seller(
        SELLER_A, placed_order.id, SellerStatusUpdate(OrderStatus.DELIVERED)
    )


class TestRequestReturn:
    @pytest.mark.asyncio
    async def test_request_on_delivered_order(
        self, returns_service: ReturnsService, delivered_order, orders, event_bus
    ) -> None:
        line = delivered_order.lines[0]

        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, line.id, 1, "Wrong shade"
        )

        assert request.status == ReturnStatus.PENDING_APPROVAL
        assert request.seller_id == SELLER_A
        assert request.quantity == 1
        stored = await orders.get(delivered_order.id)
        assert stored.get_line(line.id).item_status == OrderItemStatus.RETURN_REQUESTED
        assert len(event_bus.of_type("return.requested")) == 1

    @pytest.mark.asyncio
    async def test_undelivered_order(self, returns_service, placed_order) -> None:
        with pytest.raises(BadRequestError):
            await returns_service.request_return(
                BUYER_ID, placed_order.id, placed_order.lines[0].id, 1, "Too slow"
            )

    @pytest.mark.asyncio
    async def test_other_buyer(self, returns_service, delivered_order) -> None:
        with pytest.raises(OrderNotFoundError):
            await returns_service.request_return(
                "buyer-2", delivered_order.id, delivered_order.lines[0].id, 1, "Mine now"
            )

    @pytest.mark.asyncio
    async def test_unknown_line(self, returns_service, delivered_order) -> None:
        with pytest.raises(NotFoundError):
            await returns_service.request_return(
                BUYER_ID, delivered_order.id, "nope", 1, "Wrong shade"
            )

    @pytest.mark.asyncio
    async def test_quantity_above_ordered(self, returns_service, delivered_order) -> None:
        with pytest.raises(BadRequestError):
            await returns_service.request_return(
                BUYER_ID, delivered_order.id, delivered_order.lines[0].id, 3, "Wrong shade"
            )

    @pytest.mark.asyncio
    async def test_duplicate_open_request(self, returns_service, delivered_order) -> None:
        line_id = delivered_order.lines[0].id
        await returns_service.request_return(BUYER_ID, delivered_order.id, line_id, 1, "One")

        with pytest.raises(ConflictError):
            await returns_service.request_return(BUYER_ID, delivered_order.id, line_id, 1, "Two")


class TestSellerDecision:
    @pytest.mark.asyncio
    async def test_full_flow_restocks_and_refunds(
        self, returns_service, delivered_order, orders, ledger, event_bus
    ) -> None:
        line = delivered_order.lines[0]
        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, line.id, 2, "Wrong shade"
        )

        await returns_service.update_by_seller(SELLER_A, request.id, ReturnStatus.APPROVED)
        assert await ledger.available("wig-black") == 8

        await returns_service.update_by_seller(SELLER_A, request.id, ReturnStatus.ITEM_RECEIVED)
        assert await ledger.available("wig-black") == 10
        stored = await orders.get(delivered_order.id)
        assert stored.get_line(line.id).item_status == OrderItemStatus.RETURNED

        request = await returns_service.update_by_seller(
            SELLER_A, request.id, ReturnStatus.REFUNDED, notes="Refund issued"
        )
        assert request.status == ReturnStatus.REFUNDED
        assert request.seller_notes == "Refund issued"

        stored = await orders.get(delivered_order.id)
        assert stored.get_line(line.id).item_status == OrderItemStatus.REFUNDED
        assert stored.refunded_amount_cents == 20000
        assert stored.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        # Stock moved once, at receipt
        assert await ledger.available("wig-black") == 10
        assert [e.to_status for e in event_bus.of_type("return.status_changed")] == [
            "approved",
            "item_received",
            "refunded",
        ]
        assert len(event_bus.of_type("order.refunded")) == 1

    @pytest.mark.asyncio
    async def test_reject_requires_notes(self, returns_service, delivered_order) -> None:
        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, delivered_order.lines[0].id, 1, "Wrong shade"
        )
        with pytest.raises(BadRequestError):
            await returns_service.update_by_seller(SELLER_A, request.id, ReturnStatus.REJECTED)

    @pytest.mark.asyncio
    async def test_reject_puts_line_back_and_allows_new_request(
        self, returns_service, delivered_order, orders
    ) -> None:
        line_id = delivered_order.lines[0].id
        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, line_id, 1, "Wrong shade"
        )

        await returns_service.update_by_seller(
            SELLER_A, request.id, ReturnStatus.REJECTED, notes="Worn"
        )

        stored = await orders.get(delivered_order.id)
        assert stored.get_line(line_id).item_status == OrderItemStatus.DELIVERED
        again = await returns_service.request_return(
            BUYER_ID, delivered_order.id, line_id, 1, "Still wrong"
        )
        assert again.status == ReturnStatus.PENDING_APPROVAL

    @pytest.mark.asyncio
    async def test_skipping_a_step_is_rejected(self, returns_service, delivered_order) -> None:
        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, delivered_order.lines[0].id, 1, "Wrong shade"
        )
        with pytest.raises(InvalidStateTransitionError):
            await returns_service.update_by_seller(SELLER_A, request.id, ReturnStatus.REFUNDED)

    @pytest.mark.asyncio
    async def test_other_seller_cannot_see_request(self, returns_service, delivered_order) -> None:
        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, delivered_order.lines[0].id, 1, "Wrong shade"
        )
        with pytest.raises(NotFoundError):
            await returns_service.update_by_seller(SELLER_B, request.id, ReturnStatus.APPROVED)

        page = await returns_service.list_seller_returns(SELLER_B, page=1, limit=10)
        assert page.total_results == 0
        page = await returns_service.list_seller_returns(SELLER_A, page=1, limit=10)
        assert [r.id for r in page.results] == [request.id]


class TestConcurrentDecisions:
    @pytest.mark.asyncio
    async def test_losing_decision_leaves_order_untouched(
        self, returns_service, delivered_order, orders
    ) -> None:
        line_id = delivered_order.lines[0].id
        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, line_id, 1, "Wrong shade"
        )
        original_get = orders.get
        raced = []

        async def get_after_approval(order_id):
            # The approval lands after the rejection loaded the request
            if not raced:
                raced.append(True)
                await returns_service.update_by_seller(SELLER_A, request.id, ReturnStatus.APPROVED)
            return await original_get(order_id)

        orders.get = get_after_approval

        with pytest.raises(ConcurrentModificationError):
            await returns_service.update_by_seller(
                SELLER_A, request.id, ReturnStatus.REJECTED, notes="Worn"
            )

        stored = await original_get(delivered_order.id)
        assert stored.get_line(line_id).item_status == OrderItemStatus.RETURN_REQUESTED
        page = await returns_service.list_seller_returns(SELLER_A, page=1, limit=10)
        assert page.results[0].status == ReturnStatus.APPROVED

    @pytest.mark.asyncio
    async def test_failed_order_save_restores_request(
        self, returns_service, delivered_order, orders
    ) -> None:
        line_id = delivered_order.lines[0].id
        request = await returns_service.request_return(
            BUYER_ID, delivered_order.id, line_id, 1, "Wrong shade"
        )

        async def conflicting_save(order, expected_version) -> None:
            raise ConcurrentModificationError(
                "Order", order.id, expected_version, expected_version + 1
            )

        original_save = orders.save
        orders.save = conflicting_save
        with pytest.raises(ConcurrentModificationError):
            await returns_service.update_by_seller(
                SELLER_A, request.id, ReturnStatus.REJECTED, notes="Worn"
            )
        orders.save = original_save

        page = await returns_service.list_seller_returns(SELLER_A, page=1, limit=10)
        assert page.results[0].status == ReturnStatus.PENDING_APPROVAL
        approved = await returns_service.update_by_seller(
            SELLER_A, request.id, ReturnStatus.APPROVED
        )
        assert approved.status == ReturnStatus.APPROVED
