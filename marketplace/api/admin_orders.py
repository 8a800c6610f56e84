"""Administrator order endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from marketplace.api.converters import order_to_admin_response, orders_page_to_response
from marketplace.api.dependencies import (
    Admin,
    Pagination,
    get_order_state_machine,
    get_pagination,
)
from marketplace.api.schemas import (
    AdminOrderResponse,
    AdminOrderStatusRequest,
    AdminRefundRequest,
    ErrorResponse,
    OrdersListResponse,
)
from marketplace.application.order_state_machine import AdminRefund, OrderStateMachine
from marketplace.domain.state_machines import OrderStatus

router = APIRouter(
    prefix="/admin/orders",
    tags=["Admin Orders"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

StateMachineDep = Annotated[OrderStateMachine, Depends(get_order_state_machine)]


@router.get(
    "",
    response_model=OrdersListResponse,
    summary="List all orders",
    description="Every order, newest first, filtered by buyer, seller, status or id.",
)
async def list_orders(
    principal: Admin,
    machine: StateMachineDep,
    pagination: Annotated[Pagination, Depends(get_pagination)],
    order_status: OrderStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
    buyer_id: str | None = Query(default=None, description="Filter by buyer"),
    seller_id: str | None = Query(default=None, description="Filter by seller"),
    order_id: str | None = Query(default=None, description="Exact order id"),
) -> OrdersListResponse:
    page = await machine.list_all_orders(
        pagination.page,
        pagination.limit,
        buyer_id=buyer_id,
        seller_id=seller_id,
        status=order_status,
        order_id=order_id,
    )
    return orders_page_to_response(page)


@router.get(
    "/{order_id}",
    response_model=AdminOrderResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get any order",
)
async def get_order(order_id: str, principal: Admin, machine: StateMachineDep) -> AdminOrderResponse:
    return order_to_admin_response(await machine.get_any_order(order_id))


@router.patch(
    "/{order_id}/status",
    response_model=AdminOrderResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Override order status",
    description=(
        "Set any status. Cancelling a live order cancels its undelivered "
        "items and returns their units to stock."
    ),
)
async def override_order_status(
    order_id: str,
    request: AdminOrderStatusRequest,
    principal: Admin,
    machine: StateMachineDep,
) -> AdminOrderResponse:
    order = await machine.override_by_admin(
        principal.user_id, order_id, request.status, notes=request.notes
    )
    return order_to_admin_response(order)


@router.post(
    "/{order_id}/refund",
    response_model=AdminOrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Refund order",
    description="Book a full or partial refund against the remaining balance.",
)
async def refund_order(
    order_id: str,
    request: AdminRefundRequest,
    principal: Admin,
    machine: StateMachineDep,
) -> AdminOrderResponse:
    order = await machine.refund_by_admin(
        principal.user_id,
        order_id,
        AdminRefund(
            amount_cents=request.amount_cents,
            reason=request.reason,
            order_line_id=request.order_line_id,
        ),
    )
    return order_to_admin_response(order)
