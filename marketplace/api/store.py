"""Seller store endpoints.

Sellers see orders containing at least one of their lines, move their
own lines through fulfilment and handle return requests for them.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from marketplace.api.converters import (
    order_to_admin_response,
    orders_page_to_response,
    return_to_response,
    returns_page_to_response,
)
from marketplace.api.dependencies import (
    Pagination,
    Seller,
    get_order_state_machine,
    get_pagination,
    get_returns_service,
)
from marketplace.api.schemas import (
    AdminOrderResponse,
    ErrorResponse,
    OrdersListResponse,
    ReturnResponse,
    ReturnsListResponse,
    ReturnStatusRequest,
    SellerOrderStatusRequest,
)
from marketplace.application.order_state_machine import OrderStateMachine, SellerStatusUpdate
from marketplace.application.returns_service import ReturnsService
from marketplace.domain.state_machines import OrderStatus, ReturnStatus

router = APIRouter(
    prefix="/me/store",
    tags=["Seller Store"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

StateMachineDep = Annotated[OrderStateMachine, Depends(get_order_state_machine)]
ReturnsDep = Annotated[ReturnsService, Depends(get_returns_service)]
PaginationDep = Annotated[Pagination, Depends(get_pagination)]


# ============================================================================
# Orders
# ============================================================================


@router.get(
    "/orders",
    response_model=OrdersListResponse,
    summary="List store orders",
    description="Orders containing at least one of my items, newest first.",
)
async def list_store_orders(
    principal: Seller,
    machine: StateMachineDep,
    pagination: PaginationDep,
    order_status: OrderStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
    buyer_id: str | None = Query(default=None, description="Filter by buyer"),
) -> OrdersListResponse:
    page = await machine.list_seller_orders(
        principal.user_id,
        pagination.page,
        pagination.limit,
        status=order_status,
        buyer_id=buyer_id,
    )
    return orders_page_to_response(page)


@router.get(
    "/orders/{order_id}",
    response_model=AdminOrderResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get store order",
)
async def get_store_order(
    order_id: str, principal: Seller, machine: StateMachineDep
) -> AdminOrderResponse:
    return order_to_admin_response(await machine.get_seller_order(principal.user_id, order_id))


@router.patch(
    "/orders/{order_id}/status",
    response_model=AdminOrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Update store order status",
    description=(
        "Move my items to processing, shipped (tracking number required), "
        "delivered or cancelled_by_seller, and set the order status."
    ),
)
async def update_store_order_status(
    order_id: str,
    request: SellerOrderStatusRequest,
    principal: Seller,
    machine: StateMachineDep,
) -> AdminOrderResponse:
    order = await machine.update_by_seller(
        principal.user_id,
        order_id,
        SellerStatusUpdate(
            status=request.status,
            tracking_number=request.tracking_number,
            carrier=request.carrier,
            notes=request.notes,
        ),
    )
    return order_to_admin_response(order)


# ============================================================================
# Returns
# ============================================================================


@router.get(
    "/returns",
    response_model=ReturnsListResponse,
    summary="List store returns",
)
async def list_store_returns(
    principal: Seller,
    returns: ReturnsDep,
    pagination: PaginationDep,
    return_status: ReturnStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
    order_id: str | None = Query(default=None, description="Filter by order"),
) -> ReturnsListResponse:
    page = await returns.list_seller_returns(
        principal.user_id,
        pagination.page,
        pagination.limit,
        status=return_status,
        order_id=order_id,
    )
    return returns_page_to_response(page)


@router.patch(
    "/returns/{return_id}/status",
    response_model=ReturnResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Update return status",
)
async def update_store_return_status(
    return_id: str,
    request: ReturnStatusRequest,
    principal: Seller,
    returns: ReturnsDep,
) -> ReturnResponse:
    return_request = await returns.update_by_seller(
        principal.user_id, return_id, request.status, notes=request.notes
    )
    return return_to_response(return_request)
