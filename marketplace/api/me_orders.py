"""Buyer order endpoints.

Placing orders from the active cart, browsing and cancelling own
orders, and opening return requests.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from marketplace.api.converters import (
    order_to_response,
    orders_page_to_response,
    return_to_response,
)
from marketplace.api.dependencies import (
    Buyer,
    Pagination,
    get_order_placement,
    get_order_state_machine,
    get_pagination,
    get_returns_service,
)
from marketplace.api.schemas import (
    ErrorResponse,
    OrderCancelRequest,
    OrderResponse,
    OrdersListResponse,
    PlaceOrderRequest,
    ReturnCreateRequest,
    ReturnResponse,
)
from marketplace.application.order_placement import OrderPlacementService, PlaceOrderCommand
from marketplace.application.order_state_machine import OrderStateMachine
from marketplace.application.returns_service import ReturnsService
from marketplace.domain.state_machines import OrderStatus

router = APIRouter(
    prefix="/me/orders",
    tags=["My Orders"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

StateMachineDep = Annotated[OrderStateMachine, Depends(get_order_state_machine)]


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Place order",
    description=(
        "Place an order from my active cart. Stock for every line is "
        "reserved at once; on any failure nothing is reserved and the "
        "cart stays active."
    ),
)
async def place_order(
    request: PlaceOrderRequest,
    principal: Buyer,
    placement: Annotated[OrderPlacementService, Depends(get_order_placement)],
) -> OrderResponse:
    """Place an order.

    Raises:
        CartEmptyError: Cart has no lines (400).
        InsufficientStockError: Some line cannot be covered (400).
        NotFoundError: Unknown address, payment method or cart (404).
    """
    order = await placement.place(
        PlaceOrderCommand(
            buyer_id=principal.user_id,
            shipping_address_id=request.shipping_address_id,
            billing_address_id=request.billing_address_id,
            payment_method_id=request.payment_method_id,
            shipping_method=request.shipping_method,
            cart_id=request.cart_id,
            notes_by_buyer=request.notes,
        )
    )
    return order_to_response(order)


@router.get(
    "",
    response_model=OrdersListResponse,
    summary="List my orders",
    description="Get a paginated list of my orders, newest first.",
)
async def list_my_orders(
    principal: Buyer,
    machine: StateMachineDep,
    pagination: Annotated[Pagination, Depends(get_pagination)],
    order_status: OrderStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
) -> OrdersListResponse:
    page = await machine.list_buyer_orders(
        principal.user_id, pagination.page, pagination.limit, status=order_status
    )
    return orders_page_to_response(page)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get my order",
)
async def get_my_order(order_id: str, principal: Buyer, machine: StateMachineDep) -> OrderResponse:
    return order_to_response(await machine.get_buyer_order(principal.user_id, order_id))


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Cancel my order",
    description=(
        "Cancel an order in pending_payment or processing. Units go back "
        "to stock and a captured payment is refunded."
    ),
)
async def cancel_my_order(
    order_id: str,
    principal: Buyer,
    machine: StateMachineDep,
    request: OrderCancelRequest | None = None,
) -> OrderResponse:
    reason = request.reason if request else None
    order = await machine.cancel_by_buyer(principal.user_id, order_id, reason=reason)
    return order_to_response(order)


@router.post(
    "/{order_id}/returns",
    response_model=ReturnResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Request a return",
)
async def request_return(
    order_id: str,
    request: ReturnCreateRequest,
    principal: Buyer,
    returns: Annotated[ReturnsService, Depends(get_returns_service)],
) -> ReturnResponse:
    return_request = await returns.request_return(
        principal.user_id,
        order_id,
        request.order_line_id,
        request.quantity,
        request.reason,
    )
    return return_to_response(return_request)
