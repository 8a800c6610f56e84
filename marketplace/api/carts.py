"""Anonymous cart endpoints.

Carts here are addressed by their anonymous token, returned when the
cart is created. No authentication is required.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from marketplace.api.converters import cart_to_response
from marketplace.api.dependencies import get_cart_service
from marketplace.api.schemas import (
    CartItemAddRequest,
    CartItemUpdateRequest,
    CartResponse,
    ErrorResponse,
)
from marketplace.application.cart_service import CartService
from marketplace.domain.value_objects import CartOwner

router = APIRouter(prefix="/carts", tags=["Carts"])

CartServiceDep = Annotated[CartService, Depends(get_cart_service)]


@router.post(
    "",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Create anonymous cart",
    description="Create a cart with its first line and return its token.",
)
async def create_cart(request: CartItemAddRequest, service: CartServiceDep) -> CartResponse:
    """Create an anonymous cart.

    Raises:
        ProductUnavailableError: Product or variant not purchasable (404).
        InsufficientStockError: Not enough stock for the quantity (400).
    """
    view = await service.create_anonymous_cart(
        request.product_id, request.variant_id, request.quantity
    )
    return cart_to_response(view)


@router.get(
    "/{token}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get anonymous cart",
)
async def get_cart(token: str, service: CartServiceDep) -> CartResponse:
    return cart_to_response(await service.view(CartOwner.anonymous(token)))


@router.post(
    "/{token}/items",
    response_model=CartResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Add item to anonymous cart",
)
async def add_item(
    token: str, request: CartItemAddRequest, service: CartServiceDep
) -> CartResponse:
    view = await service.add_line(
        CartOwner.anonymous(token), request.product_id, request.variant_id, request.quantity
    )
    return cart_to_response(view)


@router.put(
    "/{token}/items/{item_id}",
    response_model=CartResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Set item quantity in anonymous cart",
)
async def update_item(
    token: str, item_id: str, request: CartItemUpdateRequest, service: CartServiceDep
) -> CartResponse:
    view = await service.set_line_quantity(CartOwner.anonymous(token), item_id, request.quantity)
    return cart_to_response(view)


@router.delete(
    "/{token}/items/{item_id}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Remove item from anonymous cart",
)
async def remove_item(token: str, item_id: str, service: CartServiceDep) -> CartResponse:
    return cart_to_response(await service.remove_line(CartOwner.anonymous(token), item_id))


@router.delete(
    "/{token}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Clear anonymous cart",
)
async def clear_cart(token: str, service: CartServiceDep) -> CartResponse:
    return cart_to_response(await service.clear(CartOwner.anonymous(token)))
