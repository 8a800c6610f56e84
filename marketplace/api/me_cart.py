"""Authenticated buyer cart endpoints.

The caller's active cart is created on first access.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from marketplace.api.converters import cart_to_response
from marketplace.api.dependencies import Buyer, get_cart_merge, get_cart_service
from marketplace.api.schemas import (
    CartItemAddRequest,
    CartItemUpdateRequest,
    CartMergeRequest,
    CartResponse,
    ErrorResponse,
)
from marketplace.application.cart_merge import CartMergeService
from marketplace.application.cart_service import CartService
from marketplace.domain.value_objects import CartOwner

router = APIRouter(
    prefix="/me/cart",
    tags=["My Cart"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

CartServiceDep = Annotated[CartService, Depends(get_cart_service)]


@router.get("", response_model=CartResponse, summary="Get my cart")
async def get_my_cart(principal: Buyer, service: CartServiceDep) -> CartResponse:
    return cart_to_response(await service.view(CartOwner.user(principal.user_id)))


@router.post(
    "/items",
    response_model=CartResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Add item to my cart",
    description="Add units of a variant; an existing line for it is incremented.",
)
async def add_my_item(
    request: CartItemAddRequest, principal: Buyer, service: CartServiceDep
) -> CartResponse:
    view = await service.add_line(
        CartOwner.user(principal.user_id),
        request.product_id,
        request.variant_id,
        request.quantity,
    )
    return cart_to_response(view)


@router.put(
    "/items/{item_id}",
    response_model=CartResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Set item quantity in my cart",
)
async def update_my_item(
    item_id: str,
    request: CartItemUpdateRequest,
    principal: Buyer,
    service: CartServiceDep,
) -> CartResponse:
    view = await service.set_line_quantity(
        CartOwner.user(principal.user_id), item_id, request.quantity
    )
    return cart_to_response(view)


@router.delete(
    "/items/{item_id}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Remove item from my cart",
)
async def remove_my_item(item_id: str, principal: Buyer, service: CartServiceDep) -> CartResponse:
    return cart_to_response(await service.remove_line(CartOwner.user(principal.user_id), item_id))


@router.delete("", response_model=CartResponse, summary="Clear my cart")
async def clear_my_cart(principal: Buyer, service: CartServiceDep) -> CartResponse:
    return cart_to_response(await service.clear(CartOwner.user(principal.user_id)))


@router.post(
    "/merge-anonymous",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Merge anonymous cart",
    description=(
        "Fold an anonymous cart into my cart after login. Quantities are "
        "capped at current stock; the anonymous cart becomes merged."
    ),
)
async def merge_anonymous_cart(
    request: CartMergeRequest,
    principal: Buyer,
    merge: Annotated[CartMergeService, Depends(get_cart_merge)],
) -> CartResponse:
    view = await merge.merge(request.anonymous_cart_token, principal.user_id)
    return cart_to_response(view)
