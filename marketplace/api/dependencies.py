"""FastAPI dependencies shared by the routers.

Role guards read the principal that ``IdentityMiddleware`` resolved:
no principal is 401, a principal with the wrong role is 403.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Query, Request

from marketplace.application.cart_merge import CartMergeService
from marketplace.application.cart_service import CartService
from marketplace.application.order_placement import OrderPlacementService
from marketplace.application.order_state_machine import OrderStateMachine
from marketplace.application.returns_service import ReturnsService
from marketplace.domain.exceptions import ForbiddenError, UnauthorizedError
from marketplace.domain.value_objects import Principal, Role
from marketplace.infrastructure.config import settings
from marketplace.infrastructure.container import get_container


# ============================================================================
# Principal
# ============================================================================


def get_principal(request: Request) -> Principal:
    """Authenticated principal or 401."""
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise UnauthorizedError("Authentication required")
    return principal


def _require(role: Role):
    def dependency(principal: Annotated[Principal, Depends(get_principal)]) -> Principal:
        if principal.role != role:
            raise ForbiddenError(
                f"This action requires the {role.value} role.",
                details={"required_role": role.value, "role": principal.role.value},
            )
        return principal

    return dependency


require_buyer = _require(Role.BUYER)
require_seller = _require(Role.SELLER)
require_admin = _require(Role.ADMIN)

Buyer = Annotated[Principal, Depends(require_buyer)]
Seller = Annotated[Principal, Depends(require_seller)]
Admin = Annotated[Principal, Depends(require_admin)]


# ============================================================================
# Services
# ============================================================================


def get_cart_service() -> CartService:
    return get_container().cart_service


def get_cart_merge() -> CartMergeService:
    return get_container().cart_merge


def get_order_placement() -> OrderPlacementService:
    return get_container().order_placement


def get_order_state_machine() -> OrderStateMachine:
    return get_container().order_state_machine


def get_returns_service() -> ReturnsService:
    return get_container().returns_service


# ============================================================================
# Pagination
# ============================================================================


@dataclass
class Pagination:
    page: int
    limit: int


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number (1-based)"),
    limit: int | None = Query(default=None, ge=1, description="Items per page"),
) -> Pagination:
    """Page and limit, with the limit defaulted and capped from settings."""
    size = settings.default_page_size if limit is None else limit
    return Pagination(page=page, limit=min(size, settings.max_page_size))
