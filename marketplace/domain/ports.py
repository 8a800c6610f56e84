"""Ports between the commerce engine and its collaborators.

Services receive implementations of these protocols through their
constructors; nothing in the application layer imports a concrete
store. In-memory implementations live in
``marketplace.infrastructure.memory`` and SQLAlchemy-backed catalog and
stock in ``marketplace.infrastructure.sql_catalog``.
"""

from typing import Protocol, Sequence

from marketplace.domain.base import DomainEvent
from marketplace.domain.entities import Cart, Order, ReturnRequest
from marketplace.domain.state_machines import OrderStatus, ReturnStatus
from marketplace.domain.value_objects import (
    Address,
    CartOwner,
    PaymentMethodSummary,
    Principal,
    VariantSnapshot,
)


# ============================================================================
# Catalog and Stock
# ============================================================================


class CatalogReadPort(Protocol):
    """Read access to products and variants owned by the catalog."""

    async def get_variant(self, product_id: str, variant_id: str) -> VariantSnapshot | None:
        """Fetch a variant of a product, or None if either is unknown."""
        ...


class StockStore(Protocol):
    """Variant stock counters. Only the inventory ledger writes here."""

    async def decrement_if_available(self, variant_id: str, quantity: int) -> bool:
        """Atomically subtract ``quantity`` if at least that much is in stock.

        Returns:
            True if the decrement was applied.
        """
        ...

    async def increment(self, variant_id: str, quantity: int) -> None:
        """Unconditionally add ``quantity`` back."""
        ...

    async def get_stock(self, variant_id: str) -> int | None:
        """Current stock, or None for an unknown variant."""
        ...


# ============================================================================
# Identity and Customer Profile
# ============================================================================


class IdentityPort(Protocol):
    """Resolves bearer tokens issued by the authentication service."""

    async def resolve(self, token: str) -> Principal | None:
        ...


class CustomerProfilePort(Protocol):
    """Owner-scoped lookups of saved addresses and payment methods."""

    async def get_address(self, user_id: str, address_id: str) -> Address | None:
        ...

    async def get_payment_method(
        self, user_id: str, payment_method_id: str
    ) -> PaymentMethodSummary | None:
        ...


# ============================================================================
# Events
# ============================================================================


class OrderEventsPort(Protocol):
    """Outbound channel for downstream notification/analytics consumers."""

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        ...


# ============================================================================
# Repositories
# ============================================================================


class CartRepository(Protocol):
    """Persistence for carts and their lines."""

    async def add(self, cart: Cart) -> None:
        """Insert a new cart.

        Raises:
            ConflictError: If the owner already has an active cart.
        """
        ...

    async def get(self, cart_id: str) -> Cart | None:
        ...

    async def find_active(self, owner: CartOwner) -> Cart | None:
        ...

    async def find_by_token(self, token: str) -> Cart | None:
        """Anonymous cart by token, whatever its status."""
        ...

    async def save(self, cart: Cart, expected_version: int) -> None:
        """Replace a cart if nobody saved it since ``expected_version``.

        Raises:
            ConcurrentModificationError: On a lost race.
        """
        ...


class OrderRepository(Protocol):
    """Persistence for orders and their lines. Orders are never deleted."""

    async def add(self, order: Order) -> None:
        ...

    async def get(self, order_id: str) -> Order | None:
        ...

    async def save(self, order: Order, expected_version: int) -> None:
        ...

    async def list_all(
        self,
        page: int,
        limit: int,
        buyer_id: str | None = None,
        seller_id: str | None = None,
        status: OrderStatus | None = None,
        order_id: str | None = None,
    ) -> tuple[list[Order], int]:
        """Filtered page of orders, newest first, with the total count."""
        ...


class ReturnRepository(Protocol):
    """Persistence for return requests."""

    async def add(self, request: ReturnRequest) -> None:
        ...

    async def get(self, return_id: str) -> ReturnRequest | None:
        ...

    async def save(self, request: ReturnRequest, expected_version: int) -> None:
        ...

    async def find_for_line(self, order_line_id: str) -> list[ReturnRequest]:
        ...

    async def list_all(
        self,
        page: int,
        limit: int,
        seller_id: str | None = None,
        status: ReturnStatus | None = None,
        order_id: str | None = None,
    ) -> tuple[list[ReturnRequest], int]:
        ...
