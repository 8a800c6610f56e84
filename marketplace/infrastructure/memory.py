"""In-memory stores behind the engine's ports.

These are the default runtime stores. Every repository hands out deep
copies and checks the aggregate version on save, so two requests
editing the same cart or order behave as they would against a real
document store: the slower writer gets a conflict instead of silently
overwriting. Mutating critical sections hold a ``threading.Lock`` and
contain no ``await``, which makes them atomic for both asyncio tasks
and threads.
"""

import copy
import threading
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

from marketplace.domain.base import AggregateRoot
from marketplace.domain.entities import Cart, Order, ReturnRequest
from marketplace.domain.exceptions import ConcurrentModificationError, ConflictError
from marketplace.domain.state_machines import CartStatus, OrderStatus, ReturnStatus
from marketplace.domain.value_objects import (
    Address,
    CartOwner,
    Money,
    PaymentMethodSummary,
    Principal,
    Role,
    VariantSnapshot,
)

logger = structlog.get_logger()

AggregateT = TypeVar("AggregateT", bound=AggregateRoot)


def _stored(aggregate: AggregateT) -> AggregateT:
    """Copy for storage. Pending events stay with the caller, which publishes them."""
    stored = copy.deepcopy(aggregate)
    stored.collect_events()
    return stored


def _paginate(items: list, page: int, limit: int) -> list:
    start = (page - 1) * limit
    return items[start : start + limit]


# ============================================================================
# Catalog and Stock
# ============================================================================


@dataclass
class ProductRecord:
    """Catalog product as owned by the catalog service."""

    id: str
    seller_id: str
    name: str
    currency: str = "USD"
    is_published: bool = True
    approval_status: str = "approved"


@dataclass
class VariantRecord:
    """Catalog variant with its stock counter."""

    id: str
    product_id: str
    sku: str
    price_cents: int
    stock_quantity: int
    is_active: bool = True
    attributes: dict[str, str] = field(default_factory=dict)


class InMemoryCatalog:
    """Catalog read port and stock store over in-process records.

    ``decrement_if_available`` performs the stock check and the write
    under one lock, the in-process equivalent of a conditional update.
    """

    def __init__(self) -> None:
        self._products: dict[str, ProductRecord] = {}
        self._variants: dict[str, VariantRecord] = {}
        self._lock = threading.Lock()

    # -- seeding (catalog CRUD lives outside the engine) --------------------

    def add_product(
        self,
        product_id: str,
        seller_id: str,
        name: str,
        currency: str = "USD",
        is_published: bool = True,
        approval_status: str = "approved",
    ) -> ProductRecord:
        product = ProductRecord(
            id=product_id,
            seller_id=seller_id,
            name=name,
            currency=currency,
            is_published=is_published,
            approval_status=approval_status,
        )
        self._products[product_id] = product
        return product

    def add_variant(
        self,
        variant_id: str,
        product_id: str,
        sku: str,
        price_cents: int,
        stock_quantity: int,
        is_active: bool = True,
        attributes: dict[str, str] | None = None,
    ) -> VariantRecord:
        if stock_quantity < 0:
            raise ValueError("Stock cannot be negative")
        variant = VariantRecord(
            id=variant_id,
            product_id=product_id,
            sku=sku,
            price_cents=price_cents,
            stock_quantity=stock_quantity,
            is_active=is_active,
            attributes=dict(attributes or {}),
        )
        self._variants[variant_id] = variant
        return variant

    def set_price(self, variant_id: str, price_cents: int) -> None:
        self._variants[variant_id].price_cents = price_cents

    def set_published(self, product_id: str, is_published: bool) -> None:
        self._products[product_id].is_published = is_published

    # -- CatalogReadPort ----------------------------------------------------

    async def get_variant(self, product_id: str, variant_id: str) -> VariantSnapshot | None:
        product = self._products.get(product_id)
        variant = self._variants.get(variant_id)
        if product is None or variant is None or variant.product_id != product_id:
            return None
        return VariantSnapshot(
            product_id=product.id,
            variant_id=variant.id,
            seller_id=product.seller_id,
            product_name=product.name,
            sku=variant.sku,
            price=Money(amount_cents=variant.price_cents, currency=product.currency),
            stock_quantity=variant.stock_quantity,
            attributes=dict(variant.attributes),
            purchasable=(
                product.is_published
                and product.approval_status == "approved"
                and variant.is_active
            ),
        )

    # -- StockStore ---------------------------------------------------------

    async def decrement_if_available(self, variant_id: str, quantity: int) -> bool:
        with self._lock:
            variant = self._variants.get(variant_id)
            if variant is None or variant.stock_quantity < quantity:
                return False
            variant.stock_quantity -= quantity
            return True

    async def increment(self, variant_id: str, quantity: int) -> None:
        with self._lock:
            variant = self._variants.get(variant_id)
            if variant is None:
                logger.warning(
                    "Stock release for unknown variant ignored",
                    variant_id=variant_id,
                    quantity=quantity,
                )
                return
            variant.stock_quantity += quantity

    async def get_stock(self, variant_id: str) -> int | None:
        variant = self._variants.get(variant_id)
        return variant.stock_quantity if variant else None

    async def ping(self) -> bool:
        return True


# ============================================================================
# Cart Repository
# ============================================================================


class InMemoryCartRepository:
    """Cart store enforcing one active cart per owner."""

    def __init__(self) -> None:
        self._carts: dict[str, Cart] = {}
        self._lock = threading.Lock()

    def _active_id_for(self, owner: CartOwner) -> str | None:
        for cart in self._carts.values():
            if cart.owner == owner and cart.status == CartStatus.ACTIVE:
                return cart.id
        return None

    async def add(self, cart: Cart) -> None:
        with self._lock:
            if cart.status == CartStatus.ACTIVE and self._active_id_for(cart.owner):
                raise ConflictError(
                    f"Owner {cart.owner} already has an active cart",
                    details={"owner": str(cart.owner)},
                )
            self._carts[cart.id] = _stored(cart)

    async def get(self, cart_id: str) -> Cart | None:
        cart = self._carts.get(cart_id)
        return copy.deepcopy(cart) if cart else None

    async def find_active(self, owner: CartOwner) -> Cart | None:
        cart_id = self._active_id_for(owner)
        return await self.get(cart_id) if cart_id else None

    async def find_by_token(self, token: str) -> Cart | None:
        for cart in self._carts.values():
            if cart.owner.anonymous_token == token:
                return copy.deepcopy(cart)
        return None

    async def save(self, cart: Cart, expected_version: int) -> None:
        with self._lock:
            stored = self._carts.get(cart.id)
            actual = stored.version if stored else 0
            if actual != expected_version:
                raise ConcurrentModificationError("Cart", cart.id, expected_version, actual)
            if cart.status == CartStatus.ACTIVE:
                active_id = self._active_id_for(cart.owner)
                if active_id is not None and active_id != cart.id:
                    raise ConflictError(
                        f"Owner {cart.owner} already has an active cart",
                        details={"owner": str(cart.owner), "active_cart_id": active_id},
                    )
            self._carts[cart.id] = _stored(cart)


# ============================================================================
# Order Repository
# ============================================================================


class InMemoryOrderRepository:
    """Order store. Orders are financial records and are never removed."""

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = threading.Lock()

    async def add(self, order: Order) -> None:
        with self._lock:
            if order.id in self._orders:
                raise ConflictError(f"Order {order.id} already exists")
            self._orders[order.id] = _stored(order)

    async def get(self, order_id: str) -> Order | None:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def save(self, order: Order, expected_version: int) -> None:
        with self._lock:
            stored = self._orders.get(order.id)
            actual = stored.version if stored else 0
            if actual != expected_version:
                raise ConcurrentModificationError("Order", order.id, expected_version, actual)
            self._orders[order.id] = _stored(order)

    async def list_all(
        self,
        page: int,
        limit: int,
        buyer_id: str | None = None,
        seller_id: str | None = None,
        status: OrderStatus | None = None,
        order_id: str | None = None,
    ) -> tuple[list[Order], int]:
        orders = list(self._orders.values())

        # A direct id lookup takes precedence over the other filters
        if order_id:
            orders = [o for o in orders if o.id == order_id]
        else:
            if buyer_id:
                orders = [o for o in orders if o.buyer_id == buyer_id]
            if seller_id:
                orders = [o for o in orders if o.has_seller(seller_id)]
            if status:
                orders = [o for o in orders if o.status == status]

        orders.sort(key=lambda o: o.created_at, reverse=True)
        total = len(orders)
        return [copy.deepcopy(o) for o in _paginate(orders, page, limit)], total


# ============================================================================
# Return Repository
# ============================================================================


class InMemoryReturnRepository:
    """Return request store."""

    def __init__(self) -> None:
        self._returns: dict[str, ReturnRequest] = {}
        self._lock = threading.Lock()

    async def add(self, request: ReturnRequest) -> None:
        with self._lock:
            self._returns[request.id] = _stored(request)

    async def get(self, return_id: str) -> ReturnRequest | None:
        request = self._returns.get(return_id)
        return copy.deepcopy(request) if request else None

    async def save(self, request: ReturnRequest, expected_version: int) -> None:
        with self._lock:
            stored = self._returns.get(request.id)
            actual = stored.version if stored else 0
            if actual != expected_version:
                raise ConcurrentModificationError(
                    "ReturnRequest", request.id, expected_version, actual
                )
            self._returns[request.id] = _stored(request)

    async def find_for_line(self, order_line_id: str) -> list[ReturnRequest]:
        return [
            copy.deepcopy(r)
            for r in self._returns.values()
            if r.order_line_id == order_line_id
        ]

    async def list_all(
        self,
        page: int,
        limit: int,
        seller_id: str | None = None,
        status: ReturnStatus | None = None,
        order_id: str | None = None,
    ) -> tuple[list[ReturnRequest], int]:
        requests = list(self._returns.values())
        if seller_id:
            requests = [r for r in requests if r.seller_id == seller_id]
        if status:
            requests = [r for r in requests if r.status == status]
        if order_id:
            requests = [r for r in requests if r.order_id == order_id]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        total = len(requests)
        return [copy.deepcopy(r) for r in _paginate(requests, page, limit)], total


# ============================================================================
# Identity and Customer Profiles
# ============================================================================


class InMemoryIdentityDirectory:
    """Bearer token -> principal map filled by the authentication service."""

    def __init__(self) -> None:
        self._tokens: dict[str, Principal] = {}

    def register(self, token: str, user_id: str, role: Role) -> Principal:
        principal = Principal(user_id=user_id, role=role)
        self._tokens[token] = principal
        return principal

    async def resolve(self, token: str) -> Principal | None:
        return self._tokens.get(token)


class InMemoryCustomerProfiles:
    """Saved addresses and payment methods keyed by owner."""

    def __init__(self) -> None:
        self._addresses: dict[tuple[str, str], Address] = {}
        self._payment_methods: dict[tuple[str, str], PaymentMethodSummary] = {}

    def add_address(self, user_id: str, address_id: str, address: Address) -> None:
        self._addresses[(user_id, address_id)] = address

    def add_payment_method(
        self, user_id: str, payment_method_id: str, method: PaymentMethodSummary
    ) -> None:
        self._payment_methods[(user_id, payment_method_id)] = method

    async def get_address(self, user_id: str, address_id: str) -> Address | None:
        return self._addresses.get((user_id, address_id))

    async def get_payment_method(
        self, user_id: str, payment_method_id: str
    ) -> PaymentMethodSummary | None:
        return self._payment_methods.get((user_id, payment_method_id))
