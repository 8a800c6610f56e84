"""Order placement orchestrator.

Turns the buyer's active cart into an order:
1. Resolve the cart, addresses and payment method (owner-scoped)
2. Compute totals in integer cents
3. Snapshot seller, name and attributes from the catalog
4. Reserve every line's stock at once
5. Complete the cart against its version, serializing placements per cart
6. Persist the order and publish ``OrderPlaced``

Anything failing after step 4 runs the recorded compensations in
reverse, so a failed placement leaves stock and cart as they were.
"""

import copy
from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable
from uuid import uuid4

import structlog

from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.domain.base import new_id
from marketplace.domain.entities import Cart, Order, OrderLine, StatusHistoryEntry
from marketplace.domain.events import OrderPlaced
from marketplace.domain.exceptions import (
    BadRequestError,
    CartEmptyError,
    CartNotFoundError,
    NotFoundError,
    ProductUnavailableError,
)
from marketplace.domain.ports import (
    CartRepository,
    CatalogReadPort,
    CustomerProfilePort,
    OrderEventsPort,
    OrderRepository,
)
from marketplace.domain.state_machines import OrderStatus, PaymentStatus
from marketplace.domain.value_objects import (
    Address,
    CartOwner,
    Money,
    PaymentMethodSummary,
    Role,
    VariantSnapshot,
)
from marketplace.infrastructure.config import settings

logger = structlog.get_logger()

Compensation = Callable[[], Awaitable[None]]


@dataclass
class PlaceOrderCommand:
    """Buyer input for placing an order."""

    buyer_id: str
    shipping_address_id: str
    billing_address_id: str
    payment_method_id: str
    shipping_method: str = "standard"
    cart_id: str | None = None
    notes_by_buyer: str | None = None


@dataclass
class OrderTotals:
    """Totals computed at placement, all in cents of one currency."""

    subtotal: Money
    tax: Money
    shipping: Money

    @property
    def total(self) -> Money:
        return self.subtotal + self.tax + self.shipping


def compute_totals(
    cart: Cart,
    tax_rate: Decimal | None = None,
    shipping_cents: int | None = None,
) -> OrderTotals:
    """Subtotal from the line snapshots, flat-rate tax and shipping.

    Raises:
        CurrencyMismatchError: If the cart mixes currencies.
    """
    subtotal = cart.subtotal()
    rate = settings.tax_rate if tax_rate is None else tax_rate
    flat = settings.flat_shipping_cents if shipping_cents is None else shipping_cents
    return OrderTotals(
        subtotal=subtotal,
        tax=subtotal.percentage(rate),
        shipping=Money(amount_cents=flat, currency=subtotal.currency),
    )


class OrderPlacementService:
    """Places orders from carts."""

    def __init__(
        self,
        carts: CartRepository,
        orders: OrderRepository,
        catalog: CatalogReadPort,
        profiles: CustomerProfilePort,
        ledger: InventoryLedger,
        events: OrderEventsPort,
    ) -> None:
        self.carts = carts
        self.orders = orders
        self.catalog = catalog
        self.profiles = profiles
        self.ledger = ledger
        self.events = events

    async def place(self, command: PlaceOrderCommand) -> Order:
        """Place an order from the buyer's cart.

        Raises:
            CartNotFoundError: Explicit cart id not active or not the buyer's.
            BadRequestError: No active cart, or mixed currencies.
            CartEmptyError: Cart has no lines.
            NotFoundError: Address or payment method not found.
            ProductUnavailableError: A line's product is gone from the catalog.
            InsufficientStockError: Stock cannot cover every line.
            ConflictError: The cart was placed or changed concurrently.
        """
        cart = await self._resolve_cart(command)
        if cart.is_empty:
            raise CartEmptyError(cart.id)

        shipping_address, billing_address, payment_method = await self._resolve_profile(command)
        totals = compute_totals(cart)
        snapshots = await self._snapshot_lines(cart)

        reservation = await self.ledger.reserve_all(
            [(line.variant_id, line.quantity) for line in cart.lines]
        )
        compensations: list[Compensation] = [reservation.release]

        try:
            await self._complete_cart(cart, compensations)
            order = self._build_order(
                command,
                cart,
                totals,
                snapshots,
                shipping_address,
                billing_address,
                payment_method,
            )
            await self.orders.add(order)
        except Exception:
            logger.warning(
                "Order placement failed, compensating",
                cart_id=cart.id,
                buyer_id=command.buyer_id,
                compensations=len(compensations),
            )
            for compensate in reversed(compensations):
                await compensate()
            raise

        await self.events.publish(
            [
                OrderPlaced(
                    aggregate_id=order.id,
                    aggregate_type="Order",
                    order_id=order.id,
                    buyer_id=order.buyer_id,
                    cart_id=cart.id,
                    seller_ids=tuple(order.seller_ids),
                    total_cents=order.total_cents,
                    currency=order.currency,
                    line_count=len(order.lines),
                )
            ]
        )

        logger.info(
            "Order placed",
            order_id=order.id,
            buyer_id=order.buyer_id,
            cart_id=cart.id,
            total_cents=order.total_cents,
            currency=order.currency,
            lines=len(order.lines),
            units=reservation.total_units,
        )
        return order

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _resolve_cart(self, command: PlaceOrderCommand) -> Cart:
        owner = CartOwner.user(command.buyer_id)
        if command.cart_id:
            cart = await self.carts.get(command.cart_id)
            if cart is None or cart.owner != owner or not cart.status.is_editable():
                raise CartNotFoundError(
                    command.cart_id,
                    reason="Specified cart not found or does not belong to user",
                )
            return cart

        cart = await self.carts.find_active(owner)
        if cart is None:
            raise BadRequestError(
                "No active cart found for user.",
                details={"buyer_id": command.buyer_id},
            )
        return cart

    async def _resolve_profile(
        self, command: PlaceOrderCommand
    ) -> tuple[Address, Address, PaymentMethodSummary]:
        shipping = await self.profiles.get_address(command.buyer_id, command.shipping_address_id)
        if shipping is None:
            raise NotFoundError(
                "Shipping address not found.",
                details={"address_id": command.shipping_address_id},
            )
        billing = await self.profiles.get_address(command.buyer_id, command.billing_address_id)
        if billing is None:
            raise NotFoundError(
                "Billing address not found.",
                details={"address_id": command.billing_address_id},
            )
        payment = await self.profiles.get_payment_method(
            command.buyer_id, command.payment_method_id
        )
        if payment is None:
            raise NotFoundError(
                "Payment method not found.",
                details={"payment_method_id": command.payment_method_id},
            )
        return shipping, billing, payment

    async def _snapshot_lines(self, cart: Cart) -> dict[str, VariantSnapshot]:
        snapshots: dict[str, VariantSnapshot] = {}
        for line in cart.lines:
            variant = await self.catalog.get_variant(line.product_id, line.variant_id)
            if variant is None:
                raise ProductUnavailableError(
                    "Product in cart is no longer available",
                    details={"product_id": line.product_id, "variant_id": line.variant_id},
                )
            snapshots[line.id] = variant
        return snapshots

    async def _complete_cart(self, cart: Cart, compensations: list[Compensation]) -> None:
        before = copy.deepcopy(cart)
        expected = cart.version
        cart.mark_completed()
        await self.carts.save(cart, expected)

        async def reopen() -> None:
            # The buyer may have started a new cart while placement ran
            current = await self.carts.find_active(cart.owner)
            if current is not None:
                logger.warning(
                    "Cart not reopened, owner already has an active cart",
                    cart_id=cart.id,
                    active_cart_id=current.id,
                )
                return
            before.version = cart.version + 1
            await self.carts.save(before, cart.version)

        compensations.append(reopen)

    def _build_order(
        self,
        command: PlaceOrderCommand,
        cart: Cart,
        totals: OrderTotals,
        snapshots: dict[str, VariantSnapshot],
        shipping_address: Address,
        billing_address: Address,
        payment_method: PaymentMethodSummary,
    ) -> Order:
        order_id = new_id()
        # Payment capture is simulated
        transaction_id = f"sim_txn_{uuid4()}"
        logger.info("Simulated payment captured", transaction_id=transaction_id)

        lines = []
        for cart_line in cart.lines:
            variant = snapshots[cart_line.id]
            lines.append(
                OrderLine(
                    id=new_id(),
                    order_id=order_id,
                    product_id=cart_line.product_id,
                    variant_id=cart_line.variant_id,
                    seller_id=variant.seller_id,
                    product_name=variant.product_name,
                    sku=variant.sku,
                    attributes=dict(variant.attributes),
                    quantity=cart_line.quantity,
                    unit_price_cents=cart_line.unit_price.amount_cents,
                    line_total_cents=cart_line.line_total.amount_cents,
                    currency=cart_line.currency,
                )
            )

        total = totals.total
        return Order(
            id=order_id,
            buyer_id=command.buyer_id,
            cart_id=cart.id,
            status=OrderStatus.PROCESSING,
            payment_status=PaymentStatus.PAID,
            lines=lines,
            subtotal_cents=totals.subtotal.amount_cents,
            tax_cents=totals.tax.amount_cents,
            shipping_cents=totals.shipping.amount_cents,
            total_cents=total.amount_cents,
            currency=total.currency,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            shipping_method=command.shipping_method,
            notes_by_buyer=command.notes_by_buyer,
            payment_transaction_id=transaction_id,
            status_history=[
                StatusHistoryEntry(
                    from_status=None,
                    to_status=OrderStatus.PROCESSING.value,
                    actor_role=Role.BUYER.value,
                    actor_id=command.buyer_id,
                    reason="Order placed",
                )
            ],
        )
