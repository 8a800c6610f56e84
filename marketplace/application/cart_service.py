"""Cart application service.

Orchestrates cart operations for both anonymous (token) and
authenticated (user id) owners:
- Creating carts and resolving an owner's active cart
- Adding, updating and removing lines with catalog validation
- Recomputing totals on every read

Availability checks here are read-only; stock only moves when an
order is placed.
"""

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.domain.base import new_id
from marketplace.domain.entities import Cart, CartLine
from marketplace.domain.exceptions import (
    CartNotFoundError,
    ConflictError,
    ProductUnavailableError,
)
from marketplace.domain.ports import CartRepository, CatalogReadPort
from marketplace.domain.value_objects import CartOwner, VariantSnapshot

logger = structlog.get_logger()


# ============================================================================
# Read Models
# ============================================================================


@dataclass
class CartLineView:
    """Cart line with catalog details for display."""

    id: str
    product_id: str
    variant_id: str
    quantity: int
    unit_price_cents: int
    currency: str
    line_total_cents: int
    added_at: datetime
    product_name: str | None = None
    sku: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class CartView:
    """Cart with totals derived from its current lines."""

    id: str
    status: str
    user_id: str | None
    anonymous_token: str | None
    lines: list[CartLineView]
    subtotal_cents: int
    total_quantity: int
    line_count: int
    currency: str | None
    version: int
    updated_at: datetime


# ============================================================================
# Cart Service
# ============================================================================


class CartService:
    """Application service for cart operations.

    Example usage:
        service = CartService(carts, catalog, ledger)
        view = await service.add_line(CartOwner.user("u1"), "p1", "v1", 2)
    """

    def __init__(
        self,
        carts: CartRepository,
        catalog: CatalogReadPort,
        ledger: InventoryLedger,
    ) -> None:
        self.carts = carts
        self.catalog = catalog
        self.ledger = ledger

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    async def get_or_create(self, owner: CartOwner) -> Cart:
        """Resolve the owner's active cart.

        Users get a cart created on first use. Anonymous tokens must
        point at an active cart created through ``create_anonymous_cart``.

        Raises:
            CartNotFoundError: For an unknown or inactive anonymous token.
        """
        if owner.is_anonymous:
            cart = await self.carts.find_by_token(owner.anonymous_token)
            if cart is None or not cart.status.is_editable():
                raise CartNotFoundError(
                    owner.anonymous_token, reason="Invalid or inactive cart token"
                )
            return cart

        cart = await self.carts.find_active(owner)
        if cart is not None:
            return cart

        cart = Cart.create(owner)
        try:
            await self.carts.add(cart)
        except ConflictError:
            # Another request created it first
            existing = await self.carts.find_active(owner)
            if existing is None:
                raise
            return existing

        logger.info("Cart created", cart_id=cart.id, owner=str(owner))
        return cart

    async def create_anonymous_cart(
        self, product_id: str, variant_id: str, quantity: int
    ) -> CartView:
        """Start an anonymous cart with its first line.

        The token is generated here and returned on the view.
        """
        variant = await self._purchasable_variant(product_id, variant_id)
        await self.ledger.check(variant_id, quantity)

        cart = Cart.create(CartOwner.anonymous(new_id()))
        cart.add_line(variant, quantity)
        await self.carts.add(cart)

        logger.info(
            "Anonymous cart created",
            cart_id=cart.id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
        )
        return await self._to_view(cart)

    # -------------------------------------------------------------------------
    # Line Operations
    # -------------------------------------------------------------------------

    async def add_line(
        self, owner: CartOwner, product_id: str, variant_id: str, quantity: int
    ) -> CartView:
        """Add units of a variant, incrementing an existing line.

        Raises:
            ProductUnavailableError: If the product or variant cannot be sold.
            InsufficientStockError: If stock cannot cover the resulting quantity.
        """
        cart = await self.get_or_create(owner)
        variant = await self._purchasable_variant(product_id, variant_id)

        existing = cart.find_line_by_variant(variant_id)
        resulting = quantity + (existing.quantity if existing else 0)
        await self.ledger.check(variant_id, resulting)

        expected = cart.version
        line = cart.add_line(variant, quantity)
        await self.carts.save(cart, expected)

        logger.info(
            "Cart line added",
            cart_id=cart.id,
            line_id=line.id,
            variant_id=variant_id,
            quantity=line.quantity,
        )
        return await self._to_view(cart)

    async def set_line_quantity(self, owner: CartOwner, line_id: str, quantity: int) -> CartView:
        """Set a line to exactly ``quantity`` units.

        Raises:
            InvalidQuantityError: If quantity is below 1.
            CartItemNotFoundError: If the line is not in the cart.
            InsufficientStockError: If stock cannot cover the quantity.
        """
        cart = await self.get_or_create(owner)
        expected = cart.version
        line = cart.set_quantity(line_id, quantity)
        await self.ledger.check(line.variant_id, quantity)
        await self.carts.save(cart, expected)

        logger.info("Cart line updated", cart_id=cart.id, line_id=line_id, quantity=quantity)
        return await self._to_view(cart)

    async def remove_line(self, owner: CartOwner, line_id: str) -> CartView:
        cart = await self.get_or_create(owner)
        expected = cart.version
        cart.remove_line(line_id)
        await self.carts.save(cart, expected)

        logger.info("Cart line removed", cart_id=cart.id, line_id=line_id)
        return await self._to_view(cart)

    async def clear(self, owner: CartOwner) -> CartView:
        cart = await self.get_or_create(owner)
        expected = cart.version
        cart.clear()
        await self.carts.save(cart, expected)

        logger.info("Cart cleared", cart_id=cart.id)
        return await self._to_view(cart)

    async def view(self, owner: CartOwner) -> CartView:
        cart = await self.get_or_create(owner)
        return await self._to_view(cart)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _purchasable_variant(self, product_id: str, variant_id: str) -> VariantSnapshot:
        variant = await self.catalog.get_variant(product_id, variant_id)
        if variant is None or not variant.purchasable:
            raise ProductUnavailableError(
                "Product or variant not found or not available",
                details={"product_id": product_id, "variant_id": variant_id},
            )
        return variant

    async def _line_view(self, line: CartLine) -> CartLineView:
        view = CartLineView(
            id=line.id,
            product_id=line.product_id,
            variant_id=line.variant_id,
            quantity=line.quantity,
            unit_price_cents=line.unit_price.amount_cents,
            currency=line.currency,
            line_total_cents=line.line_total.amount_cents,
            added_at=line.added_at,
        )
        variant = await self.catalog.get_variant(line.product_id, line.variant_id)
        if variant is not None:
            view.product_name = variant.product_name
            view.sku = variant.sku
            view.attributes = dict(variant.attributes)
        return view

    async def _to_view(self, cart: Cart) -> CartView:
        return CartView(
            id=cart.id,
            status=cart.status.value,
            user_id=cart.owner.user_id,
            anonymous_token=cart.owner.anonymous_token,
            lines=[await self._line_view(line) for line in cart.lines],
            subtotal_cents=cart.subtotal_cents,
            total_quantity=cart.total_quantity,
            line_count=len(cart.lines),
            currency=cart.currency,
            version=cart.version,
            updated_at=cart.updated_at,
        )
