"""Cart merge engine.

Folds an anonymous cart into the account cart when the buyer logs in.
Merged quantities are capped at what is currently in stock; nothing is
reserved.
"""

import copy

import structlog

from marketplace.application.cart_service import CartService, CartView
from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.domain.entities import Cart
from marketplace.domain.events import CartMerged
from marketplace.domain.exceptions import CartNotFoundError
from marketplace.domain.ports import CartRepository, CatalogReadPort, OrderEventsPort
from marketplace.domain.value_objects import CartOwner

logger = structlog.get_logger()


class CartMergeService:
    """Merges anonymous carts into user carts."""

    def __init__(
        self,
        carts: CartRepository,
        catalog: CatalogReadPort,
        ledger: InventoryLedger,
        cart_service: CartService,
        events: OrderEventsPort,
    ) -> None:
        self.carts = carts
        self.catalog = catalog
        self.ledger = ledger
        self.cart_service = cart_service
        self.events = events

    async def merge(self, anonymous_token: str, user_id: str) -> CartView:
        """Merge the anonymous cart behind ``anonymous_token`` into the user's cart.

        Lines whose product is no longer sellable are skipped. Existing
        variants are summed and capped at available stock; new variants
        keep their original price snapshot. The anonymous cart ends up
        ``merged`` and linked to the user, so a second merge of the
        same token fails.

        Raises:
            CartNotFoundError: If the token is unknown or its cart is not active.
        """
        anonymous = await self.carts.find_by_token(anonymous_token)
        if anonymous is None or not anonymous.status.is_editable():
            raise CartNotFoundError(anonymous_token, reason="Anonymous cart not found or not active")

        user_cart = await self.cart_service.get_or_create(CartOwner.user(user_id))
        user_expected = user_cart.version
        user_before = copy.deepcopy(user_cart)

        lines_merged = 0
        units_dropped = 0

        for source in anonymous.lines:
            variant = await self.catalog.get_variant(source.product_id, source.variant_id)
            if variant is None or not variant.purchasable:
                logger.warning(
                    "Merge skipped unavailable line",
                    cart_id=anonymous.id,
                    variant_id=source.variant_id,
                    quantity=source.quantity,
                )
                units_dropped += source.quantity
                continue

            available = await self.ledger.available(source.variant_id)
            existing = user_cart.find_line_by_variant(source.variant_id)

            if existing is not None:
                wanted = existing.quantity + source.quantity
                merged_quantity = min(wanted, available)
                if merged_quantity < wanted:
                    logger.warning(
                        "Merge capped line at available stock",
                        cart_id=user_cart.id,
                        variant_id=source.variant_id,
                        requested=wanted,
                        available=available,
                    )
                    units_dropped += wanted - merged_quantity
                if merged_quantity < 1:
                    user_cart.remove_line(existing.id)
                else:
                    user_cart.set_quantity(existing.id, merged_quantity)
                    lines_merged += 1
                continue

            merged_quantity = min(source.quantity, available)
            if merged_quantity < 1:
                logger.warning(
                    "Merge skipped out-of-stock line",
                    cart_id=anonymous.id,
                    variant_id=source.variant_id,
                    quantity=source.quantity,
                )
                units_dropped += source.quantity
                continue
            if merged_quantity < source.quantity:
                logger.warning(
                    "Merge capped line at available stock",
                    cart_id=user_cart.id,
                    variant_id=source.variant_id,
                    requested=source.quantity,
                    available=available,
                )
                units_dropped += source.quantity - merged_quantity
            user_cart.copy_line(source, merged_quantity)
            lines_merged += 1

        # The anonymous cart is consumed only once the user cart holds its lines
        user_changed = user_cart.version != user_expected
        if user_changed:
            await self.carts.save(user_cart, user_expected)

        anonymous_expected = anonymous.version
        anonymous.mark_merged(user_id)
        try:
            await self.carts.save(anonymous, anonymous_expected)
        except Exception:
            if user_changed:
                await self._restore(user_before, user_cart.version)
            raise

        event = CartMerged(
            aggregate_id=user_cart.id,
            aggregate_type="Cart",
            anonymous_cart_id=anonymous.id,
            user_cart_id=user_cart.id,
            user_id=user_id,
            lines_merged=lines_merged,
            units_dropped=units_dropped,
        )
        await self.events.publish([event])

        logger.info(
            "Cart merged",
            anonymous_cart_id=anonymous.id,
            user_cart_id=user_cart.id,
            user_id=user_id,
            lines_merged=lines_merged,
            units_dropped=units_dropped,
        )
        return await self.cart_service.view(CartOwner.user(user_id))

    async def _restore(self, before: Cart, saved_version: int) -> None:
        """Put the user cart back as it was before a merge that lost its race."""
        logger.warning(
            "Cart merge failed, restoring user cart",
            cart_id=before.id,
            saved_version=saved_version,
        )
        before.version = saved_version + 1
        await self.carts.save(before, saved_version)
