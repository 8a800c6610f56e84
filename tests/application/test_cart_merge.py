"""Tests for merging anonymous carts at login."""

import pytest

from marketplace.application.cart_merge import CartMergeService
from marketplace.application.cart_service import CartService
from marketplace.domain import CartOwner, CartStatus
from marketplace.domain.exceptions import CartNotFoundError, ConcurrentModificationError

USER = CartOwner.user("buyer-1")


async def anonymous_cart(cart_service: CartService, variant_id: str, quantity: int) -> str:
    product_id = "prod-comb" if variant_id == "comb" else "prod-wig"
    view = await cart_service.create_anonymous_cart(product_id, variant_id, quantity)
    return view.anonymous_token


class TestMerge:
    @pytest.mark.asyncio
    async def test_new_lines_are_copied_with_their_snapshot(
        self, cart_service, cart_merge: CartMergeService, catalog, carts
    ) -> None:
        token = await anonymous_cart(cart_service, "wig-black", 2)
        catalog.set_price("wig-black", 15000)

        view = await cart_merge.merge(token, "buyer-1")

        assert view.user_id == "buyer-1"
        assert view.total_quantity == 2
        assert view.lines[0].unit_price_cents == 10000

        anonymous = await carts.find_by_token(token)
        assert anonymous.status == CartStatus.MERGED
        assert anonymous.merged_into_user_id == "buyer-1"

    @pytest.mark.asyncio
    async def test_existing_line_summed_and_capped_at_stock(
        self, cart_service, cart_merge
    ) -> None:
        await cart_service.add_line(USER, "prod-wig", "wig-blonde", 2)
        token = await anonymous_cart(cart_service, "wig-blonde", 2)

        view = await cart_merge.merge(token, "buyer-1")

        assert view.line_count == 1
        assert view.lines[0].quantity == 3

    @pytest.mark.asyncio
    async def test_out_of_stock_line_is_dropped(
        self, cart_service, cart_merge, ledger, event_bus
    ) -> None:
        token = await anonymous_cart(cart_service, "comb", 2)
        await ledger.reserve("comb", 5)

        view = await cart_merge.merge(token, "buyer-1")

        assert view.line_count == 0
        merged = event_bus.of_type("cart.merged")[0]
        assert merged.lines_merged == 0
        assert merged.units_dropped == 2

    @pytest.mark.asyncio
    async def test_unpublished_product_is_skipped(self, cart_service, cart_merge, catalog) -> None:
        token = await anonymous_cart(cart_service, "wig-black", 1)
        catalog.set_published("prod-wig", False)

        view = await cart_merge.merge(token, "buyer-1")
        assert view.line_count == 0

    @pytest.mark.asyncio
    async def test_second_merge_fails(self, cart_service, cart_merge) -> None:
        token = await anonymous_cart(cart_service, "comb", 1)
        await cart_merge.merge(token, "buyer-1")

        with pytest.raises(CartNotFoundError):
            await cart_merge.merge(token, "buyer-1")

    @pytest.mark.asyncio
    async def test_unknown_token(self, cart_merge) -> None:
        with pytest.raises(CartNotFoundError):
            await cart_merge.merge("missing", "buyer-1")

    @pytest.mark.asyncio
    async def test_merged_cart_no_longer_editable_by_token(self, cart_service, cart_merge) -> None:
        token = await anonymous_cart(cart_service, "comb", 1)
        await cart_merge.merge(token, "buyer-1")

        with pytest.raises(CartNotFoundError):
            await cart_service.view(CartOwner.anonymous(token))


class TestMergeRaces:
    @pytest.mark.asyncio
    async def test_concurrent_user_cart_edit_keeps_anonymous_cart(
        self, cart_service, cart_merge, catalog, carts
    ) -> None:
        view = await cart_service.add_line(USER, "prod-wig", "wig-black", 2)
        token = await anonymous_cart(cart_service, "comb", 2)
        original_get_variant = catalog.get_variant
        edited = []

        async def get_variant_during_edit(product_id, variant_id):
            # A second tab changes the user cart while the merge is running
            if not edited:
                edited.append(True)
                await cart_service.set_line_quantity(USER, view.lines[0].id, 3)
            return await original_get_variant(product_id, variant_id)

        catalog.get_variant = get_variant_during_edit

        with pytest.raises(ConcurrentModificationError):
            await cart_merge.merge(token, "buyer-1")

        anonymous = await carts.find_by_token(token)
        assert anonymous.status == CartStatus.ACTIVE
        assert anonymous.total_quantity == 2

        merged = await cart_merge.merge(token, "buyer-1")
        assert {line.variant_id: line.quantity for line in merged.lines} == {
            "wig-black": 3,
            "comb": 2,
        }

    @pytest.mark.asyncio
    async def test_lost_anonymous_save_restores_user_cart(
        self, cart_service, cart_merge, carts
    ) -> None:
        await cart_service.add_line(USER, "prod-wig", "wig-black", 2)
        token = await anonymous_cart(cart_service, "comb", 2)
        original_save = carts.save

        async def save_losing_anonymous(cart, expected_version) -> None:
            if cart.owner.anonymous_token == token:
                raise ConcurrentModificationError(
                    "Cart", cart.id, expected_version, expected_version + 1
                )
            await original_save(cart, expected_version)

        carts.save = save_losing_anonymous

        with pytest.raises(ConcurrentModificationError):
            await cart_merge.merge(token, "buyer-1")

        view = await cart_service.view(USER)
        assert [(line.variant_id, line.quantity) for line in view.lines] == [("wig-black", 2)]
