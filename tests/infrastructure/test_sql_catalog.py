"""Tests for the SQLAlchemy catalog and stock store (SQLite via aiosqlite)."""

import pytest
import pytest_asyncio

from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.domain.exceptions import InsufficientStockError
from marketplace.infrastructure.database import Base, create_engine, create_session_factory
from marketplace.infrastructure.models import ProductModel, ProductVariantModel
from marketplace.infrastructure.sql_catalog import SqlCatalog


@pytest_asyncio.fixture
async def sql_catalog(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        session.add_all(
            [
                ProductModel(
                    id="prod-wig",
                    seller_id="seller-a",
                    name="Lace Front Wig",
                    is_published=True,
                    approval_status="approved",
                ),
                ProductModel(
                    id="prod-draft",
                    seller_id="seller-a",
                    name="Unreleased Wig",
                    is_published=False,
                ),
            ]
        )
        await session.flush()
        session.add_all(
            [
                ProductVariantModel(
                    id="wig-black",
                    product_id="prod-wig",
                    sku="WIG-BLK-18",
                    price_cents=10000,
                    stock_quantity=3,
                    attributes={"color": "black"},
                ),
                ProductVariantModel(
                    id="draft-var",
                    product_id="prod-draft",
                    sku="DRAFT-01",
                    price_cents=9000,
                    stock_quantity=5,
                ),
            ]
        )
        await session.commit()

    yield SqlCatalog(session_factory)
    await engine.dispose()


class TestSqlCatalog:
    @pytest.mark.asyncio
    async def test_get_variant_snapshot(self, sql_catalog: SqlCatalog) -> None:
        variant = await sql_catalog.get_variant("prod-wig", "wig-black")

        assert variant.seller_id == "seller-a"
        assert variant.product_name == "Lace Front Wig"
        assert variant.price.amount_cents == 10000
        assert variant.attributes == {"color": "black"}
        assert variant.purchasable

    @pytest.mark.asyncio
    async def test_variant_must_belong_to_product(self, sql_catalog) -> None:
        assert await sql_catalog.get_variant("prod-draft", "wig-black") is None

    @pytest.mark.asyncio
    async def test_unpublished_is_not_purchasable(self, sql_catalog) -> None:
        variant = await sql_catalog.get_variant("prod-draft", "draft-var")
        assert not variant.purchasable

    @pytest.mark.asyncio
    async def test_conditional_decrement(self, sql_catalog) -> None:
        assert await sql_catalog.decrement_if_available("wig-black", 2) is True
        assert await sql_catalog.decrement_if_available("wig-black", 2) is False
        assert await sql_catalog.get_stock("wig-black") == 1

    @pytest.mark.asyncio
    async def test_increment_and_unknown_variant(self, sql_catalog) -> None:
        await sql_catalog.increment("wig-black", 4)
        await sql_catalog.increment("missing", 1)

        assert await sql_catalog.get_stock("wig-black") == 7
        assert await sql_catalog.get_stock("missing") is None

    @pytest.mark.asyncio
    async def test_ledger_rolls_back_over_sql(self, sql_catalog) -> None:
        ledger = InventoryLedger(sql_catalog)

        with pytest.raises(InsufficientStockError):
            await ledger.reserve_all([("draft-var", 2), ("wig-black", 4)])

        assert await sql_catalog.get_stock("draft-var") == 5
        assert await sql_catalog.get_stock("wig-black") == 3

    @pytest.mark.asyncio
    async def test_ping(self, sql_catalog) -> None:
        assert await sql_catalog.ping() is True
