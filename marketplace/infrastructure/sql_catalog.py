"""SQLAlchemy-backed catalog read port and stock store.

Every call opens its own short session so the conditional decrement
commits on its own, independent of any caller transaction.
"""

import structlog
from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from marketplace.domain.value_objects import Money, VariantSnapshot
from marketplace.infrastructure.models import ProductModel, ProductVariantModel

logger = structlog.get_logger()


class SqlCatalog:
    """Catalog and stock over the ``products`` and ``product_variants`` tables.

    Example usage:
        engine = create_engine()
        catalog = SqlCatalog(create_session_factory(engine))
        applied = await catalog.decrement_if_available(variant_id, 2)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_variant(self, product_id: str, variant_id: str) -> VariantSnapshot | None:
        async with self.session_factory() as session:
            query = (
                select(ProductVariantModel)
                .where(
                    ProductVariantModel.id == variant_id,
                    ProductVariantModel.product_id == product_id,
                )
                .options(selectinload(ProductVariantModel.product))
            )
            result = await session.execute(query)
            variant = result.scalar_one_or_none()
            if variant is None:
                return None

            product: ProductModel = variant.product
            return VariantSnapshot(
                product_id=product.id,
                variant_id=variant.id,
                seller_id=product.seller_id,
                product_name=product.name,
                sku=variant.sku,
                price=Money(amount_cents=variant.price_cents, currency=product.currency),
                stock_quantity=variant.stock_quantity,
                attributes=dict(variant.attributes or {}),
                purchasable=(
                    product.is_published
                    and product.approval_status == "approved"
                    and variant.is_active
                ),
            )

    async def decrement_if_available(self, variant_id: str, quantity: int) -> bool:
        """Single conditional UPDATE; the row count says whether it applied."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(ProductVariantModel)
                .where(
                    ProductVariantModel.id == variant_id,
                    ProductVariantModel.stock_quantity >= quantity,
                )
                .values(stock_quantity=ProductVariantModel.stock_quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def increment(self, variant_id: str, quantity: int) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                update(ProductVariantModel)
                .where(ProductVariantModel.id == variant_id)
                .values(stock_quantity=ProductVariantModel.stock_quantity + quantity)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 0:
                logger.warning(
                    "Stock release for unknown variant ignored",
                    variant_id=variant_id,
                    quantity=quantity,
                )

    async def get_stock(self, variant_id: str) -> int | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProductVariantModel.stock_quantity).where(
                    ProductVariantModel.id == variant_id
                )
            )
            return result.scalar_one_or_none()

    async def ping(self) -> bool:
        """Round trip to the database for readiness checks."""
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True
