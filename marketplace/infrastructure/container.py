"""Process-wide wiring of stores and services.

Routers resolve services through ``get_container()``; tests call
``reset_container()`` to start from empty stores.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from marketplace.application.cart_merge import CartMergeService
from marketplace.application.cart_service import CartService
from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.application.order_placement import OrderPlacementService
from marketplace.application.order_state_machine import OrderStateMachine
from marketplace.application.returns_service import ReturnsService
from marketplace.infrastructure.config import Settings, settings
from marketplace.infrastructure.database import create_engine, create_session_factory
from marketplace.infrastructure.event_publishers import (
    CompositeEventPublisher,
    InMemoryEventBus,
    StructlogEventPublisher,
    WebhookEventPublisher,
)
from marketplace.infrastructure.memory import (
    InMemoryCartRepository,
    InMemoryCatalog,
    InMemoryCustomerProfiles,
    InMemoryIdentityDirectory,
    InMemoryOrderRepository,
    InMemoryReturnRepository,
)
from marketplace.infrastructure.sql_catalog import SqlCatalog

logger = structlog.get_logger()


@dataclass
class Container:
    """Stores, ports and services for one process."""

    catalog: InMemoryCatalog | SqlCatalog
    carts: InMemoryCartRepository
    orders: InMemoryOrderRepository
    returns: InMemoryReturnRepository
    identity: InMemoryIdentityDirectory
    profiles: InMemoryCustomerProfiles
    event_bus: InMemoryEventBus
    ledger: InventoryLedger
    cart_service: CartService
    cart_merge: CartMergeService
    order_placement: OrderPlacementService
    order_state_machine: OrderStateMachine
    returns_service: ReturnsService
    engine: AsyncEngine | None = None


def build_container(config: Settings | None = None) -> Container:
    """Wire every service against fresh stores.

    Args:
        config: Settings to read the catalog backend and event
            webhook from, defaults to the module settings.
    """
    config = config or settings

    engine = None
    if config.catalog_backend == "sql":
        engine = create_engine(config.database_url)
        catalog = SqlCatalog(create_session_factory(engine))
    elif config.catalog_backend == "memory":
        catalog = InMemoryCatalog()
    else:
        raise ValueError(f"Unknown catalog backend: {config.catalog_backend}")

    event_bus = InMemoryEventBus(maxlen=config.event_buffer_size)
    publishers = [event_bus, StructlogEventPublisher()]
    if config.events_webhook_url:
        publishers.append(
            WebhookEventPublisher(
                config.events_webhook_url,
                secret=config.events_webhook_secret,
                timeout=config.events_webhook_timeout,
            )
        )
    events = CompositeEventPublisher(publishers)

    carts = InMemoryCartRepository()
    orders = InMemoryOrderRepository()
    returns = InMemoryReturnRepository()
    profiles = InMemoryCustomerProfiles()
    ledger = InventoryLedger(catalog)
    cart_service = CartService(carts, catalog, ledger)

    logger.info(
        "Container built",
        catalog_backend=config.catalog_backend,
        event_publishers=len(publishers),
    )
    return Container(
        catalog=catalog,
        carts=carts,
        orders=orders,
        returns=returns,
        identity=InMemoryIdentityDirectory(),
        profiles=profiles,
        event_bus=event_bus,
        ledger=ledger,
        cart_service=cart_service,
        cart_merge=CartMergeService(carts, catalog, ledger, cart_service, events),
        order_placement=OrderPlacementService(carts, orders, catalog, profiles, ledger, events),
        order_state_machine=OrderStateMachine(orders, ledger, events),
        returns_service=ReturnsService(returns, orders, ledger, events),
        engine=engine,
    )


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get the process-wide container, building it on first use."""
    global _container
    if _container is None:
        _container = build_container()
    return _container


def reset_container(config: Settings | None = None) -> Container:
    """Replace the container with a freshly wired one (for testing)."""
    global _container
    _container = build_container(config)
    return _container


async def close_container() -> None:
    """Dispose the database engine, if the container opened one."""
    if _container is not None and _container.engine is not None:
        await _container.engine.dispose()
        logger.info("Database engine disposed")
