"""Shared fixtures: a seeded catalog and services wired over in-memory stores."""

import pytest

from marketplace.application.cart_merge import CartMergeService
from marketplace.application.cart_service import CartService
from marketplace.application.inventory_ledger import InventoryLedger
from marketplace.application.order_placement import OrderPlacementService
from marketplace.application.order_state_machine import OrderStateMachine
from marketplace.application.returns_service import ReturnsService
from marketplace.infrastructure.event_publishers import InMemoryEventBus
from marketplace.infrastructure.memory import (
    InMemoryCartRepository,
    InMemoryCatalog,
    InMemoryCustomerProfiles,
    InMemoryOrderRepository,
    InMemoryReturnRepository,
)
from tests.factories import seed_catalog, seed_profiles


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return seed_catalog(InMemoryCatalog())


@pytest.fixture
def ledger(catalog: InMemoryCatalog) -> InventoryLedger:
    return InventoryLedger(catalog)


@pytest.fixture
def carts() -> InMemoryCartRepository:
    return InMemoryCartRepository()


@pytest.fixture
def orders() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def returns() -> InMemoryReturnRepository:
    return InMemoryReturnRepository()


@pytest.fixture
def profiles() -> InMemoryCustomerProfiles:
    profiles = InMemoryCustomerProfiles()
    seed_profiles(profiles)
    return profiles


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def cart_service(carts, catalog, ledger) -> CartService:
    return CartService(carts, catalog, ledger)


@pytest.fixture
def cart_merge(carts, catalog, ledger, cart_service, event_bus) -> CartMergeService:
    return CartMergeService(carts, catalog, ledger, cart_service, event_bus)


@pytest.fixture
def placement(carts, orders, catalog, profiles, ledger, event_bus) -> OrderPlacementService:
    return OrderPlacementService(carts, orders, catalog, profiles, ledger, event_bus)


@pytest.fixture
def state_machine(orders, ledger, event_bus) -> OrderStateMachine:
    return OrderStateMachine(orders, ledger, event_bus)


@pytest.fixture
def returns_service(returns, orders, ledger, event_bus) -> ReturnsService:
    return ReturnsService(returns, orders, ledger, event_bus)
