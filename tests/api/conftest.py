"""Shared fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from marketplace.domain.value_objects import Role
from marketplace.infrastructure.container import Container, reset_container
from marketplace.main import app
from tests.factories import ADMIN_ID, BUYER_ID, SELLER_A, SELLER_B, seed_catalog, seed_profiles

BUYER_TOKEN = "buyer-token"
SELLER_A_TOKEN = "seller-a-token"
SELLER_B_TOKEN = "seller-b-token"
ADMIN_TOKEN = "admin-token"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def container() -> Container:
    """Fresh stores, seeded catalog and one token per role for each test."""
    container = reset_container()
    seed_catalog(container.catalog)
    seed_profiles(container.profiles)
    container.identity.register(BUYER_TOKEN, BUYER_ID, Role.BUYER)
    container.identity.register(SELLER_A_TOKEN, SELLER_A, Role.SELLER)
    container.identity.register(SELLER_B_TOKEN, SELLER_B, Role.SELLER)
    container.identity.register(ADMIN_TOKEN, ADMIN_ID, Role.ADMIN)
    return container


@pytest.fixture
def client() -> TestClient:
    """Create test client without authentication."""
    return TestClient(app)


@pytest.fixture
def buyer_headers() -> dict[str, str]:
    return bearer(BUYER_TOKEN)


@pytest.fixture
def seller_a_headers() -> dict[str, str]:
    return bearer(SELLER_A_TOKEN)


@pytest.fixture
def seller_b_headers() -> dict[str, str]:
    return bearer(SELLER_B_TOKEN)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return bearer(ADMIN_TOKEN)


@pytest.fixture
def checkout_body() -> dict[str, str]:
    return {
        "shipping_address_id": "addr-home",
        "billing_address_id": "addr-home",
        "payment_method_id": "pm-card",
    }


@pytest.fixture
def placed_order(client, buyer_headers, checkout_body) -> dict:
    """Order with 2 wig-black (seller-a) and 1 comb (seller-b)."""
    for product_id, variant_id, quantity in (
        ("prod-wig", "wig-black", 2),
        ("prod-comb", "comb", 1),
    ):
        response = client.post(
            "/me/cart/items",
            json={"product_id": product_id, "variant_id": variant_id, "quantity": quantity},
            headers=buyer_headers,
        )
        assert response.status_code == 200
    response = client.post("/me/orders", json=checkout_body, headers=buyer_headers)
    assert response.status_code == 201
    return response.json()
