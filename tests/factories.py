"""Seed data and command builders shared by the test suites."""

from marketplace.application.order_placement import PlaceOrderCommand
from marketplace.domain.value_objects import Address, PaymentMethodSummary
from marketplace.infrastructure.memory import InMemoryCatalog, InMemoryCustomerProfiles

BUYER_ID = "buyer-1"
SELLER_A = "seller-a"
SELLER_B = "seller-b"
ADMIN_ID = "admin-1"


def seed_catalog(catalog: InMemoryCatalog) -> InMemoryCatalog:
    """Two sellers, three sellable variants and one unpublished product.

    - wig-black: 100.00 USD, 10 in stock (seller-a)
    - wig-blonde: 120.00 USD, 3 in stock (seller-a)
    - comb: 15.00 USD, 5 in stock (seller-b)
    - draft-var: unpublished product (seller-a)
    """
    catalog.add_product("prod-wig", SELLER_A, "Lace Front Wig")
    catalog.add_variant(
        "wig-black", "prod-wig", "WIG-BLK-18", 10000, 10,
        attributes={"color": "black", "length": "18in"},
    )
    catalog.add_variant(
        "wig-blonde", "prod-wig", "WIG-BLD-18", 12000, 3, attributes={"color": "blonde"}
    )
    catalog.add_product("prod-comb", SELLER_B, "Wide Tooth Comb")
    catalog.add_variant("comb", "prod-comb", "COMB-01", 1500, 5)
    catalog.add_product("prod-draft", SELLER_A, "Unreleased Wig", is_published=False)
    catalog.add_variant("draft-var", "prod-draft", "DRAFT-01", 9000, 5)
    return catalog


def seed_profiles(profiles: InMemoryCustomerProfiles, user_id: str = BUYER_ID) -> None:
    profiles.add_address(
        user_id,
        "addr-home",
        Address(
            line1="12 Bole Road",
            city="Addis Ababa",
            postal_code="1000",
            country="et",
            full_name="Test Buyer",
        ),
    )
    profiles.add_payment_method(
        user_id,
        "pm-card",
        PaymentMethodSummary(type="card", card_brand="visa", last_four_digits="4242"),
    )


def place_command(**overrides) -> PlaceOrderCommand:
    values = {
        "buyer_id": BUYER_ID,
        "shipping_address_id": "addr-home",
        "billing_address_id": "addr-home",
        "payment_method_id": "pm-card",
    }
    values.update(overrides)
    return PlaceOrderCommand(**values)
