"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Self

from marketplace.domain.base import ValueObject
from marketplace.domain.exceptions import CurrencyMismatchError, NegativeMoneyError


# ============================================================================
# Money Value Object
# ============================================================================


@dataclass(frozen=True)
class Money(ValueObject):
    """Represents monetary value with currency.

    Money is stored in the smallest currency unit (cents for USD/EUR)
    to avoid floating-point precision issues.

    Attributes:
        amount_cents: Amount in smallest currency unit (e.g., cents).
        currency: ISO 4217 currency code (e.g., 'USD', 'EUR').
    """

    amount_cents: int
    currency: str = "USD"

    def __post_init__(self) -> None:
        """Validate money constraints."""
        if self.amount_cents < 0:
            raise NegativeMoneyError(self.amount_cents)
        # Normalize currency to uppercase
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = "USD") -> Self:
        """Create zero amount money.

        Args:
            currency: Currency code.

        Returns:
            Money with zero amount.
        """
        return cls(amount_cents=0, currency=currency)

    @classmethod
    def from_decimal(cls, amount: Decimal, currency: str = "USD") -> Self:
        """Create money from decimal amount.

        Args:
            amount: Decimal amount in major units (e.g., dollars).
            currency: Currency code.

        Returns:
            Money instance.
        """
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(amount_cents=cents, currency=currency)

    def to_decimal(self) -> Decimal:
        """Convert to decimal amount in major units.

        Returns:
            Decimal amount (e.g., dollars from cents).
        """
        return Decimal(self.amount_cents) / 100

    def percentage(self, rate: Decimal) -> "Money":
        """Apply a rate with a single half-up rounding to whole cents.

        Args:
            rate: Fractional rate (0.07 for 7%).

        Returns:
            New Money with the rounded share.
        """
        cents = (Decimal(self.amount_cents) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return Money(amount_cents=int(cents), currency=self.currency)

    def __add__(self, other: "Money") -> "Money":
        """Add two money amounts.

        Raises:
            CurrencyMismatchError: If currencies don't match.
        """
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(
            amount_cents=self.amount_cents + other.amount_cents,
            currency=self.currency,
        )

    def __sub__(self, other: "Money") -> "Money":
        """Subtract money amounts.

        Raises:
            CurrencyMismatchError: If currencies don't match.
            NegativeMoneyError: If result would be negative.
        """
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(
            amount_cents=self.amount_cents - other.amount_cents,
            currency=self.currency,
        )

    def __mul__(self, quantity: int) -> "Money":
        """Multiply money by quantity."""
        return Money(
            amount_cents=self.amount_cents * quantity,
            currency=self.currency,
        )

    def __rmul__(self, quantity: int) -> "Money":
        """Right multiply money by quantity."""
        return self.__mul__(quantity)

    def __str__(self) -> str:
        """Return formatted string representation.

        Returns:
            Formatted money string (e.g., '$12.99 USD').
        """
        symbol = {"USD": "$", "EUR": "€", "GBP": "£"}.get(self.currency, "")
        return f"{symbol}{self.to_decimal():.2f} {self.currency}"

    def is_zero(self) -> bool:
        """Check if amount is zero."""
        return self.amount_cents == 0


# ============================================================================
# Identity
# ============================================================================


class Role(str, Enum):
    """Marketplace actor roles."""

    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal(ValueObject):
    """Authenticated caller resolved through the identity port.

    Attributes:
        user_id: Account identifier.
        role: Role the account acts under.
    """

    user_id: str
    role: Role

    def __post_init__(self) -> None:
        if not self.user_id or not self.user_id.strip():
            raise ValueError("Principal user_id cannot be empty")


@dataclass(frozen=True)
class CartOwner(ValueObject):
    """Who a cart belongs to: an account or an anonymous browser token.

    Exactly one of ``user_id`` and ``anonymous_token`` is set.
    """

    user_id: str | None = None
    anonymous_token: str | None = None

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.anonymous_token is None):
            raise ValueError("Cart owner needs exactly one of user_id or anonymous_token")

    @classmethod
    def user(cls, user_id: str) -> Self:
        return cls(user_id=user_id)

    @classmethod
    def anonymous(cls, token: str) -> Self:
        return cls(anonymous_token=token)

    @property
    def is_anonymous(self) -> bool:
        return self.anonymous_token is not None

    def __str__(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        return f"anon:{self.anonymous_token}"


# ============================================================================
# Snapshots
# ============================================================================


@dataclass(frozen=True)
class Address(ValueObject):
    """Shipping or billing address copied onto an order.

    Attributes:
        line1: Primary address line.
        line2: Secondary address line (optional).
        city: City name.
        state: State/province/region.
        postal_code: Postal/ZIP code.
        country: ISO 3166-1 alpha-2 country code.
        full_name: Recipient name.
        phone: Contact phone (optional).
    """

    line1: str
    city: str
    postal_code: str
    country: str = "US"
    state: str | None = None
    line2: str | None = None
    full_name: str | None = None
    phone: str | None = None

    def __post_init__(self) -> None:
        """Validate address fields."""
        if not self.line1 or not self.line1.strip():
            raise ValueError("Address line1 cannot be empty")
        if not self.city or not self.city.strip():
            raise ValueError("City cannot be empty")
        if not self.postal_code or not self.postal_code.strip():
            raise ValueError("Postal code cannot be empty")
        # Normalize country to uppercase
        object.__setattr__(self, "country", self.country.upper())

    def to_dict(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }


@dataclass(frozen=True)
class PaymentMethodSummary(ValueObject):
    """Non-sensitive payment method details kept on an order.

    Attributes:
        type: Method kind (card, paypal, ...).
        card_brand: Card network, when a card.
        last_four_digits: Last digits of the card number, when a card.
        payment_gateway: Gateway the token belongs to.
    """

    type: str
    card_brand: str | None = None
    last_four_digits: str | None = None
    payment_gateway: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "card_brand": self.card_brand,
            "last_four_digits": self.last_four_digits,
            "payment_gateway": self.payment_gateway,
        }


@dataclass(frozen=True)
class VariantSnapshot(ValueObject):
    """Catalog view of a purchasable variant as read through the catalog port.

    Attributes:
        product_id: Owning product.
        variant_id: Variant identifier.
        seller_id: Seller that owns the product.
        product_name: Product display name.
        sku: Variant SKU.
        price: Current variant price.
        stock_quantity: Units currently in stock.
        attributes: Open attribute map (size, color, ...).
        purchasable: Product published and approved, variant active.
    """

    product_id: str
    variant_id: str
    seller_id: str
    product_name: str
    sku: str
    price: Money
    stock_quantity: int
    attributes: dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    purchasable: bool = True
