"""Inventory ledger.

The only writer of variant stock. Reservation is a single conditional
decrement on the stock store, never a read followed by a write, so
concurrent reservations can oversell nothing: when several callers
race for the last units, exactly the ones that fit succeed.
"""

from dataclasses import dataclass, field
from typing import Iterable

import structlog

from marketplace.domain.exceptions import InsufficientStockError, InvalidQuantityError
from marketplace.domain.ports import StockStore

logger = structlog.get_logger()


@dataclass
class Reservation:
    """Handle over a set of applied decrements.

    ``release()`` gives every reserved unit back and is idempotent, so
    it can be called from more than one compensation path.
    """

    ledger: "InventoryLedger"
    lines: list[tuple[str, int]] = field(default_factory=list)
    released: bool = False

    @property
    def total_units(self) -> int:
        return sum(quantity for _, quantity in self.lines)

    async def release(self) -> None:
        if self.released:
            return
        self.released = True
        for variant_id, quantity in reversed(self.lines):
            await self.ledger.release(variant_id, quantity)


class InventoryLedger:
    """Reserve, release and query variant stock."""

    def __init__(self, stock: StockStore) -> None:
        self.stock = stock

    async def available(self, variant_id: str) -> int:
        """Units in stock; unknown variants have none."""
        return await self.stock.get_stock(variant_id) or 0

    async def check(self, variant_id: str, quantity: int) -> None:
        """Read-only availability check used by the cart.

        Raises:
            InsufficientStockError: If fewer than ``quantity`` units are in stock.
        """
        available = await self.available(variant_id)
        if available < quantity:
            raise InsufficientStockError.single(variant_id, quantity, available)

    async def reserve(self, variant_id: str, quantity: int) -> None:
        """Take ``quantity`` units out of stock.

        Raises:
            InvalidQuantityError: If quantity is below 1.
            InsufficientStockError: If the conditional decrement did not apply.
        """
        if quantity < 1:
            raise InvalidQuantityError(quantity)

        if not await self.stock.decrement_if_available(variant_id, quantity):
            available = await self.available(variant_id)
            logger.info(
                "Reservation refused",
                variant_id=variant_id,
                requested=quantity,
                available=available,
            )
            raise InsufficientStockError.single(variant_id, quantity, available)

        logger.debug("Stock reserved", variant_id=variant_id, quantity=quantity)

    async def release(self, variant_id: str, quantity: int) -> None:
        """Give ``quantity`` units back unconditionally."""
        if quantity < 1:
            return
        await self.stock.increment(variant_id, quantity)
        logger.debug("Stock released", variant_id=variant_id, quantity=quantity)

    async def reserve_all(self, lines: Iterable[tuple[str, int]]) -> Reservation:
        """Reserve every ``(variant_id, quantity)`` pair or none of them.

        Every line is attempted so the error can list all shortfalls;
        whatever was applied is released before raising.

        Returns:
            Reservation that can undo the whole set.

        Raises:
            InsufficientStockError: With one shortfall entry per failed line.
        """
        lines = list(lines)
        for _, quantity in lines:
            if quantity < 1:
                raise InvalidQuantityError(quantity)

        reservation = Reservation(ledger=self)
        shortfalls: list[dict] = []

        for variant_id, quantity in lines:
            try:
                await self.reserve(variant_id, quantity)
            except InsufficientStockError as e:
                shortfalls.extend(e.shortfalls)
                continue
            reservation.lines.append((variant_id, quantity))

        if shortfalls:
            await reservation.release()
            logger.warning(
                "Reservation rolled back",
                shortfalls=shortfalls,
                released_lines=len(reservation.lines),
            )
            raise InsufficientStockError(shortfalls)

        return reservation
