"""Pagination result shared by the order and return queries."""

import math
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of results with pagination metadata."""

    results: list[T]
    page: int
    limit: int
    total_results: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_results / self.limit) if self.limit else 0
