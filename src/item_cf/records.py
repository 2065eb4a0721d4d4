"""Record types exchanged between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Hashable


@dataclass(frozen=True)
class RatingRecord:
    user: Hashable
    item: Hashable
    rating: float


@dataclass(frozen=True)
class RaterCount:
    item: Hashable
    count: int


@dataclass(frozen=True)
class ItemPair:
    """Unordered item pair stored with item_a < item_b."""

    item_a: Any
    item_b: Any

    def __post_init__(self) -> None:
        if not self.item_a < self.item_b:
            raise ValueError(f"ItemPair requires item_a < item_b, got ({self.item_a!r}, {self.item_b!r})")

    @classmethod
    def of(cls, x: Any, y: Any) -> "ItemPair":
        if x == y:
            raise ValueError(f"Cannot pair an item with itself: {x!r}")
        return cls(x, y) if x < y else cls(y, x)


@dataclass(frozen=True)
class PairAggregate:
    """Running sufficient statistics for one item pair.

    Every field is a plain sum over (rating_a, rating_b) observations, so two
    aggregates built from disjoint sets of users merge by field-wise addition.
    """

    item_a: Any
    item_b: Any
    size: int = 0
    dot_product: float = 0.0
    sum_a: float = 0.0
    sum_b: float = 0.0
    sum_sq_a: float = 0.0
    sum_sq_b: float = 0.0

    @property
    def pair(self) -> ItemPair:
        return ItemPair(self.item_a, self.item_b)

    def observe(self, rating_a: float, rating_b: float) -> "PairAggregate":
        ra = float(rating_a)
        rb = float(rating_b)
        return replace(
            self,
            size=self.size + 1,
            dot_product=self.dot_product + ra * rb,
            sum_a=self.sum_a + ra,
            sum_b=self.sum_b + rb,
            sum_sq_a=self.sum_sq_a + ra * ra,
            sum_sq_b=self.sum_sq_b + rb * rb,
        )

    def merge(self, other: "PairAggregate") -> "PairAggregate":
        if (self.item_a, self.item_b) != (other.item_a, other.item_b):
            raise ValueError(
                f"Cannot merge aggregates of different pairs: "
                f"({self.item_a!r}, {self.item_b!r}) vs ({other.item_a!r}, {other.item_b!r})"
            )
        return replace(
            self,
            size=self.size + other.size,
            dot_product=self.dot_product + other.dot_product,
            sum_a=self.sum_a + other.sum_a,
            sum_b=self.sum_b + other.sum_b,
            sum_sq_a=self.sum_sq_a + other.sum_sq_a,
            sum_sq_b=self.sum_sq_b + other.sum_sq_b,
        )


@dataclass(frozen=True)
class SimilarityResult:
    item_a: Any
    item_b: Any
    correlation: float
    regularized_correlation: float
    cosine_similarity: float
    jaccard_similarity: float
    size: int
    raters_a: int
    raters_b: int
