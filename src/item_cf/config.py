from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class ItemSimConfig:
    """Thresholds and prior for the item-item similarity pipeline.

    The same immutable instance is handed to every stage; nothing is read from
    global state.
    """

    min_intersection: int = 2
    min_raters: int = 1
    max_raters: Optional[int] = None
    prior_count: float = 10.0
    prior_correlation: float = 0.0
    max_items_per_user: Optional[int] = None
    num_partitions: int = 1
    seed: int = 42

    def __post_init__(self) -> None:
        if int(self.min_intersection) < 1:
            raise ValueError(f"min_intersection must be >= 1, got {self.min_intersection}")
        if int(self.min_raters) < 0:
            raise ValueError(f"min_raters must be >= 0, got {self.min_raters}")
        if self.max_raters is not None and int(self.max_raters) < int(self.min_raters):
            raise ValueError(f"max_raters ({self.max_raters}) must be >= min_raters ({self.min_raters})")
        if float(self.prior_count) < 0.0:
            raise ValueError(f"prior_count must be >= 0, got {self.prior_count}")
        if self.max_items_per_user is not None and int(self.max_items_per_user) < 2:
            raise ValueError(f"max_items_per_user must be >= 2 or None, got {self.max_items_per_user}")
        if int(self.num_partitions) < 1:
            raise ValueError(f"num_partitions must be >= 1, got {self.num_partitions}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "ItemSimConfig":
        """Build a config from the `item_cf` section of config.yaml (unknown keys rejected)."""
        raw = dict(raw or {})
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValueError(f"Unknown item_cf config keys: {unknown}")

        def _opt_int(v: Any) -> Optional[int]:
            return None if v is None else int(v)

        defaults = cls()
        return cls(
            min_intersection=int(raw.get("min_intersection", defaults.min_intersection)),
            min_raters=int(raw.get("min_raters", defaults.min_raters)),
            max_raters=_opt_int(raw.get("max_raters", defaults.max_raters)),
            prior_count=float(raw.get("prior_count", defaults.prior_count)),
            prior_correlation=float(raw.get("prior_correlation", defaults.prior_correlation)),
            max_items_per_user=_opt_int(raw.get("max_items_per_user", defaults.max_items_per_user)),
            num_partitions=int(raw.get("num_partitions", defaults.num_partitions)),
            seed=int(raw.get("seed", defaults.seed)),
        )

    def with_overrides(self, **overrides: Any) -> "ItemSimConfig":
        """Return a copy with the non-None overrides applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **updates)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
