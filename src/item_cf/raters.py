from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Iterable, Optional

import pandas as pd

from .config import ItemSimConfig
from .partition import map_partitions, partition_by_key
from .records import RaterCount


logger = logging.getLogger(__name__)

RATERS_COLUMN = "raters"


def _empty_counts(index_dtype: object = "int64") -> pd.Series:
    return pd.Series([], index=pd.Index([], name="item", dtype=index_dtype), name=RATERS_COLUMN, dtype="int64")


def partial_rater_counts(ratings: pd.DataFrame) -> pd.Series:
    """Number of ratings per item in one partition."""
    if ratings.empty:
        return _empty_counts(ratings["item"].dtype)
    counts = ratings.groupby("item", sort=False).size()
    counts.name = RATERS_COLUMN
    return counts.astype("int64")


def merge_rater_counts(partials: Iterable[pd.Series]) -> pd.Series:
    """Sum partial per-item counts; order of partials does not matter."""
    partials = [p for p in partials if not p.empty]
    if not partials:
        return _empty_counts()
    merged = pd.concat(partials).groupby(level=0, sort=False).sum()
    merged.index.name = "item"
    merged.name = RATERS_COLUMN
    return merged.astype("int64")


def filter_rater_counts(counts: pd.Series, min_raters: int, max_raters: Optional[int] = None) -> pd.Series:
    """Keep items with min_raters <= count <= max_raters (inclusive, None = unbounded)."""
    mask = counts >= int(min_raters)
    if max_raters is not None:
        mask &= counts <= int(max_raters)
    return counts[mask]


def rater_counts(
    ratings: pd.DataFrame,
    config: ItemSimConfig,
    executor: Executor | None = None,
) -> pd.Series:
    """Raters per item, restricted to the configured popularity window.

    An item missing from the result was filtered out and must not appear in any pair.
    """
    partitions = partition_by_key(ratings, "item", config.num_partitions)
    partials = map_partitions(partial_rater_counts, partitions, executor)
    counts = merge_rater_counts(partials)
    kept = filter_rater_counts(counts, config.min_raters, config.max_raters)
    logger.info(
        "Rater counts: items=%d kept=%d window=[%d, %s]",
        len(counts),
        len(kept),
        int(config.min_raters),
        "inf" if config.max_raters is None else int(config.max_raters),
    )
    return kept


def to_rater_count_records(counts: pd.Series) -> list[RaterCount]:
    return [RaterCount(item=item, count=int(n)) for item, n in counts.items()]
