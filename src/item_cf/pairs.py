from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from .config import ItemSimConfig
from .partition import map_partitions, partition_by_key
from .records import PairAggregate


logger = logging.getLogger(__name__)

PAIR_KEY = ["item_a", "item_b"]
STAT_COLUMNS = ["size", "dot_product", "sum_a", "sum_b", "sum_sq_a", "sum_sq_b"]
AGGREGATE_COLUMNS = PAIR_KEY + STAT_COLUMNS


def _empty_aggregates() -> pd.DataFrame:
    df = pd.DataFrame(columns=AGGREGATE_COLUMNS)
    df["size"] = df["size"].astype("int64")
    for col in STAT_COLUMNS[1:]:
        df[col] = df[col].astype("float64")
    return df


def count_pair_observations(ratings: pd.DataFrame) -> int:
    """Number of (item_a, item_b) observations the self-join produces: sum of k*(k-1)/2 per user."""
    if ratings.empty:
        return 0
    k = ratings.groupby("user", sort=False).size().to_numpy(dtype=np.int64)
    return int((k * (k - 1) // 2).sum())


def cap_items_per_user(ratings: pd.DataFrame, max_items: Optional[int], *, seed: int = 42) -> pd.DataFrame:
    """Keep at most `max_items` ratings per user, chosen uniformly at random with a fixed seed.

    Bounds the quadratic pair expansion for heavy raters. Rater counts are still
    computed from the uncapped ratings.
    """
    if max_items is None or ratings.empty:
        return ratings
    rng = np.random.default_rng(int(seed))
    keys = pd.Series(rng.random(len(ratings)), index=ratings.index)
    rank = keys.groupby(ratings["user"], sort=False).rank(method="first")
    capped = ratings[rank <= int(max_items)]
    dropped = len(ratings) - len(capped)
    if dropped:
        logger.info("Capped items per user at %d: dropped %d of %d ratings", int(max_items), dropped, len(ratings))
    return capped


def expand_user_pairs(ratings: pd.DataFrame) -> pd.DataFrame:
    """Self-join ratings on user and keep each co-rated pair once, as item_a < item_b.

    Returns columns: user, item_a, rating_a, item_b, rating_b.
    """
    left = ratings[["user", "item", "rating"]].rename(columns={"item": "item_a", "rating": "rating_a"})
    right = ratings[["user", "item", "rating"]].rename(columns={"item": "item_b", "rating": "rating_b"})
    joined = left.merge(right, on="user", how="inner")
    return joined[joined["item_a"] < joined["item_b"]].reset_index(drop=True)


def partial_pair_aggregates(ratings: pd.DataFrame) -> pd.DataFrame:
    """Sufficient statistics per item pair over the users present in `ratings`."""
    pairs = expand_user_pairs(ratings)
    if pairs.empty:
        return _empty_aggregates()

    ra = pairs["rating_a"].astype("float64")
    rb = pairs["rating_b"].astype("float64")
    pairs = pairs.assign(
        prod=ra * rb,
        ra=ra,
        rb=rb,
        ra_sq=ra * ra,
        rb_sq=rb * rb,
    )
    agg = pairs.groupby(PAIR_KEY, as_index=False, sort=False).agg(
        size=("user", "size"),
        dot_product=("prod", "sum"),
        sum_a=("ra", "sum"),
        sum_b=("rb", "sum"),
        sum_sq_a=("ra_sq", "sum"),
        sum_sq_b=("rb_sq", "sum"),
    )
    agg["size"] = agg["size"].astype("int64")
    return agg[AGGREGATE_COLUMNS]


def merge_pair_aggregates(partials: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """Field-wise addition of partial aggregates keyed by (item_a, item_b)."""
    partials = [p for p in partials if not p.empty]
    if not partials:
        return _empty_aggregates()
    if len(partials) == 1:
        return partials[0].reset_index(drop=True)
    merged = pd.concat(partials, ignore_index=True).groupby(PAIR_KEY, as_index=False, sort=False)[STAT_COLUMNS].sum()
    merged["size"] = merged["size"].astype("int64")
    return merged[AGGREGATE_COLUMNS]


def filter_min_intersection(aggregates: pd.DataFrame, min_intersection: int) -> pd.DataFrame:
    return aggregates[aggregates["size"] >= int(min_intersection)].reset_index(drop=True)


def pair_aggregates(
    ratings: pd.DataFrame,
    config: ItemSimConfig,
    executor: Executor | None = None,
) -> pd.DataFrame:
    """Per-pair sufficient statistics for every pair co-rated by >= min_intersection users."""
    capped = cap_items_per_user(ratings, config.max_items_per_user, seed=config.seed)
    logger.info(
        "Pair expansion: users=%d ratings=%d pair_observations=%d partitions=%d",
        capped["user"].nunique(),
        len(capped),
        count_pair_observations(capped),
        int(config.num_partitions),
    )

    partitions = partition_by_key(capped, "user", config.num_partitions)
    partials = map_partitions(partial_pair_aggregates, partitions, executor)
    merged = merge_pair_aggregates(partials)
    kept = filter_min_intersection(merged, config.min_intersection)
    logger.info("Pair aggregates: pairs=%d kept=%d min_intersection=%d", len(merged), len(kept), int(config.min_intersection))
    return kept


def to_pair_aggregate_records(aggregates: pd.DataFrame) -> list[PairAggregate]:
    return [
        PairAggregate(
            item_a=row.item_a,
            item_b=row.item_b,
            size=int(row.size),
            dot_product=float(row.dot_product),
            sum_a=float(row.sum_a),
            sum_b=float(row.sum_b),
            sum_sq_a=float(row.sum_sq_a),
            sum_sq_b=float(row.sum_sq_b),
        )
        for row in aggregates.itertuples(index=False)
    ]
