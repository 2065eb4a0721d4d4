from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from .combiner import combine_similarities
from .config import ItemSimConfig
from .pairs import count_pair_observations, pair_aggregates
from .raters import rater_counts


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityRun:
    results: pd.DataFrame
    rater_counts: pd.Series
    pair_aggregates: pd.DataFrame
    stats: dict[str, Any] = field(default_factory=dict)


def _require_rating_columns(ratings: pd.DataFrame) -> pd.DataFrame:
    required = {"user", "item", "rating"}
    missing = required - set(ratings.columns)
    if missing:
        raise ValueError(f"ratings missing required columns: {sorted(missing)}")
    df = ratings[["user", "item", "rating"]].copy()
    df["rating"] = df["rating"].astype("float64")
    return df.reset_index(drop=True)


def compute_item_similarities(
    ratings: pd.DataFrame,
    config: ItemSimConfig,
    *,
    max_workers: int | None = None,
) -> SimilarityRun:
    """Run rater counting and pair aggregation side by side, then combine.

    Both aggregations must finish before the combiner starts, since it needs
    the complete rater-count mapping. If either stage fails the other is
    cancelled and nothing is returned.
    """
    df = _require_rating_columns(ratings)
    logger.info(
        "Item similarities: ratings=%d users=%d items=%d config=%s",
        len(df),
        df["user"].nunique(),
        df["item"].nunique(),
        config.to_dict(),
    )

    workers = max(2, int(max_workers or config.num_partitions + 1))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="item-cf") as stage_pool, ThreadPoolExecutor(
        max_workers=workers, thread_name_prefix="item-cf-part"
    ) as part_pool:
        counts_future = stage_pool.submit(rater_counts, df, config, part_pool)
        pairs_future = stage_pool.submit(pair_aggregates, df, config, part_pool)
        try:
            counts = counts_future.result()
            pairs = pairs_future.result()
        except BaseException:
            counts_future.cancel()
            pairs_future.cancel()
            raise

    results = combine_similarities(pairs, counts, config)

    stats = {
        "ratings": int(len(df)),
        "users": int(df["user"].nunique()),
        "items": int(df["item"].nunique()),
        "pair_observations": count_pair_observations(df),
        "items_kept": int(len(counts)),
        "pairs_kept": int(len(pairs)),
        "results": int(len(results)),
        "non_finite_correlation": int((~np.isfinite(results["correlation"].to_numpy(dtype=np.float64))).sum()),
    }
    logger.info("Item similarities done: %s", stats)
    return SimilarityRun(results=results, rater_counts=counts, pair_aggregates=pairs, stats=stats)
