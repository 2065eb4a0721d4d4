from __future__ import annotations

import logging
from typing import Iterator

import numpy as np
import pandas as pd

from .config import ItemSimConfig
from .raters import RATERS_COLUMN
from .records import SimilarityResult
from .stats import similarities


logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "item_a",
    "item_b",
    "correlation",
    "regularized_correlation",
    "cosine_similarity",
    "jaccard_similarity",
    "size",
    "raters_a",
    "raters_b",
]


def combine_similarities(pairs: pd.DataFrame, rater_counts: pd.Series, config: ItemSimConfig) -> pd.DataFrame:
    """Join pair statistics with both items' rater counts and evaluate the similarity metrics.

    Pairs whose item_a or item_b is missing from `rater_counts` are dropped (inner join).
    Non-finite correlations from zero-variance items are kept as-is. Duplicate
    rows in `pairs` are not collapsed.
    """
    if pairs.empty or rater_counts.empty:
        logger.info("Combiner: nothing to join (pairs=%d rated_items=%d)", len(pairs), len(rater_counts))
        return pd.DataFrame(columns=RESULT_COLUMNS)

    counts = rater_counts.rename(RATERS_COLUMN)
    raters_a = counts.rename_axis("item_a").rename("raters_a").reset_index()
    raters_b = counts.rename_axis("item_b").rename("raters_b").reset_index()

    joined = pairs.merge(raters_a, on="item_a", how="inner").merge(raters_b, on="item_b", how="inner")
    if joined.empty:
        logger.info("Combiner: no pairs survived the rater-count join (input pairs=%d)", len(pairs))
        return pd.DataFrame(columns=RESULT_COLUMNS)

    corr, reg_corr, cos_sim, jaccard = similarities(
        joined["size"].to_numpy(dtype=np.float64),
        joined["dot_product"].to_numpy(dtype=np.float64),
        joined["sum_a"].to_numpy(dtype=np.float64),
        joined["sum_b"].to_numpy(dtype=np.float64),
        joined["sum_sq_a"].to_numpy(dtype=np.float64),
        joined["sum_sq_b"].to_numpy(dtype=np.float64),
        joined["raters_a"].to_numpy(dtype=np.float64),
        joined["raters_b"].to_numpy(dtype=np.float64),
        float(config.prior_count),
        float(config.prior_correlation),
    )

    out = pd.DataFrame(
        {
            "item_a": joined["item_a"].to_numpy(),
            "item_b": joined["item_b"].to_numpy(),
            "correlation": corr,
            "regularized_correlation": reg_corr,
            "cosine_similarity": cos_sim,
            "jaccard_similarity": jaccard,
            "size": joined["size"].astype("int64").to_numpy(),
            "raters_a": joined["raters_a"].astype("int64").to_numpy(),
            "raters_b": joined["raters_b"].astype("int64").to_numpy(),
        }
    )

    non_finite = int((~np.isfinite(out["correlation"].to_numpy())).sum())
    logger.info(
        "Combiner: pairs_in=%d joined=%d non_finite_correlation=%d prior_count=%.3f prior_correlation=%.3f",
        len(pairs),
        len(out),
        non_finite,
        float(config.prior_count),
        float(config.prior_correlation),
    )
    return out


def iter_similarity_results(frame: pd.DataFrame) -> Iterator[SimilarityResult]:
    for row in frame[RESULT_COLUMNS].itertuples(index=False):
        yield SimilarityResult(
            item_a=row.item_a,
            item_b=row.item_b,
            correlation=float(row.correlation),
            regularized_correlation=float(row.regularized_correlation),
            cosine_similarity=float(row.cosine_similarity),
            jaccard_similarity=float(row.jaccard_similarity),
            size=int(row.size),
            raters_a=int(row.raters_a),
            raters_b=int(row.raters_b),
        )
