"""Similarity formulas evaluated from per-pair sufficient statistics.

All functions accept scalars or numpy/pandas arrays. Divisions by zero are
not masked: a zero-variance item yields a non-finite correlation (inf/nan),
which callers are expected to carry through to the output.
"""

from __future__ import annotations

import numpy as np


def square(x):
    return np.square(np.asarray(x, dtype=np.float64))


def _sqrt_diff(size, norm_sq, rating_sum):
    # sqrt(n * sum(x^2) - sum(x)^2); zero when every rating is the same
    return np.sqrt(size * norm_sq - square(rating_sum))


def correlation(size, dot_product, sum_a, sum_b, sum_sq_a, sum_sq_b):
    """Pearson correlation from count, cross-product, sums and sums of squares."""
    size = np.asarray(size, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        numerator = size * dot_product - np.asarray(sum_a, dtype=np.float64) * sum_b
        denominator = _sqrt_diff(size, sum_sq_a, sum_a) * _sqrt_diff(size, sum_sq_b, sum_b)
        return numerator / denominator


def regularized_correlation(corr, size, prior_count, prior_correlation):
    """Shrink `corr` toward `prior_correlation`, weighted by size / (size + prior_count)."""
    size = np.asarray(size, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        w = size / (size + prior_count)
        return w * corr + (1.0 - w) * prior_correlation


def cosine_similarity(dot_product, norm_a, norm_b):
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.asarray(dot_product, dtype=np.float64) / (np.asarray(norm_a, dtype=np.float64) * norm_b)


def jaccard_similarity(users_in_common, total_users_a, total_users_b):
    """Approximate Jaccard index of two rater sets from their sizes and overlap."""
    common = np.asarray(users_in_common, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        union = np.asarray(total_users_a, dtype=np.float64) + total_users_b - common
        return common / union


def similarities(
    size,
    dot_product,
    sum_a,
    sum_b,
    sum_sq_a,
    sum_sq_b,
    raters_a,
    raters_b,
    prior_count,
    prior_correlation,
):
    """Return (correlation, regularized_correlation, cosine, jaccard)."""
    corr = correlation(size, dot_product, sum_a, sum_b, sum_sq_a, sum_sq_b)
    reg_corr = regularized_correlation(corr, size, prior_count, prior_correlation)
    cos_sim = cosine_similarity(
        dot_product,
        np.sqrt(np.asarray(sum_sq_a, dtype=np.float64)),
        np.sqrt(np.asarray(sum_sq_b, dtype=np.float64)),
    )
    jaccard = jaccard_similarity(size, raters_a, raters_b)
    return corr, reg_corr, cos_sim, jaccard
