"""Item-item collaborative filtering statistics from (user, item, rating) data.

Pipeline:
- Count raters per item and keep items inside a [min_raters, max_raters] window
- Self-join ratings on user, canonicalize each item pair (item_a < item_b) and
  accumulate sufficient statistics per pair
- Join pair statistics with rater counts and compute Pearson correlation,
  regularized correlation, cosine and Jaccard similarities
"""
