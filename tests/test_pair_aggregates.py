from __future__ import annotations

import pandas as pd
import pytest

from src.item_cf.config import ItemSimConfig
from src.item_cf.pairs import (
    AGGREGATE_COLUMNS,
    cap_items_per_user,
    count_pair_observations,
    expand_user_pairs,
    merge_pair_aggregates,
    pair_aggregates,
    partial_pair_aggregates,
    to_pair_aggregate_records,
)
from src.item_cf.records import ItemPair, PairAggregate


def _sorted(df: pd.DataFrame) -> pd.DataFrame:
    return df.sort_values(["item_a", "item_b"]).reset_index(drop=True)[AGGREGATE_COLUMNS]


def test_three_user_sufficient_statistics(three_user_ratings: pd.DataFrame) -> None:
    aggs = pair_aggregates(three_user_ratings, ItemSimConfig(min_intersection=1))
    assert len(aggs) == 1
    row = aggs.iloc[0]
    assert (row["item_a"], row["item_b"]) == ("A", "B")
    assert int(row["size"]) == 3
    assert row["dot_product"] == pytest.approx(46.0)
    assert row["sum_a"] == pytest.approx(12.0)
    assert row["sum_b"] == pytest.approx(11.0)
    assert row["sum_sq_a"] == pytest.approx(50.0)
    assert row["sum_sq_b"] == pytest.approx(45.0)


def test_expanded_pairs_are_canonical(mixed_ratings: pd.DataFrame) -> None:
    pairs = expand_user_pairs(mixed_ratings)
    assert (pairs["item_a"] < pairs["item_b"]).all()
    assert not pairs.duplicated(subset=["user", "item_a", "item_b"]).any()
    assert len(pairs) == count_pair_observations(mixed_ratings)


def test_count_pair_observations() -> None:
    df = pd.DataFrame({"user": [1, 1, 1, 1, 2, 2, 3], "item": [1, 2, 3, 4, 1, 2, 9], "rating": [1.0] * 7})
    # 4*3/2 + 2*1/2 + 0
    assert count_pair_observations(df) == 7


def test_min_intersection_filter(mixed_ratings: pd.DataFrame) -> None:
    aggs = pair_aggregates(mixed_ratings, ItemSimConfig(min_intersection=3))
    assert (aggs["size"] >= 3).all()
    # (10, 50) is co-rated by users 5 and 6 only
    assert not ((aggs["item_a"] == 10) & (aggs["item_b"] == 50)).any()
    assert ((aggs["item_a"] == 10) & (aggs["item_b"] == 20)).any()


def test_partitioned_aggregation_matches_single_pass(mixed_ratings: pd.DataFrame) -> None:
    single = pair_aggregates(mixed_ratings, ItemSimConfig(min_intersection=1, num_partitions=1))
    split = pair_aggregates(mixed_ratings, ItemSimConfig(min_intersection=1, num_partitions=4))
    pd.testing.assert_frame_equal(_sorted(single), _sorted(split))


def test_merging_disjoint_partials_equals_union(mixed_ratings: pd.DataFrame) -> None:
    users_a = mixed_ratings[mixed_ratings["user"].isin([1, 3, 5])]
    users_b = mixed_ratings[mixed_ratings["user"].isin([2, 4, 6])]
    merged = merge_pair_aggregates([partial_pair_aggregates(users_b), partial_pair_aggregates(users_a)])
    union = partial_pair_aggregates(mixed_ratings)
    pd.testing.assert_frame_equal(_sorted(merged), _sorted(union))


def test_record_observe_and_merge_agree() -> None:
    obs = [(5.0, 4.0), (3.0, 2.0), (4.0, 5.0)]
    whole = PairAggregate("A", "B")
    for ra, rb in obs:
        whole = whole.observe(ra, rb)

    left = PairAggregate("A", "B").observe(*obs[0])
    right = PairAggregate("A", "B").observe(*obs[1]).observe(*obs[2])
    assert left.merge(right) == whole
    assert right.merge(left) == whole
    assert whole.size == 3 and whole.dot_product == pytest.approx(46.0)

    with pytest.raises(ValueError):
        whole.merge(PairAggregate("A", "C"))


def test_item_pair_canonical_ordering() -> None:
    assert ItemPair.of("b", "a") == ItemPair("a", "b")
    with pytest.raises(ValueError):
        ItemPair.of(3, 3)
    with pytest.raises(ValueError):
        ItemPair(2, 1)


def test_cap_items_per_user_bounds_expansion(mixed_ratings: pd.DataFrame) -> None:
    capped = cap_items_per_user(mixed_ratings, 2, seed=7)
    assert capped.groupby("user").size().max() <= 2
    assert count_pair_observations(capped) == mixed_ratings["user"].nunique()
    again = cap_items_per_user(mixed_ratings, 2, seed=7)
    pd.testing.assert_frame_equal(capped, again)
    assert cap_items_per_user(mixed_ratings, None) is mixed_ratings


def test_to_records(three_user_ratings: pd.DataFrame) -> None:
    records = to_pair_aggregate_records(pair_aggregates(three_user_ratings, ItemSimConfig(min_intersection=1)))
    assert records == [PairAggregate("A", "B", 3, 46.0, 12.0, 11.0, 50.0, 45.0)]
