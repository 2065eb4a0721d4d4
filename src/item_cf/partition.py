"""Hash partitioning and partition-then-reduce helpers."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Callable, Iterable, List, TypeVar

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

T = TypeVar("T")


def partition_by_key(df: pd.DataFrame, key: str, num_partitions: int) -> list[pd.DataFrame]:
    """Split `df` into `num_partitions` frames so that equal `key` values share a partition.

    Empty partitions are dropped. With a single partition the frame is returned as-is.
    """
    num_partitions = int(num_partitions)
    if num_partitions < 1:
        raise ValueError(f"num_partitions must be >= 1, got {num_partitions}")
    if num_partitions == 1 or df.empty:
        return [df]

    hashes = pd.util.hash_pandas_object(df[key], index=False).to_numpy(dtype=np.uint64)
    bucket = hashes % np.uint64(num_partitions)
    parts = [df[bucket == np.uint64(i)] for i in range(num_partitions)]
    return [p for p in parts if not p.empty]


def map_partitions(
    fn: Callable[[pd.DataFrame], T],
    partitions: Iterable[pd.DataFrame],
    executor: Executor | None = None,
) -> List[T]:
    """Apply `fn` to every partition, in parallel when an executor is given.

    Results come back in completion-independent order; callers must only combine
    them with commutative merges.
    """
    partitions = list(partitions)
    if executor is None or len(partitions) <= 1:
        return [fn(p) for p in partitions]

    futures = [executor.submit(fn, p) for p in partitions]
    try:
        return [f.result() for f in futures]
    except BaseException:
        for f in futures:
            f.cancel()
        raise
