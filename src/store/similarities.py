"""Persistence and lookup of computed item-item similarities."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..item_cf.combiner import RESULT_COLUMNS


logger = logging.getLogger(__name__)

METRICS = ("correlation", "regularized_correlation", "cosine_similarity", "jaccard_similarity")

RESULTS_PARQUET = "item_similarities.parquet"
RESULTS_CSV = "item_similarities.csv"
RESULTS_META = "item_similarities_meta.json"


def save_similarities(results: pd.DataFrame, meta: dict[str, Any], out_dir: Path) -> dict[str, str]:
    """Write results as parquet + csv with a JSON sidecar; non-finite values are written as-is."""
    missing = [c for c in RESULT_COLUMNS if c not in results.columns]
    if missing:
        raise ValueError(f"results missing columns: {missing}")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    parquet_path = out_dir / RESULTS_PARQUET
    csv_path = out_dir / RESULTS_CSV
    meta_path = out_dir / RESULTS_META

    frame = results[RESULT_COLUMNS]
    frame.to_parquet(parquet_path, index=False)
    frame.to_csv(csv_path, index=False)
    meta = {**meta, "item_dtype": item_dtype(frame)}
    meta_path.write_text(json.dumps(meta, indent=2, sort_keys=True, default=str) + "\n")

    return {
        "item_similarities_parquet": str(parquet_path),
        "item_similarities_csv": str(csv_path),
        "item_similarities_meta": str(meta_path),
    }


def item_dtype(results: pd.DataFrame) -> str:
    """Id dtype recorded next to the results: int64 for integer ids, otherwise string."""
    if all(pd.api.types.is_integer_dtype(results[c]) for c in ("item_a", "item_b")):
        return "int64"
    return "string"


def _read_csv_results(path: Path) -> pd.DataFrame:
    # ids go through str so zero-padded codes (e.g. ISBNs) survive
    df = pd.read_csv(path, dtype={"item_a": str, "item_b": str})
    meta_path = path.with_name(RESULTS_META)
    meta = json.loads(meta_path.read_text()) if meta_path.exists() else {}
    if meta.get("item_dtype") == "int64":
        for col in ("item_a", "item_b"):
            df[col] = df[col].astype("int64")
    return df


def load_similarities(path: Path) -> pd.DataFrame:
    """Load results written by `save_similarities` (parquet or csv by suffix).

    CSV item ids are restored to the dtype recorded in the meta sidecar, and
    kept as strings when no sidecar is present.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"item similarities not found: {path}")

    df = _read_csv_results(path) if path.suffix == ".csv" else pd.read_parquet(path)
    missing = [c for c in RESULT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path.name} missing required columns: {missing}")

    df = df[RESULT_COLUMNS].copy()
    for col in METRICS:
        df[col] = df[col].astype("float64")
    for col in ("size", "raters_a", "raters_b"):
        df[col] = df[col].astype("int64")
    return df


@dataclass(frozen=True)
class Neighbor:
    item: Any
    score: float
    size: int
    raters: int


class SimilarityStore:
    """In-memory view of item-pair results, indexed by item for neighbour queries."""

    def __init__(self, results: pd.DataFrame) -> None:
        self.df = results.reset_index(drop=True)
        # both orientations so a lookup only needs one column
        fwd = self.df.rename(columns={"item_a": "item", "item_b": "other", "raters_b": "other_raters"})
        rev = self.df.rename(columns={"item_b": "item", "item_a": "other", "raters_a": "other_raters"})
        keep = ["item", "other", "size", "other_raters", *METRICS]
        self._edges = pd.concat([fwd[keep], rev[keep]], ignore_index=True)
        self._items: dict[str, Any] = {}
        for k in pd.unique(self._edges["item"]):
            key = str(k)
            if key in self._items:
                logger.warning("Item ids %r and %r share the lookup key %r; keeping %r", self._items[key], k, key, k)
            self._items[key] = k

    @classmethod
    def from_path(cls, path: Path) -> "SimilarityStore":
        return cls(load_similarities(path))

    def __len__(self) -> int:
        return int(len(self.df))

    def has_item(self, item: Any) -> bool:
        return str(item) in self._items

    def resolve_item(self, item: Any) -> Any:
        """Map an id given as text (e.g. from an HTTP request) to the stored id."""
        key = str(item)
        if key not in self._items:
            raise KeyError(f"Unknown item: {item!r}")
        return self._items[key]

    def neighbors(
        self,
        item: Any,
        *,
        metric: str = "regularized_correlation",
        top_n: int = 10,
        min_size: int = 1,
    ) -> list[Neighbor]:
        """Items most similar to `item` under `metric`; non-finite scores are skipped."""
        if metric not in METRICS:
            raise ValueError(f"Unknown metric {metric!r}; expected one of {METRICS}")

        stored = self.resolve_item(item)
        edges = self._edges[(self._edges["item"] == stored) & (self._edges["size"] >= int(min_size))]
        edges = edges[np.isfinite(edges[metric].to_numpy(dtype=np.float64))]
        edges = edges.sort_values([metric, "size"], ascending=[False, False], kind="mergesort").head(int(top_n))

        return [
            Neighbor(item=row["other"], score=float(row[metric]), size=int(row["size"]), raters=int(row["other_raters"]))
            for _, row in edges.iterrows()
        ]
