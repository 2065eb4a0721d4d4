from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from .item_cf.records import RatingRecord


logger = logging.getLogger(__name__)

RATING_COLUMNS: Tuple[str, ...] = ("user", "item", "rating")

MOVIELENS_COLUMNS: Dict[str, str] = {"userId": "user", "movieId": "item", "rating": "rating"}

SUPPORTED_FORMATS = ("delimited", "movielens")


def try_parse_float(text: str) -> Optional[float]:
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def parse_rating_line(line: str, *, sep: str = ";") -> Optional[RatingRecord]:
    """Parse one `"user";"item";"rating"` line, or return None if it is malformed."""
    fields = line.strip().replace('"', "").split(sep)
    if len(fields) != 3:
        return None
    user, item, rating_text = (f.strip() for f in fields)
    rating = try_parse_float(rating_text)
    if not user or not item or rating is None:
        return None
    return RatingRecord(user=user, item=item, rating=rating)


def read_delimited_ratings(path: Path, *, sep: str = ";", encoding: str = "latin-1") -> pd.DataFrame:
    """Read semicolon-separated rating lines, silently dropping anything unparseable.

    User and item ids are kept as strings; a header line fails to parse and is dropped.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"ratings file not found: {path}")

    records = []
    dropped = 0
    with path.open("r", encoding=encoding) as f:
        for line in f:
            if not line.strip():
                continue
            rec = parse_rating_line(line, sep=sep)
            if rec is None:
                dropped += 1
                continue
            records.append(rec)

    logger.info("Read %d ratings from %s (dropped %d malformed lines)", len(records), path, dropped)
    return ratings_frame(records)


def read_movielens_ratings(path: Path) -> pd.DataFrame:
    """Read a MovieLens `ratings.csv` and rename to user/item/rating."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"ratings file not found: {path}")

    df = pd.read_csv(
        path,
        dtype={"userId": "int64", "movieId": "int64", "rating": "float64"},
        usecols=list(MOVIELENS_COLUMNS),
    )
    return df.rename(columns=MOVIELENS_COLUMNS)[list(RATING_COLUMNS)]


def ratings_frame(records: Iterable[RatingRecord]) -> pd.DataFrame:
    rows = [(r.user, r.item, float(r.rating)) for r in records]
    df = pd.DataFrame(rows, columns=list(RATING_COLUMNS))
    df["rating"] = df["rating"].astype("float64")
    return df


def validate_ratings(ratings: pd.DataFrame) -> pd.DataFrame:
    """Check columns and enforce at most one finite rating per (user, item)."""
    missing = [c for c in RATING_COLUMNS if c not in ratings.columns]
    if missing:
        raise ValueError(f"ratings missing columns: {missing}")

    df = ratings[list(RATING_COLUMNS)].copy()
    df = df.dropna(subset=["user", "item"])
    df["rating"] = pd.to_numeric(df["rating"], errors="coerce").astype("float64")

    finite = np.isfinite(df["rating"].to_numpy())
    if not finite.all():
        logger.warning("Dropping %d ratings with missing or non-finite values", int((~finite).sum()))
        df = df[finite]

    dup = df.duplicated(subset=["user", "item"], keep="last")
    if dup.any():
        logger.warning("Found %d duplicate (user, item) ratings; keeping the last of each", int(dup.sum()))
        df = df[~dup]

    return df.reset_index(drop=True)


def load_ratings(path: Path, *, fmt: str = "delimited") -> pd.DataFrame:
    """Load and validate ratings from disk in one of SUPPORTED_FORMATS."""
    if fmt == "delimited":
        df = read_delimited_ratings(path)
    elif fmt == "movielens":
        df = read_movielens_ratings(path)
    else:
        raise ValueError(f"Unsupported ratings format {fmt!r}; expected one of {SUPPORTED_FORMATS}")
    return validate_ratings(df)
