from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

# Ensure `import src...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture()
def three_user_ratings() -> pd.DataFrame:
    """Three users rating A as 5,3,4 and B as 4,2,5 (same user order)."""
    return pd.DataFrame(
        {
            "user": ["u1", "u1", "u2", "u2", "u3", "u3"],
            "item": ["A", "B", "A", "B", "A", "B"],
            "rating": [5.0, 4.0, 3.0, 2.0, 4.0, 5.0],
        }
    )


@pytest.fixture()
def mixed_ratings() -> pd.DataFrame:
    rows = [
        (1, 10, 4.0), (1, 20, 5.0), (1, 30, 1.0), (1, 40, 3.0),
        (2, 10, 3.0), (2, 20, 4.0), (2, 30, 2.0),
        (3, 10, 5.0), (3, 30, 1.0), (3, 40, 4.0),
        (4, 20, 2.0), (4, 30, 5.0), (4, 40, 2.5),
        (5, 10, 1.0), (5, 20, 2.0), (5, 40, 4.5), (5, 50, 3.0),
        (6, 50, 4.0), (6, 10, 2.0),
    ]
    return pd.DataFrame(rows, columns=["user", "item", "rating"])
