from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

pytest.importorskip("httpx")
pytest.importorskip("pyarrow")

from fastapi.testclient import TestClient

from src.item_cf.config import ItemSimConfig
from src.item_cf.pipeline import compute_item_similarities
from src.store.similarities import save_similarities


@pytest.fixture()
def client(tmp_path: Path, mixed_ratings: pd.DataFrame, monkeypatch: pytest.MonkeyPatch):
    run = compute_item_similarities(mixed_ratings, ItemSimConfig(min_intersection=2))
    paths = save_similarities(run.results, {"stats": run.stats}, tmp_path)
    monkeypatch.setenv("ITEM_CF_RESULTS_PATH", paths["item_similarities_parquet"])

    from src.service.app import app

    with TestClient(app) as c:
        yield c


def test_health_reports_loaded_pairs(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["pairs"] > 0


def test_similar_items(client: TestClient) -> None:
    resp = client.post("/item_cf/similar_items", json={"item": "20", "metric": "cosine_similarity", "top_n": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["item"] == "20"
    assert 0 < len(body["results"]) <= 2
    scores = [r["score"] for r in body["results"]]
    assert scores == sorted(scores, reverse=True)
    assert all(r["item"] != "20" for r in body["results"])


def test_unknown_item_is_404(client: TestClient) -> None:
    resp = client.post("/item_cf/similar_items", json={"item": "999"})
    assert resp.status_code == 404


def test_bad_metric_is_422(client: TestClient) -> None:
    resp = client.post("/item_cf/similar_items", json={"item": "20", "metric": "euclidean"})
    assert resp.status_code == 422
