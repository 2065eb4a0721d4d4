"""FastAPI service exposing precomputed item-item similarities."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException

from ..paths import get_repo_root
from ..store.similarities import RESULTS_PARQUET, SimilarityStore
from ..utils import setup_logging
from .schemas import HealthResponse, SimilarItemsRequest, SimilarItemsResponse


logger = logging.getLogger(__name__)


def _get_env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    p = Path(str(raw))
    return p if p.is_absolute() else (get_repo_root() / p).resolve()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    results_path = _get_env_path(
        "ITEM_CF_RESULTS_PATH",
        get_repo_root() / "artifacts" / "item_cf" / RESULTS_PARQUET,
    )
    if results_path.exists():
        app.state.store = SimilarityStore.from_path(results_path)
        logger.info("Loaded %d item pairs from %s", len(app.state.store), results_path)
    else:
        # The build is a batch job; the service only serves what it produced.
        logger.warning("No item similarities at %s; run `python -m src.pipelines.item_cf_build` first", results_path)
        app.state.store = None
    yield


app = FastAPI(title="Item-Item Similarity Service", lifespan=lifespan)


def _store(app_: FastAPI) -> SimilarityStore:
    store = getattr(app_.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Item similarities not loaded")
    return store


@app.get("/health", response_model=HealthResponse)
def health() -> dict:
    store = getattr(app.state, "store", None)
    return {"status": "ok", "pairs": 0 if store is None else len(store)}


@app.post("/item_cf/similar_items", response_model=SimilarItemsResponse)
def similar_items(req: SimilarItemsRequest) -> dict:
    """Return the items most similar to `req.item` under the requested metric."""
    store = _store(app)
    try:
        neighbors = store.neighbors(req.item, metric=req.metric, top_n=int(req.top_n), min_size=int(req.min_size))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "item": req.item,
        "metric": req.metric,
        "top_n": int(req.top_n),
        "results": [
            {"item": str(n.item), "score": n.score, "size": n.size, "raters": n.raters} for n in neighbors
        ],
    }
