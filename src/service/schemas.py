"""Pydantic schemas for the item similarity lookup API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


Metric = Literal["correlation", "regularized_correlation", "cosine_similarity", "jaccard_similarity"]


class SimilarItemsRequest(BaseModel):
    """Request for items most similar to a given item id."""

    item: str = Field(..., min_length=1, description="Item id as it appears in the ratings data")
    metric: Metric = Field("regularized_correlation", description="Similarity column to rank by")
    top_n: int = Field(10, ge=1, le=100, description="Number of similar items to return")
    min_size: int = Field(1, ge=1, le=100000, description="Minimum number of common raters")


class SimilarItem(BaseModel):
    item: str
    score: float
    size: int
    raters: int


class SimilarItemsResponse(BaseModel):
    item: str
    metric: str
    top_n: int
    results: list[SimilarItem]


class HealthResponse(BaseModel):
    status: str
    pairs: int
