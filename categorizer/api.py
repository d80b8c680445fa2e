from __future__ import annotations

"""
FastAPI application for the categorizer.

- GET  /health      liveness plus loaded seed / NDC counts
- GET  /config      current (sanitized) ranking config
- PUT  /config      replace the ranking config; out-of-range values are clamped
- PUT  /categories  replace the seed categories
- POST /classify    rank a list of texts; rows line up with the request
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from .config import (
    ClassifyResponse,
    HealthResponse,
    RankingConfig,
    ResultRowModel,
    SuggestionModel,
    load_settings,
)
from .errors import CategorizerError
from .pipeline_types import ResultRow, Suggestion
from .service import CategorizerService


app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: Optional[CategorizerService] = None


@app.on_event("startup")
def startup_event() -> None:
    global _service
    logger.info("Starting app warmup...")
    try:
        _service = CategorizerService.from_settings(load_settings())
    except CategorizerError as e:
        _service = None
        logger.error("Warmup failed: {}", e)
        return
    seeds, ndc = _service.candidate_stats()
    logger.info("Warmup complete ({} seeds, {} NDC entries).", seeds, ndc)


def get_service() -> CategorizerService:
    if _service is None:
        raise HTTPException(status_code=503, detail="Categorizer not loaded")
    return _service


# -----------------------
# Mapping
# -----------------------

def _to_model(s: Suggestion) -> SuggestionModel:
    return SuggestionModel(label=s.label, score=round(s.score, 6), source=str(s.source), aliases=list(s.aliases))


def map_row(row: ResultRow) -> ResultRowModel:
    return ResultRowModel(
        text=row.text,
        suggestions=[_to_model(s) for s in row.suggestions],
        taxonomy_suggestions=[_to_model(s) for s in row.taxonomy_suggestions],
        need_review=row.need_review,
    )


# -----------------------
# Endpoints
# -----------------------

@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    if _service is None:
        return HealthResponse(status="loading")
    seeds, ndc = _service.candidate_stats()
    return HealthResponse(status="healthy", seeds=seeds, taxonomy=ndc)


@app.get("/config", response_model=RankingConfig)
def get_config() -> RankingConfig:
    return get_service().config()


@app.put("/config", response_model=RankingConfig)
def put_config(cfg: RankingConfig) -> RankingConfig:
    return get_service().update_config(cfg)


class CategoriesRequest(BaseModel):
    labels: List[str] = Field(..., min_length=1)


@app.put("/categories")
def put_categories(req: CategoriesRequest) -> dict:
    svc = get_service()
    try:
        count = svc.update_categories(req.labels)
    except CategorizerError as e:
        logger.error("Category update failed: {}", e)
        raise HTTPException(status_code=500, detail=str(e)) from e
    if count == 0:
        raise HTTPException(status_code=422, detail="No non-empty category labels")
    return {"count": count}


class ClassifyRequest(BaseModel):
    texts: List[str] = Field(..., min_length=1)
    workers: int = Field(default=1, ge=1, le=16)


@app.post("/classify", response_model=ClassifyResponse)
def classify(req: ClassifyRequest) -> ClassifyResponse:
    result = get_service().classify_all(req.texts, workers=req.workers)
    return ClassifyResponse(
        rows=[map_row(r) if r is not None else None for r in result.rows],
        errors={i: str(e) for i, e in result.errors.items()},
    )
