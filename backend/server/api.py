"""
Dataset API routes, mounted as a sub-router on the main FastAPI app.

Every route works on a dataset previously imported via POST /datasets or
POST /datasets/upload in the same session (X-Session-Id header).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from core.models import (
    AnalysisOptions,
    ChartRequest,
    ReduceOptions,
    StoredDataset,
)
from core.storage import get_dataset
from skills.insights import analyze_dataset
from skills.profile import build_profile, dataset_stats
from skills.reduce import reduce_rows
from skills.render import prepare_chart_data
from skills.select import select_fields
from skills.suggest import suggest_visualizations

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["datasets"])


def require_session_id(request: Request) -> str:
    sid = request.headers.get("X-Session-Id")
    if not sid:
        raise HTTPException(status_code=400, detail="Missing X-Session-Id header.")
    return sid


def get_llm():
    """LLM collaborator for the request; tests override this dependency."""
    from app.llm import get_client

    return get_client()


def _load(request: Request, dataset_id: str) -> StoredDataset:
    sid = require_session_id(request)
    stored = get_dataset(sid, dataset_id)
    if stored is None:
        raise HTTPException(status_code=404, detail=f"Dataset '{dataset_id}' not found")
    return stored


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/datasets/{dataset_id}")
async def get_dataset_meta(request: Request, dataset_id: str):
    stored = _load(request, dataset_id)
    return stored.meta.model_dump(by_alias=True)


@router.get("/datasets/{dataset_id}/profile")
async def get_profile(request: Request, dataset_id: str):
    stored = _load(request, dataset_id)
    return build_profile(stored.dataset).model_dump(mode="json")


@router.get("/datasets/{dataset_id}/stats")
async def get_stats(request: Request, dataset_id: str):
    stored = _load(request, dataset_id)
    return {"datasetId": dataset_id, "stats": dataset_stats(stored.dataset)}


@router.post("/datasets/{dataset_id}/charts")
async def create_chart(request: Request, dataset_id: str, body: ChartRequest):
    """
    Select fields for the requested chart kind and return the config plus
    the rows the renderer plots. ``synthetic`` marks placeholder data.
    """
    stored = _load(request, dataset_id)
    selection = select_fields(stored.dataset, body.chart_kind, body.overrides)
    data = prepare_chart_data(selection.dataset.rows, selection.config)
    return data.model_dump(mode="json", by_alias=True)


@router.post("/datasets/{dataset_id}/reduce")
async def reduce_dataset(request: Request, dataset_id: str, body: ReduceOptions = ReduceOptions()):
    stored = _load(request, dataset_id)
    rows = reduce_rows(stored.dataset.rows, body)
    return {"datasetId": dataset_id, "count": len(rows), "rows": rows}


@router.get("/datasets/{dataset_id}/suggestions")
def get_suggestions(request: Request, dataset_id: str, llm=Depends(get_llm)):
    stored = _load(request, dataset_id)
    suggestions = suggest_visualizations(stored.dataset, llm=llm)
    return {"suggestions": [s.model_dump(mode="json", by_alias=True) for s in suggestions]}


@router.post("/datasets/{dataset_id}/analyze")
def analyze(request: Request, dataset_id: str, body: AnalysisOptions = AnalysisOptions(), llm=Depends(get_llm)):
    stored = _load(request, dataset_id)
    result = analyze_dataset(stored.dataset, body, llm=llm)
    return result.model_dump(mode="json")
