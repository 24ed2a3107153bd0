from fastapi import FastAPI, UploadFile, File, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from core.config import IMPORT_MAX_ROWS
from pydantic import ValidationError
from core.models import Dataset, DatasetError, DatasetImport, DatasetMeta, ReduceOptions, Row, SamplingStrategy
from core.storage import find_by_hash, save_dataset
from core.utils import df_to_records_safe
from skills.profile import dataset_stats
from skills.reduce import reduce_rows
from server.api import router as datasets_router, require_session_id
import pandas as pd
import io
from dotenv import load_dotenv
import logging
import hashlib
import json
from typing import List, Optional

logger = logging.getLogger("uvicorn.error")
load_dotenv()
app = FastAPI(title="BI Dashboard", description="Pick chart fields for any tabular dataset")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount the dataset analysis router
app.include_router(datasets_router)


def _sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _log_response(ctx: str, payload) -> None:
    """Pretty-print JSON-able payloads; fall back to str()."""
    try:
        logger.info("%s response: %s", ctx, json.dumps(payload, indent=2, default=str))
    except (TypeError, ValueError):
        logger.info("%s response (non-serializable): %s", ctx, str(payload))


def _duplicate_response(ctx: str, dataset_id: str) -> JSONResponse:
    dup_resp = {
        "ok": False,
        "duplicate": True,
        "datasetId": dataset_id,
        "detail": "Duplicate upload: this data was already imported for this session.",
    }
    _log_response(f"{ctx} (duplicate)", dup_resp)
    return JSONResponse(status_code=409, content=dup_resp)


def _store(sid: str, name: str, headers: List[str], rows: List[Row], content_hash: str) -> dict:
    """Down-sample, validate and store an import; returns the response body."""
    sampled = reduce_rows(
        rows,
        ReduceOptions(max_rows=IMPORT_MAX_ROWS, sampling_strategy=SamplingStrategy.evenly),
    )
    try:
        dataset = Dataset(headers=headers, rows=sampled)
    except (DatasetError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid dataset: {e}")

    meta: DatasetMeta = save_dataset(
        sid,
        dataset,
        name=name,
        original_row_count=len(rows),
        content_hash=content_hash,
    )
    return {
        "ok": True,
        "dataset": meta.model_dump(by_alias=True),
        "sampled": meta.row_count < meta.original_row_count,
        "stats": dataset_stats(dataset),
    }


@app.post("/datasets")
async def import_dataset(request: Request, body: DatasetImport):
    """Import rows already parsed by the client (API and JSON imports)."""
    sid = require_session_id(request)

    content_hash = _sha256_bytes(
        json.dumps(body.model_dump(), sort_keys=True, default=str).encode("utf-8")
    )
    existing = find_by_hash(sid, content_hash)
    if existing is not None:
        return _duplicate_response("IMPORT", existing)

    resp = _store(sid, body.name or "dataset", body.headers, body.rows, content_hash)
    _log_response("IMPORT", {k: v for k, v in resp.items() if k != "stats"})
    return resp


@app.post("/datasets/upload")
async def upload(request: Request, file: UploadFile = File(...)):
    sid = require_session_id(request)
    content = await file.read()
    filename = file.filename or "table.csv"

    # duplicate detection (by content hash)
    file_hash = _sha256_bytes(content)
    existing: Optional[str] = find_by_hash(sid, file_hash)
    if existing is not None:
        return _duplicate_response("UPLOAD", existing)

    try:
        df = pd.read_csv(io.BytesIO(content))
    except (ValueError, UnicodeDecodeError, pd.errors.ParserError) as e:
        logger.exception("Failed to read CSV")
        raise HTTPException(status_code=400, detail=f"Failed to read CSV: {e}")

    df.columns = [str(c) for c in df.columns]
    headers = list(df.columns)
    rows = df_to_records_safe(df)

    name = filename.rsplit(".", 1)[0] if "." in filename else filename
    resp = _store(sid, name, headers, rows, file_hash)
    _log_response("UPLOAD", {k: v for k, v in resp.items() if k != "stats"})
    return resp
