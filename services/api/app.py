# services/api/app.py
from __future__ import annotations

import csv
import logging
import os
import time
import uuid
from pathlib import Path
from typing import List

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum
from pydantic import BaseModel, Field

from services.workers.analysis import AnalysisConfig, inspect_dataset, run_analysis
from services.workers.analysis.core.constants import DEFAULT_MAX_COLUMNS, DEFAULT_MAX_GROUPS

from .registry import DatasetRegistry

# ---- Env ----
ARTIFACT_ROOT = os.environ.get("ARTIFACT_ROOT", "artifacts")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# ---- Logging ----
logger = logging.getLogger("biomarker.api")
if not logger.handlers:
    logging.basicConfig(level=LOG_LEVEL)
logger.setLevel(LOG_LEVEL)

# ---- App ----
app = FastAPI(title="Biomarker Analysis API")
registry = DatasetRegistry()

# --- CORS for local dashboard ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
    allow_credentials=False,
)


# ---- Models ----
DATASET_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"


class RegisterDataset(BaseModel):
    """Request payload for registering a local CSV/TSV file."""
    path: str
    dataset_id: str | None = Field(default=None, pattern=DATASET_ID_PATTERN)
    delimiter: str | None = Field(default=None, min_length=1, max_length=1)
    has_headers: bool = True


class AnalysisRequest(BaseModel):
    dataset_id: str
    target_column: str | None = None
    group_column: str | None = None
    covariates: List[str] = Field(default_factory=list)
    boxplot_column: str | None = None
    max_columns: int = Field(default=DEFAULT_MAX_COLUMNS, ge=1)
    max_groups: int = Field(default=DEFAULT_MAX_GROUPS, ge=1)

    def to_config(self) -> AnalysisConfig:
        return AnalysisConfig.from_request(self.model_dump(exclude={"dataset_id"}))


def output_dir_for(dataset_id: str) -> Path:
    base = (Path(ARTIFACT_ROOT) / "analysis").resolve()
    candidate = (base / dataset_id).resolve()
    if candidate.parent != base:
        raise HTTPException(status_code=400, detail="Invalid dataset_id")
    return candidate


# ---- Routes ----
@app.get("/health")
def health():
    return {"ok": True}


@app.post("/datasets")
def register_dataset(body: RegisterDataset):
    if not os.path.isfile(body.path):
        raise HTTPException(status_code=400, detail="Dataset path does not exist")
    try:
        handle = inspect_dataset(
            body.path,
            body.dataset_id,
            delimiter=body.delimiter,
            has_headers=body.has_headers,
        )
    except (OSError, csv.Error, UnicodeDecodeError):
        logger.exception("dataset inspection failed", extra={"path": body.path})
        raise HTTPException(status_code=400, detail="Dataset could not be read")
    registry.register(handle)
    logger.info(
        "dataset registered",
        extra={"dataset_id": handle.dataset_id, "rows": handle.row_count},
    )
    return handle.to_dict()


@app.get("/datasets")
def list_datasets():
    return {"datasets": [handle.to_dict() for handle in registry.list()]}


@app.get("/datasets/{dataset_id}")
def get_dataset(dataset_id: str):
    handle = registry.get(dataset_id)
    if handle is None:
        raise HTTPException(status_code=404, detail="Dataset not found")
    return handle.to_dict()


@app.post("/api/analysis")
def analyze(body: AnalysisRequest):
    handle = registry.get(body.dataset_id)
    if handle is None:
        raise HTTPException(status_code=404, detail="Dataset not found")

    config = body.to_config()
    try:
        run = run_analysis(handle, config, output_dir_for(handle.dataset_id))
    except (OSError, csv.Error, UnicodeDecodeError):
        logger.exception("analysis failed", extra={"dataset_id": handle.dataset_id})
        raise HTTPException(status_code=500, detail="Analysis failed")

    artifacts = run.artifacts.to_dict()
    return {
        "status": "success",
        "dataset_id": handle.dataset_id,
        "summary": artifacts["summary"],
        "descriptive_stats": artifacts["descriptive_stats"],
        "regressions": artifacts["regressions"],
        "novelty_scores": artifacts["novelty_scores"],
        "biomarker_candidates": artifacts["biomarker_candidates"],
        "manuscript": run.manuscript,
        "artifacts": [item.to_dict() for item in run.files],
    }


# ---- Middleware ----
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    try:
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            "request completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            },
        )
        response.headers.setdefault("x-request-id", request_id)
        return response
    except Exception:
        duration_ms = int((time.time() - start) * 1000)
        logger.exception(
            "request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "request_id": request_id,
                "duration_ms": duration_ms,
            },
        )
        raise


# Lambda entry point (module scope)
handler = Mangum(app)
