from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from analytics.summary import by_region, summarize
from detection.errors import InvalidInput
from export.exporter import export_csv, export_json
from inference.image import decode_image

from ..api_models import (
    DetectRequestModel,
    DetectionResultModel,
    HealthResponse,
    RegionStatsModel,
    StoredResultModel,
    SummaryResponse,
)
from ..services.health_service import HealthService
from ..state import state

router = APIRouter()


def _require_service():
    if state.service is None:
        raise HTTPException(status_code=503, detail="verification service not initialized")
    return state.service


def _require_database():
    if state.database is None:
        raise HTTPException(status_code=503, detail="database not initialized")
    return state.database


def _decode_upload(image_base64: Optional[str]):
    """Decode an optional base64 image; bad payloads are the caller's error."""
    if not image_base64:
        return None
    try:
        raw = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInput("image_base64 is not valid base64") from e
    return decode_image(raw)


@router.post("/detect", response_model=DetectionResultModel)
async def detect(req: DetectRequestModel):
    """
    Run detection for one claim and persist the result.

    Returns 400 for malformed input. Backend outages do not fail the request:
    the claim gets a NOT_VERIFIABLE result noting that automated detection was
    unavailable.
    """
    service = _require_service()
    try:
        image = await asyncio.to_thread(_decode_upload, req.image_base64)
        result = await service.verify_async(
            claim_id=req.claim_id or req.sample_id,
            sample_id=req.sample_id,
            lat=req.lat,
            lon=req.lon,
            image=image,
            region=req.region,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()


@router.get("/results", response_model=List[StoredResultModel])
def list_results(limit: Optional[int] = None):
    db = _require_database()
    return [stored.to_dict() for stored in db.list_results(limit=limit)]


@router.get("/results/{claim_id}", response_model=StoredResultModel)
def get_result(claim_id: str):
    db = _require_database()
    stored = db.get_result(claim_id)
    if stored is None:
        raise HTTPException(status_code=404, detail=f"no result for claim {claim_id}")
    return stored.to_dict()


@router.get("/export.csv")
def export_results_csv():
    db = _require_database()
    body = export_csv(db.list_results())
    filename = f"solar-verifications-{time.strftime('%Y-%m-%d')}.csv"
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export.json")
def export_results_json():
    db = _require_database()
    body = export_json(db.list_results())
    filename = f"all-verifications-{time.strftime('%Y-%m-%d')}.json"
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/stats/summary", response_model=SummaryResponse)
def stats_summary():
    db = _require_database()
    return summarize(db.list_results())


@router.get("/stats/regions", response_model=List[RegionStatsModel])
def stats_regions(limit: int = 10):
    db = _require_database()
    return by_region(db.list_results(), limit=limit)


@router.get("/health", response_model=HealthResponse)
def health():
    """
    Service health for monitoring.
    - status: ok when the service and database are wired, degraded otherwise
    - backend: configured detection backend
    - results_stored: rows in the results table
    - disk: usage of the volume holding the database
    """
    report = HealthService(state.get_config_copy() or {}).report(state.database, state.service)
    return HealthResponse(**report)
