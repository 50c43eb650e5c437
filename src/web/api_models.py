from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DetectRequestModel(BaseModel):
    sample_id: str = Field(..., min_length=1, description="Caller-supplied sample identifier")
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    claim_id: Optional[str] = Field(None, description="Owning claim; defaults to sample_id")
    region: Optional[str] = None
    image_base64: Optional[str] = Field(None, description="Base64-encoded PNG/JPEG rooftop image")


class ImageMetadataModel(BaseModel):
    source: str
    capture_date: str = Field(..., description="YYYY-MM-DD")


class DetectionResultModel(BaseModel):
    sample_id: str
    lat: float
    lon: float
    has_solar: bool
    confidence: float
    panel_count_est: int
    pv_area_sqm_est: float
    capacity_kw_est: float
    qc_status: str = Field(..., description="VERIFIABLE|NOT_VERIFIABLE")
    qc_notes: List[str]
    bbox_or_mask: str
    image_metadata: ImageMetadataModel
    processing_time_ms: int


class StoredResultModel(BaseModel):
    claim_id: str
    region: Optional[str]
    created_at: float
    result: DetectionResultModel


class SummaryResponse(BaseModel):
    total: int
    solar_detected: int
    detection_rate: int
    verifiable: int
    not_verifiable: int
    avg_confidence: int
    total_capacity_kw: float
    total_panels: int


class RegionStatsModel(BaseModel):
    region: str
    total: int
    detected: int
    verifiable: int
    capacity_kw: float
    panels: int


class HealthResponse(BaseModel):
    status: str = Field(..., description="ok|degraded")
    backend: Optional[str]
    database: bool
    results_stored: int
    disk: Dict[str, Optional[float]]
    timestamp: float
