"""
Detection models for rooftop solar verification results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class QcStatus(str, Enum):
    """Quality-control verdict for a detection result."""
    VERIFIABLE = "VERIFIABLE"
    NOT_VERIFIABLE = "NOT_VERIFIABLE"


@dataclass(frozen=True)
class PanelBox:
    """
    One detected panel in the reference image frame.

    Attributes:
        x: Left edge x coordinate.
        y: Top edge y coordinate.
        w: Box width.
        h: Box height.
        confidence: Per-box confidence, or None when the source did not report one.
    """
    x: int
    y: int
    w: int
    h: int
    confidence: Optional[float] = None

    @property
    def area(self) -> int:
        return self.w * self.h

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """Return as (x, y, w, h) tuple."""
        return (self.x, self.y, self.w, self.h)

    def to_token(self) -> str:
        """Serialize as a single bbox token: [x,y,w,h] or [x,y,w,h,conf]."""
        if self.confidence is None:
            return f"[{self.x},{self.y},{self.w},{self.h}]"
        return f"[{self.x},{self.y},{self.w},{self.h},{self.confidence:.2f}]"


@dataclass(frozen=True)
class ImageMetadata:
    """Where the analysed imagery came from and when it was captured."""
    source: str
    capture_date: str

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "capture_date": self.capture_date}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ImageMetadata":
        return cls(source=d.get("source", ""), capture_date=d.get("capture_date", ""))


@dataclass(frozen=True)
class DetectionRequest:
    """
    Input to the inference backends.

    image is an already-decoded frame (H, W, 3) or None when only the
    coordinates are available.
    """
    sample_id: str
    lat: float
    lon: float
    image: Optional[np.ndarray] = field(default=None, compare=False)


@dataclass(frozen=True)
class PresenceEstimate:
    """
    Output of a presence classifier.

    Attributes:
        has_solar: Whether panels are believed to be present.
        confidence: Unrounded confidence in [0, 1].
        panel_count: Estimated number of discrete panels (0 when has_solar is False).
        quality_signal: Secondary image-quality signal in [0, 1), used to settle
            the mid confidence QC band.
    """
    has_solar: bool
    confidence: float
    panel_count: int = 0
    quality_signal: float = 0.0


@dataclass(frozen=True)
class DetectionResult:
    """
    Structured report produced by the detection engine for one sample.

    Attributes mirror the exported JSON document. qc_notes is kept as a tuple
    so the result stays immutable.
    """
    sample_id: str
    lat: float
    lon: float
    has_solar: bool
    confidence: float
    panel_count_est: int
    pv_area_sqm_est: float
    capacity_kw_est: float
    qc_status: QcStatus
    qc_notes: Tuple[str, ...]
    bbox_or_mask: str
    image_metadata: ImageMetadata
    processing_time_ms: int

    def boxes(self) -> List[PanelBox]:
        """Parse bbox_or_mask back into PanelBox objects."""
        from detection.bbox import parse_boxes
        return parse_boxes(self.bbox_or_mask)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sample_id": self.sample_id,
            "lat": self.lat,
            "lon": self.lon,
            "has_solar": self.has_solar,
            "confidence": self.confidence,
            "panel_count_est": self.panel_count_est,
            "pv_area_sqm_est": self.pv_area_sqm_est,
            "capacity_kw_est": self.capacity_kw_est,
            "qc_status": self.qc_status.value,
            "qc_notes": list(self.qc_notes),
            "bbox_or_mask": self.bbox_or_mask,
            "image_metadata": self.image_metadata.to_dict(),
            "processing_time_ms": self.processing_time_ms,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionResult":
        """Adapter: Create from a dictionary in the exported JSON shape."""
        return cls(
            sample_id=d["sample_id"],
            lat=d["lat"],
            lon=d["lon"],
            has_solar=bool(d["has_solar"]),
            confidence=float(d["confidence"]),
            panel_count_est=int(d["panel_count_est"]),
            pv_area_sqm_est=float(d["pv_area_sqm_est"]),
            capacity_kw_est=float(d["capacity_kw_est"]),
            qc_status=QcStatus(d["qc_status"]),
            qc_notes=tuple(d.get("qc_notes") or ()),
            bbox_or_mask=d.get("bbox_or_mask", ""),
            image_metadata=ImageMetadata.from_dict(d.get("image_metadata") or {}),
            processing_time_ms=int(d.get("processing_time_ms", 0)),
        )


@dataclass(frozen=True)
class StoredResult:
    """
    A detection result as persisted against its owning claim.

    Attributes:
        claim_id: Identifier of the claim record that owns the result.
        result: The detection result.
        region: Optional region/state of the claim, used for analytics.
        created_at: Unix timestamp when the result was stored.
    """
    claim_id: str
    result: DetectionResult
    region: Optional[str] = None
    created_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claim_id": self.claim_id,
            "region": self.region,
            "created_at": self.created_at,
            "result": self.result.to_dict(),
        }
