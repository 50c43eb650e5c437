"""
Detection engine: coordinates + optional image -> DetectionResult.

The engine owns scoring, QC and quantification. Presence and localization are
delegated to inference backends so a real model can replace the simulated one
without changing callers.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import numpy as np

from inference.backend import Localizer, PresenceClassifier
from models.config import Config, PhysicsConfig
from models.detection import (
    DetectionRequest,
    DetectionResult,
    ImageMetadata,
    QcStatus,
)

from .bbox import encode_boxes
from .errors import DetectionError, DetectionUnavailable, InvalidInput
from .qc import UNAVAILABLE_NOTE, evaluate_qc
from .quantify import estimate_area, estimate_capacity

DEFAULT_IMAGE_SOURCE = "Satellite/Manual Upload"


def validate_input(sample_id: str, lat: float, lon: float) -> None:
    """
    Reject malformed requests before any scoring.

    Raises:
        InvalidInput: missing sample id, non-numeric or out-of-range coordinates.
    """
    if not isinstance(sample_id, str) or not sample_id.strip():
        raise InvalidInput("sample_id is required")
    for name, value, limit in (("lat", lat, 90.0), ("lon", lon, 180.0)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidInput(f"{name} must be a number")
        if not math.isfinite(value):
            raise InvalidInput(f"{name} must be finite")
        if value < -limit or value > limit:
            raise InvalidInput(f"{name} must be between {-limit:g} and {limit:g}, got {value}")


def _utc_today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def unavailable_result(
    sample_id: str,
    lat: float,
    lon: float,
    source: str = DEFAULT_IMAGE_SOURCE,
    processing_time_ms: int = 0,
) -> DetectionResult:
    """
    Result used when automated detection could not run.

    Always NOT_VERIFIABLE with no solar, so human review can proceed on the claim.
    """
    return DetectionResult(
        sample_id=sample_id,
        lat=lat,
        lon=lon,
        has_solar=False,
        confidence=0.0,
        panel_count_est=0,
        pv_area_sqm_est=0.0,
        capacity_kw_est=0.0,
        qc_status=QcStatus.NOT_VERIFIABLE,
        qc_notes=(UNAVAILABLE_NOTE,),
        bbox_or_mask="",
        image_metadata=ImageMetadata(source=source, capture_date=_utc_today()),
        processing_time_ms=processing_time_ms,
    )


class DetectionEngine:
    """
    Turns a sample into a DetectionResult.

    Each call is independent and shares no mutable state with other calls,
    so one engine can serve concurrent requests.

    Example:
        engine = DetectionEngine(SimulatedPresenceClassifier(cfg), GridLocalizer())
        result = engine.detect("S1", 12.9716, 77.5946)
    """

    def __init__(
        self,
        classifier: PresenceClassifier,
        localizer: Localizer,
        physics: Optional[PhysicsConfig] = None,
        image_source: str = DEFAULT_IMAGE_SOURCE,
        today: Callable[[], str] = _utc_today,
    ):
        self.classifier = classifier
        self.localizer = localizer
        self.physics = physics or PhysicsConfig()
        self.image_source = image_source
        self._today = today

    def detect(
        self,
        sample_id: str,
        lat: float,
        lon: float,
        image: Optional[np.ndarray] = None,
    ) -> DetectionResult:
        """
        Run presence, QC, quantification and localization for one sample.

        Raises:
            InvalidInput: malformed sample id or coordinates.
            DetectionUnavailable: the inference backend failed.
        """
        validate_input(sample_id, lat, lon)
        started = time.perf_counter()
        request = DetectionRequest(sample_id=sample_id, lat=lat, lon=lon, image=image)

        try:
            estimate = self.classifier.presence(request)
            has_solar = estimate.has_solar
            panel_count = estimate.panel_count if has_solar else 0
            boxes = self.localizer.localize(request, panel_count) if has_solar else []
        except DetectionError:
            raise
        except Exception as e:
            raise DetectionUnavailable(f"inference failed for {sample_id}: {e}") from e

        if has_solar and len(boxes) != panel_count:
            logging.warning(
                f"Localizer returned {len(boxes)} boxes for {panel_count} panels "
                f"({sample_id}); using box count"
            )
            boxes = boxes[:panel_count]
            panel_count = len(boxes)

        confidence = round(estimate.confidence, 2)
        qc_status, qc_notes = evaluate_qc(
            confidence, has_solar, panel_count, estimate.quality_signal
        )

        if has_solar:
            area = estimate_area(panel_count, self.physics)
            capacity = estimate_capacity(area, self.physics)
        else:
            area = 0.0
            capacity = 0.0

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        result = DetectionResult(
            sample_id=sample_id,
            lat=lat,
            lon=lon,
            has_solar=has_solar,
            confidence=confidence,
            panel_count_est=panel_count,
            pv_area_sqm_est=area,
            capacity_kw_est=capacity,
            qc_status=qc_status,
            qc_notes=qc_notes,
            bbox_or_mask=encode_boxes(boxes),
            image_metadata=ImageMetadata(source=self.image_source, capture_date=self._today()),
            processing_time_ms=elapsed_ms,
        )
        logging.info(
            f"Detection {sample_id}: has_solar={has_solar} confidence={confidence} "
            f"panels={panel_count} qc={qc_status.value} ({elapsed_ms} ms)"
        )
        return result

    async def detect_async(
        self,
        sample_id: str,
        lat: float,
        lon: float,
        image: Optional[np.ndarray] = None,
        timeout_s: Optional[float] = None,
    ) -> DetectionResult:
        """
        Run detect() in a worker thread, bounded by timeout_s.

        Cancellation of the awaiting task propagates to the caller unchanged.
        On timeout or cancellation the worker thread is abandoned, not stopped;
        it runs until the backend returns, which for the remote backend is
        bounded by detection.remote.timeout_s.

        Raises:
            DetectionUnavailable: the call did not finish within timeout_s.
        """
        validate_input(sample_id, lat, lon)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.detect, sample_id, lat, lon, image),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise DetectionUnavailable(
                f"detection for {sample_id} timed out after {timeout_s}s"
            ) from e


def create_engine_from_config(config: Config) -> DetectionEngine:
    """
    Build a DetectionEngine for the configured backend.

    Args:
        config: Typed application config.
    """
    from inference.simulated_backend import (
        GridLocalizer,
        SimulatedPresenceClassifier,
        SimulatedPresenceConfig,
    )

    det = config.detection
    if det.backend == "remote":
        from inference.remote_backend import RemoteInferenceBackend

        if det.remote is None:
            raise ValueError("detection.remote is required when detection.backend is 'remote'")
        backend = RemoteInferenceBackend(det.remote)
        classifier: PresenceClassifier = backend
        localizer: Localizer = backend
        logging.info(f"Using remote inference backend at {det.remote.url}")
    elif det.backend == "simulated":
        classifier = SimulatedPresenceClassifier(
            SimulatedPresenceConfig(seed=det.seed, presence_threshold=det.presence_threshold)
        )
        localizer = GridLocalizer(config.geometry, seed=det.seed)
        logging.info(f"Using simulated inference backend (seed={det.seed})")
    else:
        raise ValueError(f"Unknown detection backend: {det.backend}")

    return DetectionEngine(
        classifier,
        localizer,
        physics=config.physics,
        image_source=det.image_source,
    )
