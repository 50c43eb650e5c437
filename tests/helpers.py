"""
Builders for detection results used across tests.
"""

from models.detection import DetectionResult, ImageMetadata, QcStatus, StoredResult


def make_result(
    sample_id="S1",
    has_solar=True,
    confidence=0.92,
    panels=14,
    qc_status=QcStatus.VERIFIABLE,
    qc_notes=("clear roof view", "large installation detected"),
    bbox="[100,120,80,45,0.91];[190,121,78,44]",
):
    area = round(panels * 1.7, 1)
    return DetectionResult(
        sample_id=sample_id,
        lat=12.9716,
        lon=77.5946,
        has_solar=has_solar,
        confidence=confidence,
        panel_count_est=panels,
        pv_area_sqm_est=area,
        capacity_kw_est=round(area * 180 / 1000, 1),
        qc_status=qc_status,
        qc_notes=tuple(qc_notes),
        bbox_or_mask=bbox,
        image_metadata=ImageMetadata(source="Satellite/Manual Upload", capture_date="2026-01-15"),
        processing_time_ms=12,
    )


def make_no_solar(sample_id="S2"):
    return make_result(
        sample_id=sample_id,
        has_solar=False,
        confidence=0.25,
        panels=0,
        qc_status=QcStatus.NOT_VERIFIABLE,
        qc_notes=("insufficient image quality", "heavy shadow/cloud cover"),
        bbox="",
    )


def stored(result, claim_id=None, region=None, created_at=1000.0):
    return StoredResult(
        claim_id=claim_id or result.sample_id,
        result=result,
        region=region,
        created_at=created_at,
    )
