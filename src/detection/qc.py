"""
Quality-control evaluation.

Maps a rounded confidence onto a QC verdict and an ordered list of notes.
Bands are checked from the highest threshold down; the first band whose
threshold the confidence exceeds wins.
"""

from __future__ import annotations

from typing import Optional, Tuple

from models.detection import QcStatus

LARGE_INSTALLATION_PANELS = 10
LARGE_INSTALLATION_NOTE = "large installation detected"
UNAVAILABLE_NOTE = "automated detection unavailable"

# (exclusive lower threshold, status, notes). status None means the band is
# settled by the secondary quality signal.
QC_BANDS: Tuple[Tuple[float, Optional[QcStatus], Tuple[str, ...]], ...] = (
    (0.85, QcStatus.VERIFIABLE, (
        "clear roof view",
        "distinct module grid detected",
        "mounting shadows visible",
    )),
    (0.70, QcStatus.VERIFIABLE, (
        "moderate image quality",
        "panel array partially visible",
    )),
    (0.50, None, (
        "low resolution imagery",
        "partial occlusion detected",
    )),
)

LOW_QUALITY_NOTES = (
    "insufficient image quality",
    "heavy shadow/cloud cover",
)

# quality_signal above this makes a mid-band result VERIFIABLE
QUALITY_SIGNAL_THRESHOLD = 0.5


def evaluate_qc(
    confidence: float,
    has_solar: bool,
    panel_count: int,
    quality_signal: float = 0.0,
) -> Tuple[QcStatus, Tuple[str, ...]]:
    """
    Derive (qc_status, qc_notes) from a confidence value.

    Args:
        confidence: Rounded confidence, the same value that is reported.
        has_solar: Whether panels were detected.
        panel_count: Estimated panel count.
        quality_signal: Secondary signal in [0, 1) for the (0.50, 0.70] band.
    """
    status = QcStatus.NOT_VERIFIABLE
    notes = LOW_QUALITY_NOTES
    for threshold, band_status, band_notes in QC_BANDS:
        if confidence > threshold:
            if band_status is None:
                band_status = (
                    QcStatus.VERIFIABLE
                    if quality_signal > QUALITY_SIGNAL_THRESHOLD
                    else QcStatus.NOT_VERIFIABLE
                )
            status, notes = band_status, band_notes
            break

    if has_solar and panel_count > LARGE_INSTALLATION_PANELS:
        notes = notes + (LARGE_INSTALLATION_NOTE,)

    return status, notes
