"""
Flatten stored detection results for audit download, and read batch uploads.

CSV export keeps every DetectionResult field verbatim. Fields containing the
separator, quotes or newlines are quoted with embedded quotes doubled.
"""

from __future__ import annotations

import csv
import io
import json
import re
from typing import Any, Dict, Iterable, List

from detection.errors import InvalidInput
from models.detection import StoredResult
from runtime.services import BatchRow

NOTES_SEPARATOR = "; "

CSV_COLUMNS = [
    "claim_id",
    "region",
    "created_at",
    "sample_id",
    "lat",
    "lon",
    "has_solar",
    "confidence",
    "panel_count_est",
    "pv_area_sqm_est",
    "capacity_kw_est",
    "qc_status",
    "qc_notes",
    "bbox_or_mask",
    "image_source",
    "image_capture_date",
    "processing_time_ms",
]

# Accepted header spellings for batch uploads, after normalization
_BATCH_ALIASES = {
    "claim_id": ("claim_id", "claimid", "application_id"),
    "sample_id": ("sample_id", "sampleid", "id"),
    "lat": ("latitude", "lat"),
    "lon": ("longitude", "lon", "lng"),
    "region": ("region", "state"),
}


def result_row(stored: StoredResult) -> Dict[str, Any]:
    """Flatten a stored result into one export row keyed by CSV_COLUMNS."""
    r = stored.result
    return {
        "claim_id": stored.claim_id,
        "region": stored.region or "",
        "created_at": stored.created_at,
        "sample_id": r.sample_id,
        "lat": r.lat,
        "lon": r.lon,
        "has_solar": r.has_solar,
        "confidence": r.confidence,
        "panel_count_est": r.panel_count_est,
        "pv_area_sqm_est": r.pv_area_sqm_est,
        "capacity_kw_est": r.capacity_kw_est,
        "qc_status": r.qc_status.value,
        "qc_notes": NOTES_SEPARATOR.join(r.qc_notes),
        "bbox_or_mask": r.bbox_or_mask,
        "image_source": r.image_metadata.source,
        "image_capture_date": r.image_metadata.capture_date,
        "processing_time_ms": r.processing_time_ms,
    }


def export_csv(records: Iterable[StoredResult]) -> str:
    """Render records as CSV text with a header row."""
    buf = io.StringIO()
    writer = csv.DictWriter(
        buf,
        fieldnames=CSV_COLUMNS,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\n",
    )
    writer.writeheader()
    for stored in records:
        writer.writerow(result_row(stored))
    return buf.getvalue()


def export_json(records: Iterable[StoredResult]) -> str:
    """Render records as a pretty-printed JSON array."""
    return json.dumps([stored.to_dict() for stored in records], indent=2)


def _normalize_header(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", name.strip().lower())


def _pick(row: Dict[str, str], key: str) -> str:
    for alias in _BATCH_ALIASES[key]:
        value = (row.get(alias) or "").strip()
        if value:
            return value
    return ""


def parse_batch_csv(text: str) -> List[BatchRow]:
    """
    Parse a batch upload into BatchRows.

    Headers are case-insensitive; non-alphanumerics become '_'. Rows without
    a sample id get BATCH-<line>. The claim id defaults to the sample id.

    Raises:
        InvalidInput: a row has missing or non-numeric coordinates.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff"), newline=""))
    records = (values for values in reader if any(v.strip() for v in values))

    header = next(records, None)
    if header is None:
        return []
    headers = [_normalize_header(h) for h in header]

    rows: List[BatchRow] = []
    for values in records:
        # physical line where the record starts; quoted fields may span lines
        line_no = reader.line_num - sum(v.count("\n") for v in values)
        raw = {h: v for h, v in zip(headers, values)}
        sample_id = _pick(raw, "sample_id") or f"BATCH-{line_no}"
        try:
            lat = float(_pick(raw, "lat"))
            lon = float(_pick(raw, "lon"))
        except ValueError as e:
            raise InvalidInput(f"line {line_no}: latitude/longitude must be numbers") from e
        rows.append(
            BatchRow(
                claim_id=_pick(raw, "claim_id") or sample_id,
                sample_id=sample_id,
                lat=lat,
                lon=lon,
                region=_pick(raw, "region") or None,
            )
        )
    return rows
