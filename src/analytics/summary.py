"""
Aggregate statistics over stored detection results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from models.detection import QcStatus, StoredResult

UNKNOWN_REGION = "Unknown"


@dataclass
class RegionStats:
    region: str
    total: int = 0
    detected: int = 0
    verifiable: int = 0
    capacity_kw: float = 0.0
    panels: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "total": self.total,
            "detected": self.detected,
            "verifiable": self.verifiable,
            "capacity_kw": round(self.capacity_kw, 1),
            "panels": self.panels,
        }


def summarize(records: Iterable[StoredResult]) -> Dict[str, Any]:
    """
    Portfolio-level totals.

    Rates and average confidence are percentages rounded to whole numbers;
    capacity is rounded to 1 decimal.
    """
    results = [stored.result for stored in records]
    total = len(results)
    detected = sum(1 for r in results if r.has_solar)
    verifiable = sum(1 for r in results if r.qc_status == QcStatus.VERIFIABLE)
    capacity = sum(r.capacity_kw_est for r in results)
    panels = sum(r.panel_count_est for r in results)
    avg_conf = sum(r.confidence for r in results) / total if total else 0.0

    return {
        "total": total,
        "solar_detected": detected,
        "detection_rate": round(detected / total * 100) if total else 0,
        "verifiable": verifiable,
        "not_verifiable": total - verifiable,
        "avg_confidence": round(avg_conf * 100),
        "total_capacity_kw": round(capacity, 1),
        "total_panels": panels,
    }


def by_region(records: Iterable[StoredResult], limit: int = 10) -> List[Dict[str, Any]]:
    """Per-region totals, busiest regions first."""
    regions: Dict[str, RegionStats] = {}
    for stored in records:
        name = stored.region or UNKNOWN_REGION
        stats = regions.setdefault(name, RegionStats(region=name))
        r = stored.result
        stats.total += 1
        if r.has_solar:
            stats.detected += 1
        if r.qc_status == QcStatus.VERIFIABLE:
            stats.verifiable += 1
        stats.capacity_kw += r.capacity_kw_est
        stats.panels += r.panel_count_est

    ordered = sorted(regions.values(), key=lambda s: s.total, reverse=True)
    return [s.to_dict() for s in ordered[:limit]]
