"""
Physical estimates derived from a panel count.
"""

from __future__ import annotations

from models.config import PhysicsConfig


def estimate_area(panel_count: int, physics: PhysicsConfig) -> float:
    """PV area in square metres, rounded to 1 decimal."""
    return round(panel_count * physics.avg_panel_area_sqm, 1)


def estimate_capacity(area_sqm: float, physics: PhysicsConfig) -> float:
    """Installed capacity in kW from the rounded area, rounded to 1 decimal."""
    return round(area_sqm * physics.watt_per_sqm / 1000, 1)
