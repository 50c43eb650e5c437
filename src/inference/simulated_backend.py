"""
Simulated inference backend (development and test path).

Stands in for a trained detector by drawing every model output from uniform
distributions. Each request gets its own numpy Generator, so nothing is shared
between concurrent calls. With a seed configured the draws are reproducible
per sample id.
"""

from __future__ import annotations

import math
import zlib
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from models.config import GeometryConfig
from models.detection import DetectionRequest, PanelBox, PresenceEstimate

from .backend import Localizer, PresenceClassifier

# Independent random streams per request
PRESENCE_STREAM = 0
LOCALIZE_STREAM = 1

# Box layout ranges are expressed for a 640px frame and scaled to the
# configured frame size.
REFERENCE_FRAME_SIZE = 640


def request_rng(seed: Optional[int], request: DetectionRequest, stream: int) -> np.random.Generator:
    """Build the generator for one request and stream."""
    if seed is None:
        return np.random.default_rng()
    key = zlib.crc32(request.sample_id.encode("utf-8"))
    return np.random.default_rng([seed, key, stream])


@dataclass(frozen=True)
class SimulatedPresenceConfig:
    seed: Optional[int] = None
    presence_threshold: float = 0.3


class SimulatedPresenceClassifier(PresenceClassifier):
    """
    Presence/confidence/count draws:
    - has_solar when U(0,1) > presence_threshold (about 70% by default)
    - confidence 0.75 + U*0.24 with solar, 0.10 + U*0.30 without
    - panel count floor(4 + U*20) with solar, 0 without
    - quality signal U(0,1), so the mid QC band splits 50/50
    """

    def __init__(self, cfg: SimulatedPresenceConfig):
        self.cfg = cfg

    def presence(self, request: DetectionRequest) -> PresenceEstimate:
        rng = request_rng(self.cfg.seed, request, PRESENCE_STREAM)

        has_solar = bool(rng.random() > self.cfg.presence_threshold)
        if has_solar:
            confidence = 0.75 + rng.random() * 0.24
            panel_count = int(math.floor(4 + rng.random() * 20))
        else:
            confidence = 0.10 + rng.random() * 0.30
            panel_count = 0

        return PresenceEstimate(
            has_solar=has_solar,
            confidence=float(confidence),
            panel_count=panel_count,
            quality_signal=float(rng.random()),
        )


class GridLocalizer(Localizer):
    """
    Lays out `count` boxes on a jittered grid.

    One origin, panel size and gap are drawn per call; each box then gets its
    own jitter and confidence. Cells are filled row-major, so the last row may
    be partial.
    """

    def __init__(self, geometry: Optional[GeometryConfig] = None, seed: Optional[int] = None):
        self.geometry = geometry or GeometryConfig()
        self.seed = seed

    def localize(self, request: DetectionRequest, count: int) -> List[PanelBox]:
        if count <= 0:
            return []

        rng = request_rng(self.seed, request, LOCALIZE_STREAM)
        scale = self.geometry.frame_size / REFERENCE_FRAME_SIZE

        cols = math.ceil(math.sqrt(count))
        rows = math.ceil(count / cols)

        start_x = (80 + rng.random() * 100) * scale
        start_y = (80 + rng.random() * 100) * scale
        panel_w = (60 + rng.random() * 40) * scale
        panel_h = (35 + rng.random() * 25) * scale
        gap_x = (8 + rng.random() * 12) * scale
        gap_y = (6 + rng.random() * 10) * scale

        boxes: List[PanelBox] = []
        for row in range(rows):
            for col in range(cols):
                if len(boxes) >= count:
                    break
                x = start_x + col * (panel_w + gap_x) + rng.uniform(-4, 4) * scale
                y = start_y + row * (panel_h + gap_y) + rng.uniform(-3, 3) * scale
                w = panel_w + rng.uniform(-5, 5) * scale
                h = panel_h + rng.uniform(-4, 4) * scale
                boxes.append(
                    PanelBox(
                        x=max(0, int(math.floor(x))),
                        y=max(0, int(math.floor(y))),
                        w=max(1, int(math.floor(w))),
                        h=max(1, int(math.floor(h))),
                        confidence=round(0.82 + rng.random() * 0.17, 2),
                    )
                )
        return boxes
