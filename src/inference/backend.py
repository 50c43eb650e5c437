"""
Inference backend interfaces.

The engine depends only on these two capabilities so the simulated backend
and a real model can be swapped without touching callers:
- presence: is there solar on this roof, how confident, how many panels
- localize: where are the panels in the reference frame
"""

from __future__ import annotations

from typing import List, Protocol

from models.detection import DetectionRequest, PanelBox, PresenceEstimate


class PresenceClassifier(Protocol):
    def presence(self, request: DetectionRequest) -> PresenceEstimate:
        ...


class Localizer(Protocol):
    def localize(self, request: DetectionRequest, count: int) -> List[PanelBox]:
        ...
