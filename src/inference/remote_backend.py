"""
Remote inference backend (production path).

Talks to an HTTP model server exposing:
- POST {url}/presence -> {"has_solar", "confidence", "panel_count", "quality_signal"}
- POST {url}/localize -> {"boxes": [[x, y, w, h, conf?], ...]}

Any transport or payload problem surfaces as DetectionUnavailable so the
calling workflow can retry or fall back.
"""

from __future__ import annotations

import base64
import logging
import math
from typing import Any, Dict, List

import requests

from detection.errors import DetectionUnavailable
from models.config import RemoteBackendConfig
from models.detection import DetectionRequest, PanelBox, PresenceEstimate

from .backend import Localizer, PresenceClassifier
from .image import encode_png


class RemoteInferenceBackend(PresenceClassifier, Localizer):
    def __init__(self, cfg: RemoteBackendConfig, session: requests.Session | None = None):
        if not cfg.url:
            raise ValueError("detection.remote.url is required for the remote backend")
        self.cfg = cfg
        self._session = session or requests.Session()

    def _payload(self, request: DetectionRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sample_id": request.sample_id,
            "lat": request.lat,
            "lon": request.lon,
        }
        if request.image is not None:
            payload["image_b64"] = base64.b64encode(encode_png(request.image)).decode("ascii")
        return payload

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.cfg.url.rstrip('/')}/{endpoint}"
        headers = {"User-Agent": "SolarVerify/0.1"}
        if self.cfg.api_key:
            headers["Authorization"] = f"Bearer {self.cfg.api_key}"

        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=self.cfg.timeout_s)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.Timeout as e:
            raise DetectionUnavailable(f"inference backend timed out: {url}") from e
        except requests.exceptions.HTTPError as e:
            raise DetectionUnavailable(
                f"inference backend returned HTTP {e.response.status_code}: {url}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise DetectionUnavailable(f"inference backend unreachable: {e}") from e
        except ValueError as e:
            raise DetectionUnavailable(f"inference backend returned invalid JSON: {url}") from e

        if not isinstance(body, dict):
            raise DetectionUnavailable(f"unexpected response from inference backend: {url}")
        return body

    def presence(self, request: DetectionRequest) -> PresenceEstimate:
        body = self._post("presence", self._payload(request))
        try:
            has_solar = bool(body["has_solar"])
            estimate = PresenceEstimate(
                has_solar=has_solar,
                confidence=min(1.0, max(0.0, float(body["confidence"]))),
                panel_count=max(0, int(body.get("panel_count", 0))) if has_solar else 0,
                quality_signal=float(body.get("quality_signal", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DetectionUnavailable(f"malformed presence response: {e}") from e
        logging.debug(f"Remote presence for {request.sample_id}: {estimate}")
        return estimate

    def localize(self, request: DetectionRequest, count: int) -> List[PanelBox]:
        if count <= 0:
            return []
        payload = self._payload(request)
        payload["count"] = count
        body = self._post("localize", payload)
        try:
            boxes = []
            for row in body["boxes"]:
                conf = None
                if len(row) > 4 and row[4] is not None:
                    conf = float(row[4])
                    if not math.isfinite(conf) or not 0.0 <= conf <= 1.0:
                        raise ValueError(f"box confidence out of range: {row[4]}")
                    conf = round(conf, 2)
                boxes.append(
                    PanelBox(
                        x=max(0, int(row[0])),
                        y=max(0, int(row[1])),
                        w=max(0, int(row[2])),
                        h=max(0, int(row[3])),
                        confidence=conf,
                    )
                )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise DetectionUnavailable(f"malformed localize response: {e}") from e
        return boxes
