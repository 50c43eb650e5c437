"""
Image decoding helpers for uploaded rooftop imagery.
"""

from __future__ import annotations

import cv2
import numpy as np

from detection.errors import DetectionUnavailable, InvalidInput


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode an encoded image (PNG/JPEG/...) into a BGR frame.

    Raises:
        InvalidInput: if the payload is empty or not a decodable image.
    """
    if not data:
        raise InvalidInput("image payload is empty")
    buf = np.frombuffer(data, dtype=np.uint8)
    frame = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if frame is None:
        raise InvalidInput("image payload could not be decoded")
    return frame


def encode_png(frame: np.ndarray) -> bytes:
    """Encode a frame as PNG bytes for upload to a remote backend."""
    ok, buf = cv2.imencode(".png", frame)
    if not ok:
        raise DetectionUnavailable("failed to encode image for inference")
    return buf.tobytes()
