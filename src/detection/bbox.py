"""
Textual bounding-box encoding used by bbox_or_mask.

Grammar: boxes separated by ';' with no trailing separator, each box
"[x,y,w,h]" or "[x,y,w,h,conf]" with integer x/y/w/h and an optional
float confidence.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List

from models.detection import PanelBox

BOX_SEPARATOR = ";"
BOX_PATTERN = re.compile(r"\[(\d+),(\d+),(\d+),(\d+)(?:,(\d+(?:\.\d+)?))?\]")

# Shown for boxes that were stored without a confidence.
DEFAULT_DISPLAY_CONFIDENCE = 0.85


def encode_boxes(boxes: Iterable[PanelBox]) -> str:
    """Serialize boxes into the bbox_or_mask string ("" for no boxes)."""
    return BOX_SEPARATOR.join(box.to_token() for box in boxes)


def parse_boxes(text: str) -> List[PanelBox]:
    """
    Parse a bbox_or_mask string.

    Tokens that do not match the grammar are skipped. A missing confidence
    is returned as None, never treated as an error.
    """
    if not text:
        return []

    boxes: List[PanelBox] = []
    for token in text.split(BOX_SEPARATOR):
        match = BOX_PATTERN.search(token)
        if match is None:
            logging.debug(f"Skipping malformed bbox token: {token!r}")
            continue
        conf = match.group(5)
        boxes.append(
            PanelBox(
                x=int(match.group(1)),
                y=int(match.group(2)),
                w=int(match.group(3)),
                h=int(match.group(4)),
                confidence=float(conf) if conf is not None else None,
            )
        )
    return boxes


def display_confidence(box: PanelBox, default: float = DEFAULT_DISPLAY_CONFIDENCE) -> float:
    """Confidence to show for a box, falling back to a default when unknown."""
    return box.confidence if box.confidence is not None else default
