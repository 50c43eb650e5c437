"""
Solar Verification - Detection Module

Scores a rooftop sample for solar presence, runs quality control and
synthesizes panel bounding boxes.
"""

from .errors import DetectionError, DetectionUnavailable, InvalidInput
from .engine import DetectionEngine, create_engine_from_config, unavailable_result, validate_input

__all__ = [
    'DetectionEngine',
    'create_engine_from_config',
    'unavailable_result',
    'validate_input',
    'DetectionError',
    'DetectionUnavailable',
    'InvalidInput',
]
