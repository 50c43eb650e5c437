"""
Errors raised by the detection engine and its backends.
"""

from __future__ import annotations


class DetectionError(Exception):
    """Base class for detection failures."""


class InvalidInput(DetectionError, ValueError):
    """Malformed request: missing sample id or coordinates out of range."""


class DetectionUnavailable(DetectionError):
    """
    The inference backend could not produce a result (unreachable, timed out,
    or returned an unusable payload). Callers may retry with backoff.
    """

    retryable = True
