"""
Runtime services that drive the detection engine for claims.
"""

from .services import BatchOutcome, BatchRow, VerificationService

__all__ = ['BatchOutcome', 'BatchRow', 'VerificationService']
