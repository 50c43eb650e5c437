"""
Solar Verification - Storage Module

Persists detection results keyed by their owning claim.
"""

from .database import Database

__all__ = ['Database']
