"""
Pipeline module for PROMOLIFT.

Service facade over baseline calculation and volume decomposition.
"""

from promolift.pipeline.service import BaselineService

__all__ = ["BaselineService"]
