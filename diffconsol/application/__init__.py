"""
This package contains the application layer for the consolidation pipeline.

The application layer is responsible for orchestrating a consolidation run.
"""

from .consolidation_service import ConsolidationService

__all__ = ["ConsolidationService"]
