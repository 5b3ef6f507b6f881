"""
This package contains the domain layer for the consolidation pipeline.

The domain layer is responsible for the statistical consolidation logic.
"""

from .exceptions import (
    ConsolidationError,
    FeatureUniverseMismatchError,
    MissingColumnError,
)
from .models import (
    ConsolidationConfig,
    ContrastTable,
    IntegrationResult,
    IUTResult,
    RegionResult,
    WindowSet,
)

__all__ = [
    "ConsolidationConfig",
    "ConsolidationError",
    "ContrastTable",
    "FeatureUniverseMismatchError",
    "IntegrationResult",
    "IUTResult",
    "MissingColumnError",
    "RegionResult",
    "WindowSet",
]
