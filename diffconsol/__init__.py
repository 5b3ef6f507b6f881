"""
Differential Result Consolidation Package

Consolidates differential expression, differential binding and proteomics
result tables from a knockdown study. This package provides a clean, modular
architecture with separation of concerns for loading result tables,
statistical consolidation, cross-platform integration and visualization.
"""

__version__ = "0.3.0"
