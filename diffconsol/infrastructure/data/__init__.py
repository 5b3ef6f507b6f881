"""
Data access package for the consolidation pipeline.

This package contains loading and saving components for result tables, count
matrices, gene annotation and genome tracks.
"""

from .data_loader import ResultTableLoader
from .data_saver import ResultTableSaver

__all__ = ["ResultTableLoader", "ResultTableSaver"]
