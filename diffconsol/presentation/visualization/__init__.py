"""
Visualization package for the consolidation pipeline.
"""

from .plot_generator import PlotGenerator

__all__ = ["PlotGenerator"]
