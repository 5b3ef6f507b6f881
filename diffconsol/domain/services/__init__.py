"""
Statistical services package for the consolidation pipeline.
"""

from .count_processor import CountProcessor
from .integration_analyzer import IntegrationAnalyzer
from .intersection_union import IntersectionUnionConsolidator
from .region_combiner import RegionCombiner
from .region_merger import RegionMerger

__all__ = [
    "CountProcessor",
    "IntegrationAnalyzer",
    "IntersectionUnionConsolidator",
    "RegionCombiner",
    "RegionMerger",
]
