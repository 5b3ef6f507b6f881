"""
Presentation package for the consolidation pipeline.
"""
