"""
Infrastructure package for the consolidation pipeline.

This package contains infrastructure components including table access, logging,
configuration management, and other cross-cutting concerns.
"""
