"""Persistent cache of analysis results."""

from .analysis_cache import AnalysisCache, CacheEntry

__all__ = ["AnalysisCache", "CacheEntry"]
