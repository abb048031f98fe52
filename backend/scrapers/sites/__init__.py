"""Site-specific extractors."""

from .idealista import ListingSummaryExtractor, DetailExtractor, resolve_url

__all__ = ['ListingSummaryExtractor', 'DetailExtractor', 'resolve_url']
