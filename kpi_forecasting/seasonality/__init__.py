"""
Seasonal decomposition of quarterly series.
"""

from .seasonal_decomposer import SeasonalDecomposer, SeasonalityResult, SeasonalPatternEntry

__all__ = ["SeasonalDecomposer", "SeasonalityResult", "SeasonalPatternEntry"]
