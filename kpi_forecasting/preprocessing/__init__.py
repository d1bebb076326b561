"""
Feature engineering for quarterly KPI series.
"""

from .feature_builder import FeatureBuilder, TrainingData, BASE_FEATURE_NAMES

__all__ = ["FeatureBuilder", "TrainingData", "BASE_FEATURE_NAMES"]
