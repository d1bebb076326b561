"""
Performance-weighted ensemble prediction.
"""

from .ensemble_predictor import (
    EnsemblePredictor,
    PredictionResult,
    ModelExplanation,
    FeatureImportance
)

__all__ = ["EnsemblePredictor", "PredictionResult", "ModelExplanation", "FeatureImportance"]
