"""
KPI forecasting models

Linear regression, polynomial regression and exponential smoothing
estimators plus the trainer that registers them.
"""

from .estimators import (
    ModelType,
    BaseTrainedModel,
    LinearRegressionModel,
    PolynomialRegressionModel,
    ExponentialSmoothingModel,
    TrainedModel,
    SUPPORTED_MODEL_CLASSES,
    fit_linear_regression,
    fit_polynomial_regression,
    fit_exponential_smoothing,
    optimize_alpha
)
from .trainer import ModelTrainer

__all__ = [
    "ModelType",
    "BaseTrainedModel",
    "LinearRegressionModel",
    "PolynomialRegressionModel",
    "ExponentialSmoothingModel",
    "TrainedModel",
    "SUPPORTED_MODEL_CLASSES",
    "fit_linear_regression",
    "fit_polynomial_regression",
    "fit_exponential_smoothing",
    "optimize_alpha",
    "ModelTrainer"
]
