"""
KPI Forecasting Engine

Time-series forecasting for quarterly business KPIs. Turns a series of
"YYYY-Qn" observations into trained models, a seasonal decomposition and a
multi-step forecast with cross-model confidence bounds.

Key Features:
- Lag, trend, volatility and quarter features with optional external features
- Linear, polynomial and exponential smoothing estimators
- R²-weighted ensemble prediction with a fixed explanation block
- Auto-regressive multi-quarter forecasting
- Additive seasonal decomposition with seasonal strength
- In-memory model registry with age-based cleanup
"""

import logging

# Версия пакета
__version__ = "1.0.0"
__license__ = "MIT"

# Настройка логирования
logging.getLogger(__name__).addHandler(logging.NullHandler())

from .forecasting.forecast_engine import ForecastEngine, ForecastResult, ForecastPoint
from .preprocessing.feature_builder import FeatureBuilder, TrainingData
from .models.estimators import (
    ModelType,
    LinearRegressionModel,
    PolynomialRegressionModel,
    ExponentialSmoothingModel
)
from .models.trainer import ModelTrainer
from .seasonality.seasonal_decomposer import SeasonalDecomposer, SeasonalityResult
from .ensemble.ensemble_predictor import EnsemblePredictor, PredictionResult
from .registry.model_registry import ModelRegistry
from .config.engine_config import EngineConfig, get_config
from .utils.helpers import Observation
from .utils.logger import get_logger, configure_logging
from .utils.exceptions import (
    KPIForecastingException,
    InsufficientDataException,
    InvalidDataException,
    ModelNotFoundException,
    UnsupportedModelTypeException,
    EmptyEnsembleException
)

__all__ = [
    # Core classes
    "ForecastEngine",
    "ForecastResult",
    "ForecastPoint",
    "FeatureBuilder",
    "TrainingData",
    "ModelTrainer",
    "SeasonalDecomposer",
    "SeasonalityResult",
    "EnsemblePredictor",
    "PredictionResult",
    "ModelRegistry",

    # Models
    "ModelType",
    "LinearRegressionModel",
    "PolynomialRegressionModel",
    "ExponentialSmoothingModel",

    # Configuration
    "EngineConfig",
    "get_config",

    # Utilities
    "Observation",
    "get_logger",
    "configure_logging",

    # Exceptions
    "KPIForecastingException",
    "InsufficientDataException",
    "InvalidDataException",
    "ModelNotFoundException",
    "UnsupportedModelTypeException",
    "EmptyEnsembleException",
]
