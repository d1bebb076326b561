"""
Utility modules for the KPI forecasting engine

Provides common utilities for logging, fit metrics, exception handling,
quarter-period arithmetic and series normalization.
"""

from .logger import get_logger, configure_logging, LoggerMixin, timed_operation
from .exceptions import (
    KPIForecastingException,
    InsufficientDataException,
    InvalidDataException,
    ModelNotFoundException,
    UnsupportedModelTypeException,
    EmptyEnsembleException,
    DuplicateModelException,
    ModelTrainingException,
    PredictionException,
    create_error_response
)
from .metrics import ModelPerformance, calculate_fit_metrics, population_std, population_variance
from .helpers import (
    Observation,
    validate_period,
    parse_period,
    shift_period,
    normalize_series,
    normalize_extra_features,
    round_to_precision,
    safe_divide
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "LoggerMixin",
    "timed_operation",

    # Exceptions
    "KPIForecastingException",
    "InsufficientDataException",
    "InvalidDataException",
    "ModelNotFoundException",
    "UnsupportedModelTypeException",
    "EmptyEnsembleException",
    "DuplicateModelException",
    "ModelTrainingException",
    "PredictionException",
    "create_error_response",

    # Metrics
    "ModelPerformance",
    "calculate_fit_metrics",
    "population_std",
    "population_variance",

    # Helpers
    "Observation",
    "validate_period",
    "parse_period",
    "shift_period",
    "normalize_series",
    "normalize_extra_features",
    "round_to_precision",
    "safe_divide"
]
