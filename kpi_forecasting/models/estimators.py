"""
Trained model variants for KPI forecasting.

Three independent estimators, each a self-contained artifact with its fitted
parameters and fit quality:

- LinearRegressionModel: value ~ a + b * lag1 (ordinary least squares)
- PolynomialRegressionModel: value ~ P(lag1) of configurable order
- ExponentialSmoothingModel: simple exponential smoothing on the raw series,
  alpha chosen by grid search; predicts a flat continuation of the last level

Every variant exposes predict(features) -> (value, confidence) where the
confidence is the training R².
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Any, Union

import numpy as np
from sklearn.linear_model import LinearRegression
from sklearn.pipeline import Pipeline, make_pipeline
from sklearn.preprocessing import PolynomialFeatures

from ..utils.exceptions import InsufficientDataException, handle_training_exception
from ..utils.metrics import ModelPerformance, calculate_fit_metrics, to_numpy, ArrayLike


class ModelType(str, Enum):
    """Типы моделей движка"""
    LINEAR_REGRESSION = "linear_regression"
    POLYNOMIAL_REGRESSION = "polynomial_regression"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"
    ENSEMBLE = "ensemble"


ID_PREFIXES = {
    ModelType.LINEAR_REGRESSION: "linear",
    ModelType.POLYNOMIAL_REGRESSION: "poly",
    ModelType.EXPONENTIAL_SMOOTHING: "exp_smooth",
}


def generate_model_id(model_type: ModelType) -> str:
    """Уникальный идентификатор модели с префиксом типа"""
    return f"{ID_PREFIXES[model_type]}_{uuid.uuid4().hex}"


@dataclass
class BaseTrainedModel(ABC):
    """
    Общие поля обученной модели
    """
    model_id: str
    performance: ModelPerformance
    trained_at: datetime
    metadata: Dict[str, Any]

    model_type = None  # переопределяется в вариантах

    @abstractmethod
    def point_predict(self, features: Sequence[float]) -> float:
        """Точечный прогноз по строке признаков"""

    @abstractmethod
    def parameters(self) -> Dict[str, Any]:
        """Подобранные параметры модели"""

    def predict(self, features: Sequence[float]) -> Tuple[float, float]:
        """Прогноз и уверенность (R² на обучающих данных)"""
        return self.point_predict(features), self.performance.r2

    def info(self) -> Dict[str, Any]:
        """Описание модели для слоя представления"""
        return {
            "id": self.model_id,
            "type": self.model_type.value,
            "parameters": self.parameters(),
            "performance": self.performance.to_dict(),
            "trained_at": self.trained_at.isoformat(),
            "metadata": dict(self.metadata),
        }


@dataclass
class LinearRegressionModel(BaseTrainedModel):
    """Линейная регрессия значения на lag1"""
    estimator: LinearRegression = field(default=None, repr=False)

    model_type = ModelType.LINEAR_REGRESSION

    def point_predict(self, features: Sequence[float]) -> float:
        return float(self.estimator.predict(np.array([[float(features[0])]]))[0])

    def parameters(self) -> Dict[str, Any]:
        return {
            "intercept": float(self.estimator.intercept_),
            "slope": float(self.estimator.coef_[0]),
        }


@dataclass
class PolynomialRegressionModel(BaseTrainedModel):
    """Полиномиальная регрессия значения на lag1"""
    order: int = 2
    estimator: Pipeline = field(default=None, repr=False)

    model_type = ModelType.POLYNOMIAL_REGRESSION

    def point_predict(self, features: Sequence[float]) -> float:
        return float(self.estimator.predict(np.array([[float(features[0])]]))[0])

    def parameters(self) -> Dict[str, Any]:
        regression = self.estimator[-1]
        # Коэффициенты по возрастанию степени: c0 + c1*x + ... + cn*x^n
        return {
            "order": self.order,
            "coefficients": [float(regression.intercept_), *map(float, regression.coef_)],
        }


@dataclass
class ExponentialSmoothingModel(BaseTrainedModel):
    """Простое экспоненциальное сглаживание исходного ряда"""
    alpha: float = 0.3
    smoothed: List[float] = field(default_factory=list, repr=False)
    last_level: float = 0.0

    model_type = ModelType.EXPONENTIAL_SMOOTHING

    def point_predict(self, features: Sequence[float]) -> float:
        # Признаки не используются: прогноз всегда равен последнему уровню
        return self.last_level

    def parameters(self) -> Dict[str, Any]:
        return {"alpha": self.alpha, "last_level": self.last_level}


TrainedModel = Union[LinearRegressionModel, PolynomialRegressionModel, ExponentialSmoothingModel]
SUPPORTED_MODEL_CLASSES = (LinearRegressionModel, PolynomialRegressionModel, ExponentialSmoothingModel)


def _require_samples(n_samples: int, required: int, stage: str):
    if n_samples < required:
        raise InsufficientDataException(
            f"Insufficient data for {stage}: {n_samples} samples, minimum required: {required}",
            required_samples=required,
            provided_samples=n_samples,
            stage=stage
        )


@handle_training_exception
def fit_linear_regression(
    lag1: ArrayLike,
    targets: ArrayLike,
    metadata: Optional[Dict[str, Any]] = None,
    min_samples: int = 2
) -> LinearRegressionModel:
    """
    Подгонка линейной регрессии методом наименьших квадратов

    Args:
        lag1: Значения lag1 обучающих строк
        targets: Целевые значения
        metadata: Метаданные обучающей выборки
        min_samples: Минимум строк

    Returns:
        Обученная LinearRegressionModel
    """
    x = to_numpy(lag1).reshape(-1, 1)
    y = to_numpy(targets)
    _require_samples(len(y), min_samples, "linear_regression")

    estimator = LinearRegression().fit(x, y)
    performance = calculate_fit_metrics(y, estimator.predict(x))

    return LinearRegressionModel(
        model_id=generate_model_id(ModelType.LINEAR_REGRESSION),
        performance=performance,
        trained_at=datetime.now(),
        metadata=dict(metadata or {}),
        estimator=estimator
    )


@handle_training_exception
def fit_polynomial_regression(
    lag1: ArrayLike,
    targets: ArrayLike,
    order: int = 2,
    metadata: Optional[Dict[str, Any]] = None,
    min_samples: int = 2
) -> PolynomialRegressionModel:
    """
    Подгонка полиномиальной регрессии заданного порядка

    Args:
        lag1: Значения lag1 обучающих строк
        targets: Целевые значения
        order: Порядок полинома
        metadata: Метаданные обучающей выборки
        min_samples: Минимум строк

    Returns:
        Обученная PolynomialRegressionModel
    """
    if order < 1:
        raise ValueError(f"Polynomial order must be >= 1, got {order}")

    x = to_numpy(lag1).reshape(-1, 1)
    y = to_numpy(targets)
    _require_samples(len(y), max(min_samples, order + 1), "polynomial_regression")

    estimator = make_pipeline(
        PolynomialFeatures(degree=order, include_bias=False),
        LinearRegression()
    ).fit(x, y)
    performance = calculate_fit_metrics(y, estimator.predict(x))

    return PolynomialRegressionModel(
        model_id=generate_model_id(ModelType.POLYNOMIAL_REGRESSION),
        performance=performance,
        trained_at=datetime.now(),
        metadata=dict(metadata or {}),
        order=order,
        estimator=estimator
    )


def exponential_smoothing(values: np.ndarray, alpha: float) -> np.ndarray:
    """
    Сглаженный ряд длины n + 1

    s[0] = v[0], s[t] = alpha * v[t] + (1 - alpha) * s[t-1],
    последний элемент - следующий шаг после конца ряда.
    """
    smoothed = np.empty(len(values) + 1)
    smoothed[0] = values[0]
    for t in range(1, len(values)):
        smoothed[t] = alpha * values[t] + (1 - alpha) * smoothed[t - 1]
    smoothed[-1] = alpha * values[-1] + (1 - alpha) * smoothed[len(values) - 1]
    return smoothed


def _one_step_mse(values: np.ndarray, smoothed: np.ndarray) -> float:
    """MSE между smoothed[t-1] и actual[t]"""
    return float(np.mean((values[1:] - smoothed[:len(values) - 1]) ** 2))


def optimize_alpha(values: ArrayLike, alpha_grid: Sequence[float]) -> float:
    """
    Выбор alpha по сетке с минимальной ошибкой прогноза на шаг вперед

    При равенстве ошибок выбирается первое значение сетки.
    """
    values = to_numpy(values)
    best_alpha, best_mse = alpha_grid[0], np.inf

    for alpha in alpha_grid:
        mse = _one_step_mse(values, exponential_smoothing(values, alpha))
        if mse < best_mse:
            best_alpha, best_mse = alpha, mse

    return float(best_alpha)


@handle_training_exception
def fit_exponential_smoothing(
    values: ArrayLike,
    alpha_grid: Sequence[float],
    alpha: Optional[float] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> ExponentialSmoothingModel:
    """
    Подгонка простого экспоненциального сглаживания

    Args:
        values: Исходный ряд значений
        alpha_grid: Сетка для подбора alpha
        alpha: Фиксированное alpha (подбор по сетке пропускается)
        metadata: Метаданные ряда

    Returns:
        Обученная ExponentialSmoothingModel
    """
    values = to_numpy(values)
    _require_samples(len(values), 2, "exponential_smoothing")

    if alpha is None:
        alpha = optimize_alpha(values, alpha_grid)
    elif not 0 < alpha < 1:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")

    smoothed = exponential_smoothing(values, alpha)
    performance = calculate_fit_metrics(values[1:], smoothed[:len(values) - 1])

    return ExponentialSmoothingModel(
        model_id=generate_model_id(ModelType.EXPONENTIAL_SMOOTHING),
        performance=performance,
        trained_at=datetime.now(),
        metadata=dict(metadata or {}),
        alpha=float(alpha),
        smoothed=smoothed.tolist(),
        last_level=float(smoothed[-1])
    )
