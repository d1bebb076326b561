"""
Forecast Engine
Top-level entry point of the KPI forecasting engine.

Trains a fresh linear, polynomial and exponential smoothing model for every
forecast request and drives the ensemble auto-regressively over the
requested horizon: each predicted quarter is fed back as a lag for the next
one, so errors compound with horizon length.

The engine owns no process-wide state. Trained models live in the registry
handle the engine was created with until cleanup_models() evicts them.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any, Sequence, Union

import numpy as np

from ..config.engine_config import get_config, EngineConfig
from ..preprocessing.feature_builder import FeatureBuilder, TrainingData, LAG_NAMES
from ..models.estimators import ModelType
from ..models.trainer import ModelTrainer
from ..seasonality.seasonal_decomposer import SeasonalDecomposer, SeasonalityResult
from ..ensemble.ensemble_predictor import EnsemblePredictor, PredictionResult
from ..registry.model_registry import ModelRegistry
from ..utils.logger import LoggerMixin, configure_logging, timed_operation, log_forecast_metrics
from ..utils.exceptions import (
    InsufficientDataException,
    InvalidDataException,
    UnsupportedModelTypeException
)
from ..utils.helpers import (
    SeriesInput,
    ExtraFeaturesInput,
    normalize_series,
    shift_period,
    round_to_precision
)
from ..utils.metrics import population_std


@dataclass
class ForecastPoint:
    """Прогноз на один будущий квартал"""
    period: str
    predicted: float
    low: float
    high: float
    probability: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "predicted": self.predicted,
            "confidence": {"low": self.low, "high": self.high},
            "probability": self.probability,
        }


@dataclass
class TrainingDataStats:
    samples: int  # строк признаков
    periods: int  # длина исходного ряда
    features: int  # ширина строки признаков

    def to_dict(self) -> Dict[str, int]:
        return {"samples": self.samples, "periods": self.periods, "features": self.features}


@dataclass
class ForecastResult:
    """
    Результат многошагового прогноза

    model_accuracy - среднее R² обученных моделей в процентах (целое).
    """
    predictions: List[ForecastPoint]
    model_accuracy: int
    training_data: TrainingDataStats
    metadata: Dict[str, Any] = field(default_factory=dict)
    model_type: str = ModelType.ENSEMBLE.value
    seasonality: Optional[SeasonalityResult] = None

    @property
    def periods(self) -> List[str]:
        return [point.period for point in self.predictions]

    def to_dict(self) -> Dict[str, Any]:
        """Конвертация в словарь для сериализации"""
        result = {
            "predictions": [point.to_dict() for point in self.predictions],
            "model_accuracy": self.model_accuracy,
            "model_type": self.model_type,
            "training_data": self.training_data.to_dict(),
            "metadata": dict(self.metadata),
        }
        if self.seasonality is not None:
            result["seasonality"] = self.seasonality.to_dict()
        return result


class ForecastEngine(LoggerMixin):
    """
    Движок прогнозирования квартальных KPI

    Объединяет построение признаков, обучение моделей, сезонную
    декомпозицию и ансамблевое прогнозирование вокруг одного реестра.

    Example:
        >>> engine = ForecastEngine()
        >>> result = engine.forecast(series, periods_ahead=2)
        >>> [p.period for p in result.predictions]
        ['2025-Q1', '2025-Q2']
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        config: Optional[EngineConfig] = None
    ):
        super().__init__()
        self.config = config or get_config()

        # Явно переданная конфигурация перенастраивает уже настроенное логирование
        monitoring = self.config.monitoring
        configure_logging(
            force=config is not None,
            level=monitoring.log_level.value,
            format_type=monitoring.log_format,
            log_file=monitoring.log_file,
            service_name=self.config.service_name,
            service_version=self.config.version,
            environment=self.config.environment
        )

        self.registry = registry if registry is not None else ModelRegistry()

        self.feature_builder = FeatureBuilder(self.config.features)
        self.trainer = ModelTrainer(self.registry, self.config.models)
        self.decomposer = SeasonalDecomposer(self.config.forecast)
        self.ensemble = EnsemblePredictor(self.registry, self.config.ensemble)

        self.logger.info(
            "ForecastEngine initialized",
            environment=self.config.environment,
            polynomial_order=self.config.models.polynomial_order,
            max_periods_ahead=self.config.forecast.max_periods_ahead
        )

    @timed_operation("forecast")
    def forecast(
        self,
        series: SeriesInput,
        periods_ahead: Optional[int] = None,
        extra_features: Optional[ExtraFeaturesInput] = None,
        kpi_id: Optional[str] = None,
        factory_id: Optional[str] = None,
        include_seasonality: bool = True
    ) -> ForecastResult:
        """
        Многошаговый авторегрессионный прогноз

        Args:
            series: Наблюдения {period, value}, минимум 8 периодов
            periods_ahead: Горизонт прогноза в кварталах (>= 1; max_periods_ahead, если задан)
            extra_features: Внешние числовые признаки по периодам
            kpi_id: Идентификатор KPI
            factory_id: Идентификатор площадки
            include_seasonality: Добавить сезонную декомпозицию ряда

        Returns:
            ForecastResult с прогнозом на каждый будущий квартал

        Raises:
            InsufficientDataException: Ряд короче минимума
            InvalidDataException: Некорректный ряд или горизонт
        """
        forecast_config = self.config.forecast
        periods_ahead = self._validate_horizon(
            forecast_config.default_periods_ahead if periods_ahead is None else periods_ahead
        )

        df = normalize_series(series)
        if len(df) < forecast_config.min_forecast_periods:
            raise InsufficientDataException(
                f"Insufficient data for forecasting: {len(df)} periods, "
                f"minimum required: {forecast_config.min_forecast_periods}",
                required_samples=forecast_config.min_forecast_periods,
                provided_samples=len(df),
                stage="forecasting"
            )

        training_data = self.feature_builder.build(
            df, extra_features, kpi_id=kpi_id or "unknown", factory_id=factory_id
        )
        if training_data.n_samples < forecast_config.min_feature_rows:
            raise InsufficientDataException(
                f"Insufficient feature rows for forecasting: {training_data.n_samples}, "
                f"minimum required: {forecast_config.min_feature_rows}",
                required_samples=forecast_config.min_feature_rows,
                provided_samples=training_data.n_samples,
                stage="forecasting"
            )

        trained_at = datetime.now()
        model_ids = self.trainer.train_ensemble(training_data)

        predictions = self._forecast_horizon(training_data, model_ids, periods_ahead)

        scores = [self.registry.score(model_id) or 0.0 for model_id in model_ids]
        model_accuracy = int(round_to_precision(float(np.mean(scores)) * 100, 0))

        seasonality = self.decomposer.decompose(df) if include_seasonality else None

        result = ForecastResult(
            predictions=predictions,
            model_accuracy=model_accuracy,
            training_data=TrainingDataStats(
                samples=training_data.n_samples,
                periods=training_data.n_periods,
                features=training_data.n_features
            ),
            metadata={
                "trained_at": trained_at.isoformat(),
                "last_update": datetime.now().isoformat(),
                "kpi_id": training_data.metadata.get("kpi_id"),
                "factory_id": training_data.metadata.get("factory_id"),
                "model_ids": list(model_ids),
            },
            seasonality=seasonality
        )

        log_forecast_metrics(
            self.logger,
            kpi_id=training_data.metadata.get("kpi_id"),
            forecast_points=len(predictions),
            training_samples=training_data.n_samples,
            model_accuracy=model_accuracy
        )

        return result

    def _forecast_horizon(
        self,
        training_data: TrainingData,
        model_ids: List[str],
        periods_ahead: int
    ) -> List[ForecastPoint]:
        """Авторегрессионный проход по горизонту прогноза"""
        precision = self.config.forecast.rounding_precision
        z = self.config.ensemble.interval_z

        values = training_data.values
        last_period = values.index[-1]
        window = deque(values.iloc[-len(LAG_NAMES):].tolist(), maxlen=len(LAG_NAMES))

        points = []
        for step in range(1, periods_ahead + 1):
            period = shift_period(last_period, step)
            features = self.feature_builder.build_forecast_features(
                list(window), period, time_index=len(values) + step
            )

            prediction = self.ensemble.predict(model_ids, features, include_explanation=False)

            # Интервал по разбросу прогнозов моделей, а не по остаткам
            member_values = self.ensemble.model_predictions(model_ids, features, fallback=prediction.predicted)
            half_width = z * population_std(member_values)

            points.append(ForecastPoint(
                period=period,
                predicted=round_to_precision(prediction.predicted, precision),
                low=round_to_precision(prediction.predicted - half_width, precision),
                high=round_to_precision(prediction.predicted + half_width, precision),
                probability=prediction.confidence
            ))

            # В окно попадает неокругленный прогноз
            window.append(prediction.predicted)

            self.logger.debug(
                "Forecast step completed",
                step=step,
                period=period,
                predicted=prediction.predicted,
                interval_half_width=half_width
            )

        return points

    def _validate_horizon(self, periods_ahead: Any) -> int:
        max_periods = self.config.forecast.max_periods_ahead
        if isinstance(periods_ahead, bool) or not isinstance(periods_ahead, (int, np.integer)):
            raise InvalidDataException(
                f"periods_ahead must be an integer, got {type(periods_ahead).__name__}",
                validation_errors={"periods_ahead": periods_ahead}
            )
        if periods_ahead < 1:
            raise InvalidDataException(
                f"periods_ahead must be a positive integer, got {periods_ahead}",
                validation_errors={"periods_ahead": int(periods_ahead)}
            )
        if max_periods is not None and periods_ahead > max_periods:
            raise InvalidDataException(
                f"periods_ahead must not exceed {max_periods}, got {periods_ahead}",
                validation_errors={"periods_ahead": int(periods_ahead)}
            )
        return int(periods_ahead)

    def analyze_seasonality(self, series: SeriesInput) -> SeasonalityResult:
        """Сезонная декомпозиция ряда"""
        return self.decomposer.decompose(normalize_series(series))

    def prepare_training_data(
        self,
        series: SeriesInput,
        extra_features: Optional[ExtraFeaturesInput] = None,
        kpi_id: Optional[str] = None,
        factory_id: Optional[str] = None
    ) -> TrainingData:
        """Построение обучающей выборки с проверкой минимальной длины ряда"""
        df = normalize_series(series)
        min_periods = self.config.forecast.min_training_periods
        if len(df) < min_periods:
            raise InsufficientDataException(
                f"Insufficient data for training: {len(df)} periods, minimum required: {min_periods}",
                required_samples=min_periods,
                provided_samples=len(df),
                stage="training"
            )
        return self.feature_builder.build(df, extra_features, kpi_id=kpi_id or "unknown", factory_id=factory_id)

    def train_model(
        self,
        series: SeriesInput,
        model_type: Union[ModelType, str],
        order: Optional[int] = None,
        alpha: Optional[float] = None,
        extra_features: Optional[ExtraFeaturesInput] = None,
        kpi_id: Optional[str] = None,
        factory_id: Optional[str] = None
    ) -> str:
        """
        Обучение одной модели заданного типа

        Args:
            series: Наблюдения {period, value}, минимум 6 периодов
            model_type: linear_regression | polynomial_regression | exponential_smoothing
            order: Порядок полинома
            alpha: Фиксированное alpha сглаживания
            extra_features: Внешние числовые признаки по периодам
            kpi_id: Идентификатор KPI
            factory_id: Идентификатор площадки

        Returns:
            Идентификатор зарегистрированной модели
        """
        training_data = self.prepare_training_data(series, extra_features, kpi_id, factory_id)
        return self.trainer.train(model_type, training_data, order=order, alpha=alpha)

    def train_ensemble(
        self,
        series: SeriesInput,
        extra_features: Optional[ExtraFeaturesInput] = None,
        kpi_id: Optional[str] = None,
        factory_id: Optional[str] = None
    ) -> List[str]:
        """Обучение всех трех моделей, возвращает их идентификаторы"""
        training_data = self.prepare_training_data(series, extra_features, kpi_id, factory_id)
        return self.trainer.train_ensemble(training_data)

    def predict(self, model_id: str, features: Sequence[float]) -> PredictionResult:
        return self.ensemble.predict_single(model_id, features)

    def predict_ensemble(self, model_ids: Sequence[str], features: Sequence[float]) -> PredictionResult:
        return self.ensemble.predict(model_ids, features)

    def list_models(self) -> List[Dict[str, Any]]:
        return self.registry.list_models()

    def get_model_info(self, model_id: str) -> Dict[str, Any]:
        """
        Описание зарегистрированной модели

        Raises:
            ModelNotFoundException: Модель не зарегистрирована или удалена
        """
        artifact = self.registry.get(model_id)
        if not hasattr(artifact, "info"):
            raise UnsupportedModelTypeException(type(artifact).__name__, model_id=model_id)
        return artifact.info()

    def cleanup_models(self, max_age_ms: Optional[float] = None) -> int:
        """Удаление моделей старше max_age_ms (по умолчанию из конфигурации)"""
        if max_age_ms is None:
            max_age_ms = self.config.registry.default_max_age_ms
        return self.registry.cleanup(max_age_ms)
