"""
Model training and registration.

Fits each estimator on demand and registers the artifact with its R² in
the model registry handle the trainer was created with.
"""

from typing import Dict, List, Optional, Any, Union

from ..config.engine_config import get_config, ModelConfig
from ..preprocessing.feature_builder import TrainingData
from ..registry.model_registry import ModelRegistry
from ..utils.logger import LoggerMixin, get_model_logger, log_model_training
from ..utils.exceptions import UnsupportedModelTypeException
from ..utils.metrics import ArrayLike
from .estimators import (
    ModelType,
    BaseTrainedModel,
    fit_linear_regression,
    fit_polynomial_regression,
    fit_exponential_smoothing
)


# Порядок полиномиальной модели в ансамбле прогноза
ENSEMBLE_POLYNOMIAL_ORDER = 2


class ModelTrainer(LoggerMixin):
    """
    Обучение моделей и регистрация артефактов в реестре

    Каждый метод обучения возвращает идентификатор новой модели.
    """

    def __init__(self, registry: ModelRegistry, config: Optional[ModelConfig] = None):
        super().__init__()
        self.registry = registry
        self.config = config or get_config().models

    def train_linear_regression(self, training_data: TrainingData) -> str:
        """
        Обучение линейной регрессии на lag1

        Args:
            training_data: Обучающая выборка

        Returns:
            Идентификатор модели
        """
        model = fit_linear_regression(
            training_data.features["lag1"],
            training_data.targets,
            metadata=self._training_metadata(training_data),
            min_samples=self.config.min_regression_samples
        )
        return self._register(model, training_data.n_samples)

    def train_polynomial_regression(self, training_data: TrainingData, order: Optional[int] = None) -> str:
        """
        Обучение полиномиальной регрессии на lag1

        Args:
            training_data: Обучающая выборка
            order: Порядок полинома (по умолчанию из конфигурации)

        Returns:
            Идентификатор модели
        """
        model = fit_polynomial_regression(
            training_data.features["lag1"],
            training_data.targets,
            order=order or self.config.polynomial_order,
            metadata=self._training_metadata(training_data),
            min_samples=self.config.min_regression_samples
        )
        return self._register(model, training_data.n_samples)

    def train_exponential_smoothing(
        self,
        values: Union[TrainingData, ArrayLike],
        alpha: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Обучение экспоненциального сглаживания на исходном ряде

        Матрица признаков не используется.

        Args:
            values: Исходный ряд или TrainingData (берется полный ряд values)
            alpha: Фиксированное alpha (иначе подбор по сетке)
            metadata: Метаданные ряда

        Returns:
            Идентификатор модели
        """
        if isinstance(values, TrainingData):
            metadata = {
                **values.metadata,
                "periods": list(values.values.index),
                **(metadata or {}),
            }
            values = values.values

        model = fit_exponential_smoothing(
            values,
            alpha_grid=self.config.alpha_grid,
            alpha=alpha,
            metadata=metadata
        )
        return self._register(model, len(model.smoothed) - 1)

    def train(
        self,
        model_type: Union[ModelType, str],
        training_data: TrainingData,
        order: Optional[int] = None,
        alpha: Optional[float] = None
    ) -> str:
        """
        Обучение модели заданного типа

        Args:
            model_type: Тип модели
            training_data: Обучающая выборка
            order: Порядок полинома
            alpha: Фиксированное alpha сглаживания

        Returns:
            Идентификатор модели

        Raises:
            UnsupportedModelTypeException: Для неизвестного типа
        """
        model_type = self._resolve_type(model_type)

        if model_type == ModelType.LINEAR_REGRESSION:
            return self.train_linear_regression(training_data)
        if model_type == ModelType.POLYNOMIAL_REGRESSION:
            return self.train_polynomial_regression(training_data, order=order)
        if model_type == ModelType.EXPONENTIAL_SMOOTHING:
            return self.train_exponential_smoothing(training_data, alpha=alpha)

        raise UnsupportedModelTypeException(model_type.value, supported_types=self.supported_types())

    def train_ensemble(
        self,
        training_data: TrainingData,
        polynomial_order: int = ENSEMBLE_POLYNOMIAL_ORDER
    ) -> List[str]:
        """
        Обучение всех трех моделей ансамбля

        Порядок полинома ансамбля фиксирован и не зависит от
        ModelConfig.polynomial_order, который действует только для train().
        """
        return [
            self.train_linear_regression(training_data),
            self.train_polynomial_regression(training_data, order=polynomial_order),
            self.train_exponential_smoothing(training_data),
        ]

    @staticmethod
    def supported_types() -> List[str]:
        return [
            ModelType.LINEAR_REGRESSION.value,
            ModelType.POLYNOMIAL_REGRESSION.value,
            ModelType.EXPONENTIAL_SMOOTHING.value,
        ]

    def _resolve_type(self, model_type: Union[ModelType, str]) -> ModelType:
        try:
            return ModelType(model_type)
        except ValueError:
            raise UnsupportedModelTypeException(
                str(model_type), supported_types=self.supported_types()
            ) from None

    @staticmethod
    def _training_metadata(training_data: TrainingData) -> Dict[str, Any]:
        return {
            **training_data.metadata,
            "periods": list(training_data.periods),
            "feature_names": training_data.feature_names,
        }

    def _register(self, model: BaseTrainedModel, samples_count: int) -> str:
        self.registry.register(model.model_id, model, model.performance.r2)

        log_model_training(
            get_model_logger(
                model.model_type.value,
                model_id=model.model_id,
                kpi_id=model.metadata.get("kpi_id"),
                operation="train"
            ),
            model_id=model.model_id,
            model_type=model.model_type.value,
            samples_count=int(samples_count),
            model_params=model.parameters(),
            performance=model.performance.to_dict()
        )
        return model.model_id
