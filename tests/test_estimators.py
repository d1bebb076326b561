"""
Tests for the KPI estimators and the model trainer.

Linear and polynomial regression on lag1, exponential smoothing with
grid-searched alpha, fit metrics and registration of trained artifacts.
"""

from datetime import datetime

import pytest
import numpy as np

from kpi_forecasting.config.engine_config import ModelConfig, FeatureConfig
from kpi_forecasting.models.estimators import (
    ModelType,
    LinearRegressionModel,
    PolynomialRegressionModel,
    ExponentialSmoothingModel,
    fit_linear_regression,
    fit_polynomial_regression,
    fit_exponential_smoothing,
    exponential_smoothing,
    optimize_alpha
)
from kpi_forecasting.models.trainer import ModelTrainer
from kpi_forecasting.preprocessing.feature_builder import FeatureBuilder
from kpi_forecasting.registry.model_registry import ModelRegistry
from kpi_forecasting.utils.metrics import calculate_fit_metrics
from kpi_forecasting.utils.exceptions import (
    InsufficientDataException,
    InvalidDataException,
    ModelTrainingException,
    UnsupportedModelTypeException
)

ALPHA_GRID = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9]


@pytest.fixture
def linear_series():
    """Линейный ряд v[i] = i за 12 кварталов"""
    periods = [f"{2021 + i // 4}-Q{i % 4 + 1}" for i in range(12)]
    return [{"period": p, "value": float(i)} for i, p in enumerate(periods)]


@pytest.fixture
def training_data(linear_series):
    """Обучающая выборка линейного ряда"""
    return FeatureBuilder(FeatureConfig()).build(linear_series, kpi_id="linear-kpi")


@pytest.fixture
def registry():
    return ModelRegistry()


@pytest.fixture
def trainer(registry):
    """Тренер моделей с отдельным реестром"""
    return ModelTrainer(registry, ModelConfig())


class TestFitMetrics:
    """Тесты метрик качества подгонки"""

    def test_perfect_fit(self):
        """Тест идеального совпадения"""
        performance = calculate_fit_metrics([1.0, 2.0, 3.0], [1.0, 2.0, 3.0])

        assert performance.mse == 0.0
        assert performance.r2 == pytest.approx(1.0)

    def test_negative_r2_is_clipped(self):
        """Тест ограничения отрицательного R² нулем"""
        performance = calculate_fit_metrics([1.0, 2.0, 3.0], [3.0, 2.0, 1.0])

        assert performance.mse == pytest.approx(8 / 3)
        assert performance.r2 == 0.0

    def test_invalid_input(self):
        """Тест пустых и разных по длине массивов"""
        with pytest.raises(InvalidDataException):
            calculate_fit_metrics([], [])

        with pytest.raises(InvalidDataException):
            calculate_fit_metrics([1.0, 2.0], [1.0])


class TestLinearRegression:
    """Тесты линейной регрессии на lag1"""

    def test_linear_series_r2(self, training_data):
        """Тест R² ≈ 1 для линейного ряда"""
        model = fit_linear_regression(training_data.features["lag1"], training_data.targets)

        assert isinstance(model, LinearRegressionModel)
        assert model.performance.r2 == pytest.approx(1.0, abs=1e-9)
        assert model.performance.mse == pytest.approx(0.0, abs=1e-9)

        parameters = model.parameters()
        assert parameters["slope"] == pytest.approx(1.0)
        assert parameters["intercept"] == pytest.approx(1.0)

    def test_predict_uses_lag1_only(self, training_data):
        """Тест прогноза только по lag1"""
        model = fit_linear_regression(training_data.features["lag1"], training_data.targets)

        value, confidence = model.predict([20.0, -5.0, 1e6, 0.0])
        other_value, _ = model.predict([20.0, 3.0, 3.0, 3.0])

        assert value == pytest.approx(21.0)
        assert value == other_value
        assert confidence == model.performance.r2

    def test_insufficient_samples(self):
        """Тест недостатка строк"""
        with pytest.raises(InsufficientDataException):
            fit_linear_regression([1.0], [2.0])

    def test_unique_ids(self, training_data):
        """Тест уникальности идентификаторов"""
        ids = {
            fit_linear_regression(training_data.features["lag1"], training_data.targets).model_id
            for _ in range(5)
        }

        assert len(ids) == 5
        assert all(model_id.startswith("linear_") for model_id in ids)


class TestPolynomialRegression:
    """Тесты полиномиальной регрессии"""

    def test_quadratic_fit(self):
        """Тест подгонки квадратичной зависимости"""
        x = np.arange(1.0, 7.0)
        model = fit_polynomial_regression(x, x ** 2, order=2)

        assert isinstance(model, PolynomialRegressionModel)
        assert model.model_id.startswith("poly_")
        assert model.performance.r2 == pytest.approx(1.0, abs=1e-9)
        assert model.point_predict([7.0]) == pytest.approx(49.0, rel=1e-6)

        coefficients = model.parameters()["coefficients"]
        assert len(coefficients) == 3
        assert coefficients[2] == pytest.approx(1.0, rel=1e-6)

    def test_requires_order_plus_one_samples(self):
        """Тест минимума order + 1 строк"""
        with pytest.raises(InsufficientDataException) as exc_info:
            fit_polynomial_regression([1.0, 2.0], [1.0, 4.0], order=2)

        assert exc_info.value.details["required_samples"] == 3

    def test_invalid_order(self):
        """Тест некорректного порядка полинома"""
        with pytest.raises(ModelTrainingException) as exc_info:
            fit_polynomial_regression([1.0, 2.0, 3.0], [1.0, 2.0, 3.0], order=0)

        assert isinstance(exc_info.value.original_exception, ValueError)


class TestExponentialSmoothing:
    """Тесты экспоненциального сглаживания"""

    def test_smoothing_recursion(self):
        """Тест рекурсии сглаживания и шага вперед"""
        smoothed = exponential_smoothing(np.array([1.0, 2.0, 3.0]), 0.5)

        assert smoothed.tolist() == pytest.approx([1.0, 1.5, 2.25, 2.625])

    def test_optimize_alpha_trending_series(self):
        """Тест выбора alpha для ряда с трендом"""
        assert optimize_alpha(np.arange(1.0, 11.0), ALPHA_GRID) == 0.9

    def test_optimize_alpha_tie_keeps_first(self):
        """Тест выбора первого alpha при равных ошибках"""
        assert optimize_alpha([5.0] * 8, ALPHA_GRID) == 0.1

    def test_fit_and_flat_prediction(self):
        """Тест прогноза последним уровнем независимо от признаков"""
        values = [100.0, 102.0, 99.0, 105.0, 108.0, 104.0, 110.0, 115.0]
        model = fit_exponential_smoothing(values, ALPHA_GRID)

        assert isinstance(model, ExponentialSmoothingModel)
        assert model.model_id.startswith("exp_smooth_")
        assert model.alpha in ALPHA_GRID
        assert len(model.smoothed) == len(values) + 1
        assert model.last_level == model.smoothed[-1]
        assert 0.0 <= model.performance.r2 <= 1.0

        assert model.predict([1e9, 0.0])[0] == model.last_level
        assert model.predict([])[0] == model.last_level

    def test_fixed_alpha(self):
        """Тест фиксированного alpha без подбора"""
        model = fit_exponential_smoothing([1.0, 2.0, 3.0], ALPHA_GRID, alpha=0.5)

        assert model.alpha == 0.5
        assert model.last_level == pytest.approx(2.625)

    def test_invalid_alpha(self):
        """Тест alpha вне интервала (0, 1)"""
        with pytest.raises(ModelTrainingException):
            fit_exponential_smoothing([1.0, 2.0, 3.0], ALPHA_GRID, alpha=1.5)

    def test_requires_two_values(self):
        """Тест минимальной длины ряда"""
        with pytest.raises(InsufficientDataException):
            fit_exponential_smoothing([1.0], ALPHA_GRID)


class TestModelInfo:
    """Тесты описания модели"""

    def test_info_fields(self, training_data):
        """Тест полей описания модели"""
        model = fit_linear_regression(
            training_data.features["lag1"],
            training_data.targets,
            metadata={"kpi_id": "linear-kpi"}
        )
        info = model.info()

        assert info["id"] == model.model_id
        assert info["type"] == ModelType.LINEAR_REGRESSION.value
        assert set(info["parameters"]) == {"intercept", "slope"}
        assert set(info["performance"]) == {"mse", "r2"}
        assert datetime.fromisoformat(info["trained_at"]) <= datetime.now()
        assert info["metadata"] == {"kpi_id": "linear-kpi"}


class TestModelTrainer:
    """Тесты для класса ModelTrainer"""

    def test_train_each_type(self, trainer, registry, training_data):
        """Тест обучения и регистрации каждого типа модели"""
        linear_id = trainer.train(ModelType.LINEAR_REGRESSION, training_data)
        poly_id = trainer.train("polynomial_regression", training_data, order=3)
        smoothing_id = trainer.train("exponential_smoothing", training_data, alpha=0.4)

        assert len(registry) == 3
        assert isinstance(registry.get(linear_id), LinearRegressionModel)
        assert registry.get(poly_id).order == 3
        assert registry.get(smoothing_id).alpha == 0.4
        assert registry.score(linear_id) == registry.get(linear_id).performance.r2

    def test_training_metadata(self, trainer, registry, training_data):
        """Тест метаданных обучающей выборки в модели"""
        linear = registry.get(trainer.train_linear_regression(training_data))
        smoothing = registry.get(trainer.train_exponential_smoothing(training_data))

        assert linear.metadata["kpi_id"] == "linear-kpi"
        assert linear.metadata["periods"] == training_data.periods
        assert "lag1" in linear.metadata["feature_names"]

        # Сглаживание обучается на полном ряде, включая первые три наблюдения
        assert smoothing.metadata["periods"] == list(training_data.values.index)
        assert len(smoothing.smoothed) == training_data.n_periods + 1

    def test_train_ensemble(self, trainer, registry, training_data):
        """Тест обучения всех трех моделей"""
        model_ids = trainer.train_ensemble(training_data)

        assert len(model_ids) == 3
        assert all(model_id in registry for model_id in model_ids)
        assert [registry.get(i).model_type for i in model_ids] == [
            ModelType.LINEAR_REGRESSION,
            ModelType.POLYNOMIAL_REGRESSION,
            ModelType.EXPONENTIAL_SMOOTHING,
        ]

    @pytest.mark.parametrize("model_type", ["arima", "ensemble", ModelType.ENSEMBLE])
    def test_unsupported_type(self, trainer, training_data, model_type):
        """Тест неизвестного типа модели"""
        with pytest.raises(UnsupportedModelTypeException) as exc_info:
            trainer.train(model_type, training_data)

        assert "linear_regression" in exc_info.value.details["supported_types"]
