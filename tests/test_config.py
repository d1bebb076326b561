"""
Tests for configuration, exceptions and logging utilities.
"""

import logging

import pytest
from pydantic import ValidationError

from kpi_forecasting.config.engine_config import (
    EngineConfig,
    EnsembleConfig,
    ForecastConfig,
    ModelConfig,
    FeatureConfig,
    MonitoringConfig,
    load_config_from_file,
    save_config_to_file
)
from kpi_forecasting.utils.exceptions import (
    KPIForecastingException,
    InsufficientDataException,
    ModelNotFoundException,
    ModelTrainingException,
    create_error_response,
    handle_training_exception
)
from kpi_forecasting.forecasting.forecast_engine import ForecastEngine
from kpi_forecasting.utils.logger import LoggerMixin, configure_logging, get_logger, timed_operation


class TestEngineConfig:
    """Тесты конфигурации движка"""

    def test_defaults(self):
        """Тест значений по умолчанию"""
        config = EngineConfig()

        assert config.models.polynomial_order == 2
        assert config.models.alpha_grid == pytest.approx([0.1 * i for i in range(1, 10)])
        assert config.ensemble.min_confidence == 0.1
        assert config.ensemble.max_confidence == 0.95
        assert config.ensemble.default_weight == 0.5
        assert config.ensemble.interval_z == 1.96
        assert config.forecast.min_forecast_periods == 8
        assert config.forecast.max_periods_ahead is None
        assert config.forecast.default_periods_ahead == 4
        assert config.registry.default_max_age_ms == 24 * 60 * 60 * 1000
        assert config.is_development()
        assert not config.is_production()

    def test_environment_override(self, monkeypatch):
        """Тест переопределения из переменных окружения"""
        monkeypatch.setenv("KPI_FORECAST_MAX_PERIODS_AHEAD", "8")
        monkeypatch.setenv("KPI_MODELS_POLYNOMIAL_ORDER", "3")

        assert ForecastConfig().max_periods_ahead == 8
        assert ModelConfig().polynomial_order == 3

    def test_invalid_confidence_bounds(self):
        """Тест неупорядоченных границ уверенности"""
        with pytest.raises(ValidationError):
            EnsembleConfig(min_confidence=0.9, max_confidence=0.5)

    @pytest.mark.parametrize("grid", [[], [0.0, 0.5], [0.5, 1.0]])
    def test_invalid_alpha_grid(self, grid):
        """Тест некорректной сетки alpha"""
        with pytest.raises(ValidationError):
            ModelConfig(alpha_grid=grid)

    def test_feature_settings(self, monkeypatch):
        """Тест настроек построения признаков"""
        assert set(FeatureConfig.model_fields) == {"extra_feature_fill"}
        assert FeatureConfig().extra_feature_fill is None

        monkeypatch.setenv("KPI_FEATURES_EXTRA_FEATURE_FILL", "0")
        assert FeatureConfig().extra_feature_fill == 0.0

    def test_invalid_horizon_defaults(self):
        """Тест горизонта по умолчанию больше максимального"""
        with pytest.raises(ValidationError):
            ForecastConfig(default_periods_ahead=13, max_periods_ahead=12)

    def test_unknown_field_rejected(self):
        """Тест запрета неизвестных полей"""
        with pytest.raises(ValidationError):
            EngineConfig(unknown_setting=True)

    def test_yaml_round_trip(self, tmp_path):
        """Тест сохранения и загрузки конфигурации"""
        config = EngineConfig(
            environment="staging",
            forecast=ForecastConfig(max_periods_ahead=6, default_periods_ahead=2)
        )
        path = tmp_path / "config" / "engine.yaml"

        save_config_to_file(config, path)
        loaded = load_config_from_file(path)

        assert loaded.environment == "staging"
        assert loaded.forecast.max_periods_ahead == 6
        assert loaded.forecast.default_periods_ahead == 2

    def test_missing_config_file(self, tmp_path):
        """Тест отсутствующего файла конфигурации"""
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.yaml")


class TestExceptions:
    """Тесты иерархии исключений"""

    def test_hierarchy(self):
        """Тест наследования от базового исключения"""
        assert issubclass(InsufficientDataException, KPIForecastingException)
        assert issubclass(ModelNotFoundException, KPIForecastingException)

    def test_to_dict_and_str(self):
        """Тест сериализации исключения"""
        exc = InsufficientDataException(
            "Not enough data",
            required_samples=8,
            provided_samples=5,
            stage="forecasting"
        )
        result = exc.to_dict()

        assert result["error_type"] == "InsufficientDataException"
        assert result["error_code"] == "INSUFFICIENT_DATA"
        assert result["details"] == {"required_samples": 8, "provided_samples": 5, "stage": "forecasting"}
        assert str(exc).startswith("[INSUFFICIENT_DATA] Not enough data")

    def test_error_response(self):
        """Тест ответа об ошибке для слоя представления"""
        response = create_error_response(ModelNotFoundException("linear_1"))

        assert response["success"] is False
        assert response["error"]["code"] == "MODEL_NOT_FOUND"
        assert response["error"]["message"] == "Model linear_1 not found"

    def test_training_exception_decorator(self):
        """Тест обертки численных ошибок обучения"""
        @handle_training_exception
        def failing_fit():
            raise ZeroDivisionError("division by zero")

        @handle_training_exception
        def insufficient_fit():
            raise InsufficientDataException("too short")

        with pytest.raises(ModelTrainingException) as exc_info:
            failing_fit()

        assert exc_info.value.details["training_stage"] == "failing_fit"
        assert exc_info.value.details["original_type"] == "ZeroDivisionError"

        with pytest.raises(InsufficientDataException):
            insufficient_fit()


class TestLogging:
    """Тесты утилит логирования"""

    def test_logger_mixin_context(self):
        """Тест логгера класса с контекстом"""
        class Component(LoggerMixin):
            pass

        component = Component()
        component.set_log_context(kpi_id="revenue")

        assert component.logger is component.logger
        component.logger.info("Component ready")

    def test_timed_operation_preserves_result(self):
        """Тест декоратора измерения времени"""
        @timed_operation("sum_values")
        def sum_values(values):
            return sum(values)

        assert sum_values([1, 2, 3]) == 6
        assert sum_values.__name__ == "sum_values"

    def test_timed_operation_propagates_errors(self):
        """Тест проброса исключений из измеряемой операции"""
        @timed_operation()
        def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            failing()

    def test_get_logger(self):
        """Тест получения логгера"""
        logger = get_logger("kpi_forecasting.tests")
        logger.debug("debug event", value=1)

    def test_engine_config_reconfigures_logging(self, tmp_path):
        """Тест применения настроек логирования движка после первой настройки"""
        get_logger("kpi_forecasting.tests").info("configured with defaults")

        log_file = tmp_path / "engine.log"
        config = EngineConfig(
            monitoring=MonitoringConfig(log_level="WARNING", log_format="text", log_file=str(log_file))
        )
        try:
            ForecastEngine(config=config)
            assert logging.getLogger().level == logging.WARNING

            get_logger("kpi_forecasting.tests").warning("engine warning")
            assert "engine warning" in log_file.read_text(encoding="utf-8")
        finally:
            configure_logging(force=True)

        assert logging.getLogger().level == logging.INFO
