"""
Configuration management for the KPI forecasting engine.

Settings are grouped per concern (features, models, ensemble, forecasting,
registry, monitoring) and loaded with pydantic-settings, so every threshold
can be overridden from the environment or a YAML file.
"""

from typing import List, Optional, Union, Literal
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic.types import PositiveInt, PositiveFloat, confloat
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.logger import LogLevel, LogFormat


class FeatureConfig(BaseSettings):
    """
    Конфигурация построения признаков
    """

    extra_feature_fill: Optional[float] = Field(
        default=None,
        description="Значение для периодов без внешних признаков (None = NaN)"
    )

    model_config = SettingsConfigDict(env_prefix="KPI_FEATURES_", case_sensitive=False)


class ModelConfig(BaseSettings):
    """
    Конфигурация моделей (регрессии и экспоненциальное сглаживание)
    """

    polynomial_order: PositiveInt = Field(
        default=2,
        ge=1,
        le=6,
        description="Порядок полиномиальной регрессии"
    )

    alpha_grid: List[float] = Field(
        default_factory=lambda: [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9],
        description="Сетка значений alpha для экспоненциального сглаживания"
    )

    min_regression_samples: PositiveInt = Field(
        default=2,
        ge=2,
        description="Минимум строк для подгонки регрессии"
    )

    @field_validator('alpha_grid')
    @classmethod
    def validate_alpha_grid(cls, v):
        """Все alpha должны лежать в интервале (0, 1)"""
        if not v:
            raise ValueError("alpha_grid must not be empty")
        for alpha in v:
            if not 0 < alpha < 1:
                raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        return v

    model_config = SettingsConfigDict(env_prefix="KPI_MODELS_", case_sensitive=False)


class EnsembleConfig(BaseSettings):
    """
    Конфигурация ансамблевого предсказания
    """

    min_confidence: confloat(ge=0, le=1) = Field(default=0.1, description="Нижняя граница уверенности")
    max_confidence: confloat(ge=0, le=1) = Field(default=0.95, description="Верхняя граница уверенности")
    default_weight: PositiveFloat = Field(default=0.5, description="Вес модели без оценки качества")

    high_confidence_threshold: confloat(ge=0, le=1) = Field(
        default=0.8,
        description="Порог уровня уверенности 'high'"
    )
    medium_confidence_threshold: confloat(ge=0, le=1) = Field(
        default=0.6,
        description="Порог уровня уверенности 'medium'"
    )

    interval_z: PositiveFloat = Field(
        default=1.96,
        description="Множитель стандартного отклонения для интервала"
    )

    @model_validator(mode='after')
    def validate_bounds(self):
        """Границы и пороги должны быть упорядочены"""
        if self.min_confidence > self.max_confidence:
            raise ValueError("min_confidence must not exceed max_confidence")
        if self.medium_confidence_threshold > self.high_confidence_threshold:
            raise ValueError("medium_confidence_threshold must not exceed high_confidence_threshold")
        return self

    model_config = SettingsConfigDict(env_prefix="KPI_ENSEMBLE_", case_sensitive=False)


class ForecastConfig(BaseSettings):
    """
    Конфигурация прогнозирования и анализа сезонности
    """

    min_forecast_periods: PositiveInt = Field(default=8, description="Минимум периодов для прогноза")
    min_feature_rows: PositiveInt = Field(default=5, description="Минимум строк признаков для прогноза")
    min_training_periods: PositiveInt = Field(default=6, description="Минимум периодов для обучения модели")

    default_periods_ahead: PositiveInt = Field(default=4, description="Горизонт прогноза по умолчанию")
    max_periods_ahead: Optional[PositiveInt] = Field(
        default=None,
        description="Максимальный горизонт прогноза (None = без ограничения)"
    )

    rounding_precision: int = Field(default=2, ge=0, le=8, description="Знаков после запятой в прогнозе")

    seasonality_strength_threshold: confloat(ge=0, le=1) = Field(
        default=0.1,
        description="Порог силы сезонности"
    )

    @model_validator(mode='after')
    def validate_horizon(self):
        """Горизонт по умолчанию не может превышать максимальный"""
        if self.max_periods_ahead is not None and self.default_periods_ahead > self.max_periods_ahead:
            raise ValueError("default_periods_ahead must not exceed max_periods_ahead")
        return self

    model_config = SettingsConfigDict(env_prefix="KPI_FORECAST_", case_sensitive=False)


class RegistryConfig(BaseSettings):
    """
    Конфигурация реестра моделей
    """

    default_max_age_ms: int = Field(
        default=24 * 60 * 60 * 1000,
        ge=0,
        description="Максимальный возраст модели при очистке (мс)"
    )

    model_config = SettingsConfigDict(env_prefix="KPI_REGISTRY_", case_sensitive=False)


class MonitoringConfig(BaseSettings):
    """
    Конфигурация логирования
    """

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Уровень логирования")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Формат логов")
    log_file: Optional[str] = Field(default=None, description="Файл логов")

    model_config = SettingsConfigDict(env_prefix="KPI_MONITORING_", case_sensitive=False)


class EngineConfig(BaseSettings):
    """
    Главная конфигурация движка прогнозирования KPI
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Среда выполнения"
    )

    service_name: str = Field(default="kpi-forecasting", description="Имя сервиса")
    version: str = Field(default="1.0.0", description="Версия сервиса")

    features: FeatureConfig = Field(default_factory=FeatureConfig)
    models: ModelConfig = Field(default_factory=ModelConfig)
    ensemble: EnsembleConfig = Field(default_factory=EnsembleConfig)
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    def is_production(self) -> bool:
        """Проверить production среду"""
        return self.environment == "production"

    def is_development(self) -> bool:
        """Проверить development среду"""
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_prefix="KPI_",
        case_sensitive=False,
        validate_default=True,
        extra="forbid",
    )


# Конфигурация процесса по умолчанию
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """
    Получить конфигурацию по умолчанию (создается при первом обращении)

    Returns:
        Экземпляр EngineConfig
    """
    global _config
    if _config is None:
        _config = EngineConfig()
    return _config


def reload_config() -> EngineConfig:
    """
    Перезагрузить конфигурацию из окружения

    Returns:
        Новый экземпляр EngineConfig
    """
    global _config
    _config = EngineConfig()
    return _config


def load_config_from_file(config_path: Union[str, Path]) -> EngineConfig:
    """
    Загрузить конфигурацию из YAML файла

    Args:
        config_path: Путь к файлу конфигурации

    Returns:
        Экземпляр EngineConfig
    """
    import yaml

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config_data = yaml.safe_load(f) or {}

    return EngineConfig(**config_data)


def save_config_to_file(config: EngineConfig, config_path: Union[str, Path]) -> None:
    """
    Сохранить конфигурацию в YAML файл

    Args:
        config: Экземпляр конфигурации
        config_path: Путь для сохранения
    """
    import yaml

    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config.model_dump(mode='json'), f, default_flow_style=False, allow_unicode=True)
