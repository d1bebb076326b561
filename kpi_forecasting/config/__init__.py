"""
Configuration for the KPI forecasting engine.
"""

from .engine_config import (
    EngineConfig,
    FeatureConfig,
    ModelConfig,
    EnsembleConfig,
    ForecastConfig,
    RegistryConfig,
    MonitoringConfig,
    get_config,
    reload_config,
    load_config_from_file,
    save_config_to_file
)

__all__ = [
    "EngineConfig",
    "FeatureConfig",
    "ModelConfig",
    "EnsembleConfig",
    "ForecastConfig",
    "RegistryConfig",
    "MonitoringConfig",
    "get_config",
    "reload_config",
    "load_config_from_file",
    "save_config_to_file"
]
