"""
Structured logging for the KPI forecasting engine

structlog bound loggers rendered through the stdlib logging module. Every
event carries the service name, version, environment and process id; the
helpers below give training, forecasting and timing events a stable shape.
"""

import logging
import os
import sys
import time
import functools
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

import structlog
from structlog.types import Processor


class LogLevel(str, Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Формат вывода событий"""
    JSON = "json"
    TEXT = "text"
    COLORED = "colored"


_RENDERERS = {
    LogFormat.JSON: lambda: structlog.processors.JSONRenderer(),
    LogFormat.COLORED: lambda: structlog.dev.ConsoleRenderer(colors=True),
    LogFormat.TEXT: lambda: structlog.processors.KeyValueRenderer(
        key_order=["timestamp", "level", "logger", "event"]
    ),
}

# Логгеры библиотек, которые пишут только предупреждения и выше
_QUIET_LIBRARIES = ("sklearn", "numexpr", "matplotlib")

_configured = False
_file_handler: Optional[logging.Handler] = None


def _service_context(service_name: str, service_version: str, environment: str) -> Processor:
    """Процессор, добавляющий в событие сведения о сервисе"""
    context = {
        "service": service_name,
        "version": service_version,
        "environment": environment,
    }

    def add_service_context(logger, method_name, event_dict):
        event_dict.update(context)
        event_dict["pid"] = os.getpid()
        return event_dict

    return add_service_context


def _build_processors(format_type: LogFormat, service_context: Processor) -> List[Processor]:
    callsite = structlog.processors.CallsiteParameterAdder(
        parameters=[
            structlog.processors.CallsiteParameter.FILENAME,
            structlog.processors.CallsiteParameter.FUNC_NAME,
            structlog.processors.CallsiteParameter.LINENO,
        ]
    )
    return [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        callsite,
        structlog.processors.format_exc_info,
        service_context,
        _RENDERERS[format_type](),
    ]


def configure_logging(
    level: Union[LogLevel, str] = LogLevel.INFO,
    format_type: Union[LogFormat, str] = LogFormat.JSON,
    log_file: Optional[Union[str, Path]] = None,
    service_name: str = "kpi-forecasting",
    service_version: str = "1.0.0",
    environment: str = "development",
    force: bool = False
) -> None:
    """
    Настройка structlog и корневого stdlib логгера

    Повторный вызов без force ничего не меняет: первая настройка процесса
    остается в силе.

    Args:
        level: Минимальный уровень событий
        format_type: json, text или colored
        log_file: Дополнительный файл для событий
        service_name: Имя сервиса в каждом событии
        service_version: Версия сервиса в каждом событии
        environment: development, staging или production
        force: Перенастроить уже настроенное логирование
    """
    global _configured, _file_handler

    if _configured and not force:
        return

    numeric_level = getattr(logging, LogLevel(level).value)

    structlog.configure(
        processors=_build_processors(
            LogFormat(format_type),
            _service_context(service_name, service_version, environment)
        ),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    root.setLevel(numeric_level)

    if _file_handler is not None:
        root.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(numeric_level)
        # Событие уже отрендерено structlog
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        _file_handler = handler

    for library in _QUIET_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Структурированный логгер; при первом обращении логирование
    настраивается значениями по умолчанию

    Args:
        name: Имя логгера, по умолчанию модуль вызывающего кода
    """
    if not _configured:
        configure_logging()

    if name is None:
        import inspect
        caller = inspect.currentframe().f_back
        name = caller.f_globals.get("__name__", "kpi_forecasting")

    return structlog.get_logger(name)


def get_model_logger(
    model_type: str,
    model_id: Optional[str] = None,
    kpi_id: Optional[str] = None,
    operation: Optional[str] = None
) -> structlog.stdlib.BoundLogger:
    """Логгер событий одной модели (обучение, прогноз)"""
    bound = {
        key: value
        for key, value in (
            ("model_type", model_type),
            ("model_id", model_id),
            ("kpi_id", kpi_id),
            ("operation", operation),
        )
        if value
    }
    return get_logger("kpi_forecasting.model").bind(**bound)


def log_operation_timing(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    duration_seconds: float,
    error: Optional[BaseException] = None
):
    """Событие о длительности операции; ошибка пишется уровнем error"""
    fields = {
        "operation": operation,
        "duration_ms": round(duration_seconds * 1000, 2),
        "success": error is None,
        "timing_log": True,
    }
    if error is None:
        logger.info(f"{operation} finished", **fields)
    else:
        logger.error(f"{operation} failed", error=str(error), error_type=type(error).__name__, **fields)


def log_forecast_metrics(
    logger: structlog.stdlib.BoundLogger,
    kpi_id: Optional[str],
    forecast_points: int,
    training_samples: int,
    model_accuracy: int
):
    """
    Событие о завершенном прогнозе

    Args:
        logger: Логгер движка
        kpi_id: Идентификатор KPI
        forecast_points: Число спрогнозированных кварталов
        training_samples: Число строк признаков
        model_accuracy: Среднее R² моделей в процентах
    """
    logger.info(
        "Forecast generated",
        kpi_id=kpi_id,
        forecast_points=forecast_points,
        training_samples=training_samples,
        model_accuracy=model_accuracy,
        forecast_log=True
    )


def log_model_training(
    logger: structlog.stdlib.BoundLogger,
    model_id: str,
    model_type: str,
    samples_count: int,
    model_params: Dict[str, Any],
    performance: Dict[str, float]
):
    """Событие о зарегистрированной модели с ее параметрами и качеством"""
    logger.info(
        "Model trained",
        model_id=model_id,
        model_type=model_type,
        training_samples=samples_count,
        parameters=model_params,
        mse=performance.get("mse"),
        r2=performance.get("r2"),
        training_log=True
    )


class LoggerMixin:
    """
    Примесь с ленивым логгером, привязанным к имени класса

    Логгер создается при первом обращении и пересоздается после
    set_log_context().
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger = None
        self._log_context: Dict[str, Any] = {}

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        if self._logger is None:
            cls = type(self)
            self._logger = get_logger(f"{cls.__module__}.{cls.__name__}").bind(
                component=cls.__name__,
                **self._log_context
            )
        return self._logger

    def set_log_context(self, **kwargs):
        """Добавить поля во все последующие события экземпляра"""
        self._log_context.update(kwargs)
        self._logger = None


def timed_operation(operation_name: Optional[str] = None):
    """
    Декоратор: пишет длительность вызова, исключения пробрасываются

    Args:
        operation_name: Имя операции в событии (по умолчанию имя функции)
    """
    def decorator(func):
        name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log_operation_timing(logger, name, time.perf_counter() - started, error=e)
                raise
            log_operation_timing(logger, name, time.perf_counter() - started)
            return result

        return wrapper
    return decorator
