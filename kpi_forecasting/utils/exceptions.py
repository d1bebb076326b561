"""
Exceptions raised by the KPI forecasting engine

Every error carries a stable error code and a details mapping, so the
presentation layer can serialize it without knowing the concrete class.
"""

import functools
from datetime import datetime
from typing import Optional, Dict, Any, List


def _compact(**fields) -> Dict[str, Any]:
    """Детали ошибки без пустых полей"""
    return {key: value for key, value in fields.items() if value is not None and value != {}}


class KPIForecastingException(Exception):
    """
    Базовое исключение движка прогнозирования KPI

    Args:
        message: Текст ошибки
        error_code: Код ошибки (по умолчанию код класса)
        details: Структурированные подробности
        original_exception: Исключение-причина
    """

    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code or type(self).__name__
        self.details = dict(details or {})
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        if original_exception is not None:
            self.details.update(
                original_error=str(original_exception),
                original_type=type(original_exception).__name__
            )

    def to_dict(self) -> Dict[str, Any]:
        """Словарь для JSON ответа"""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "original_exception": None if self.original_exception is None else str(self.original_exception),
        }

    def __str__(self) -> str:
        text = f"[{self.error_code}] {self.message}"
        return f"{text} | Details: {self.details}" if self.details else text


class InsufficientDataException(KPIForecastingException):
    """
    Ряд слишком короткий для построения признаков, обучения или прогноза

    stage указывает этап: feature_building, training, forecasting или имя модели.
    """

    default_code = "INSUFFICIENT_DATA"

    def __init__(
        self,
        message: str,
        required_samples: Optional[int] = None,
        provided_samples: Optional[int] = None,
        stage: Optional[str] = None
    ):
        super().__init__(
            message,
            details=_compact(
                required_samples=required_samples,
                provided_samples=provided_samples,
                stage=stage
            )
        )


class InvalidDataException(KPIForecastingException):
    """Некорректный период, значение, дубликат периода или параметр запроса"""

    default_code = "INVALID_DATA"

    def __init__(
        self,
        message: str,
        validation_errors: Optional[Dict[str, Any]] = None,
        data_info: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(
            message,
            details=_compact(validation_errors=validation_errors, data_info=data_info),
            original_exception=original_exception
        )


class ModelNotFoundException(KPIForecastingException):
    """Модель не зарегистрирована или удалена очисткой реестра"""

    default_code = "MODEL_NOT_FOUND"

    def __init__(self, model_id: str, message: Optional[str] = None):
        super().__init__(message or f"Model {model_id} not found", details={"model_id": model_id})
        self.model_id = model_id


class UnsupportedModelTypeException(KPIForecastingException):
    """
    Артефакт или запрошенный тип не входит в число известных моделей
    """

    default_code = "UNSUPPORTED_MODEL_TYPE"

    def __init__(
        self,
        model_type: str,
        model_id: Optional[str] = None,
        supported_types: Optional[List[str]] = None
    ):
        super().__init__(
            f"Unsupported model type: {model_type}",
            details=_compact(
                model_type=model_type,
                model_id=model_id,
                supported_types=list(supported_types) if supported_types else None
            )
        )
        self.model_type = model_type


class EmptyEnsembleException(KPIForecastingException):
    """Ни одна модель ансамбля не дала прогноз"""

    default_code = "EMPTY_ENSEMBLE"

    def __init__(self, model_ids: List[str], failures: Optional[Dict[str, str]] = None):
        super().__init__(
            "No valid predictions from ensemble models",
            details=_compact(model_ids=list(model_ids), failures=failures or None)
        )


class DuplicateModelException(KPIForecastingException):
    default_code = "DUPLICATE_MODEL"

    def __init__(self, model_id: str):
        super().__init__(f"Model {model_id} is already registered", details={"model_id": model_id})
        self.model_id = model_id


class ModelTrainingException(KPIForecastingException):
    """Численная ошибка при подгонке модели"""

    default_code = "MODEL_TRAINING_ERROR"

    def __init__(
        self,
        message: str,
        model_params: Optional[Dict[str, Any]] = None,
        training_stage: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(
            message,
            details=_compact(model_params=model_params, training_stage=training_stage),
            original_exception=original_exception
        )


class PredictionException(KPIForecastingException):
    """Ошибка вычисления прогноза одной моделью"""

    default_code = "PREDICTION_ERROR"

    def __init__(
        self,
        message: str,
        prediction_params: Optional[Dict[str, Any]] = None,
        model_info: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(
            message,
            details=_compact(prediction_params=prediction_params, model_info=model_info),
            original_exception=original_exception
        )


def handle_training_exception(func):
    """
    Декоратор функций обучения

    Исключения движка проходят без изменений; ValueError, ArithmeticError
    и IndexError из numpy/sklearn становятся ModelTrainingException.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KPIForecastingException:
            raise
        except (ValueError, ArithmeticError, IndexError) as e:
            raise ModelTrainingException(
                f"Training failed in {func.__name__}: {e}",
                training_stage=func.__name__,
                original_exception=e
            ) from e

    return wrapper


def create_error_response(exception: KPIForecastingException) -> Dict[str, Any]:
    """Ответ об ошибке для слоя представления"""
    return {
        "success": False,
        "error": {
            "type": type(exception).__name__,
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "timestamp": exception.timestamp.isoformat(),
        },
    }


def log_exception(logger, exception: Exception, context: Optional[Dict[str, Any]] = None):
    """
    Запись исключения в лог

    Исключения движка пишутся предупреждением с кодом и деталями,
    остальные - ошибкой с трассировкой.

    Args:
        logger: structlog логгер
        exception: Исключение
        context: Дополнительные поля события
    """
    fields = dict(context or {})

    if isinstance(exception, KPIForecastingException):
        logger.warning(
            exception.message,
            error_code=exception.error_code,
            error_type=type(exception).__name__,
            details=exception.details,
            **fields
        )
    else:
        logger.error(
            f"Unexpected error: {exception}",
            error_type=type(exception).__name__,
            exc_info=True,
            **fields
        )
