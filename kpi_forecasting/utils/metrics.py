"""
Metrics calculation utilities for model fit evaluation.

Fit quality (MSE, R²) of the estimators and the dispersion statistics used
by feature engineering, seasonal decomposition and forecast intervals.
"""

from dataclasses import dataclass
from typing import Dict, List, Union

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error, r2_score

from .exceptions import InvalidDataException

ArrayLike = Union[pd.Series, np.ndarray, List[float]]


@dataclass(frozen=True)
class ModelPerformance:
    """
    Качество подгонки модели на обучающих данных

    r2 ограничен интервалом [0, 1]: отрицательный R² (модель хуже среднего)
    считается нулевым качеством.
    """
    mse: float
    r2: float

    def to_dict(self) -> Dict[str, float]:
        """Конвертация в словарь для сериализации"""
        return {"mse": self.mse, "r2": self.r2}


def to_numpy(data: ArrayLike) -> np.ndarray:
    """Преобразование данных в одномерный numpy array float64"""
    if isinstance(data, pd.Series):
        return data.to_numpy(dtype=float)
    elif isinstance(data, (list, tuple, np.ndarray)):
        return np.asarray(data, dtype=float).ravel()
    else:
        raise InvalidDataException(f"Unsupported data type: {type(data).__name__}")


def calculate_fit_metrics(y_true: ArrayLike, y_pred: ArrayLike) -> ModelPerformance:
    """
    Вычисление MSE и R² для прогнозов модели на обучающих данных

    Args:
        y_true: Фактические значения
        y_pred: Прогнозные значения

    Returns:
        ModelPerformance с mse и r2 в [0, 1]

    Raises:
        InvalidDataException: При пустых или разных по длине массивах
    """
    y_true = to_numpy(y_true)
    y_pred = to_numpy(y_pred)

    if len(y_true) == 0:
        raise InvalidDataException("Cannot score an empty set of predictions")
    if len(y_true) != len(y_pred):
        raise InvalidDataException(
            "Length mismatch between actual and predicted values",
            data_info={"actual": len(y_true), "predicted": len(y_pred)}
        )

    mse = float(mean_squared_error(y_true, y_pred))

    if len(y_true) < 2:
        r2 = 1.0 if mse == 0 else 0.0
    else:
        # Для постоянного ряда sklearn возвращает 1.0 при точном совпадении, иначе 0.0
        r2 = float(r2_score(y_true, y_pred))

    return ModelPerformance(mse=mse, r2=float(np.clip(r2, 0.0, 1.0)))


def population_std(values: ArrayLike) -> float:
    """Стандартное отклонение генеральной совокупности (ddof=0)"""
    values = to_numpy(values)
    if len(values) == 0:
        return 0.0
    return float(np.std(values))


def population_variance(values: ArrayLike) -> float:
    """Дисперсия генеральной совокупности (ddof=0)"""
    values = to_numpy(values)
    if len(values) == 0:
        return 0.0
    return float(np.var(values))
