"""
Helper utilities for the KPI forecasting engine.

Quarter-period parsing and arithmetic, normalization of observation series
and extra-feature side tables, and numeric formatting helpers.
"""

import re
import math
import numbers
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union, Optional, List, Dict, Any, Tuple, Mapping, Sequence

import numpy as np
import pandas as pd

from .exceptions import InvalidDataException

# Квартальный период вида "2024-Q3"
PERIOD_PATTERN = re.compile(r'^(\d{4})-Q([1-4])$')
QUARTER_PATTERN = re.compile(r'Q(\d)')
QUARTERS_PER_YEAR = 4


@dataclass(frozen=True)
class Observation:
    """
    Наблюдение метрики за один квартал
    """
    period: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        """Конвертация в словарь для сериализации"""
        return {"period": self.period, "value": self.value}


SeriesInput = Union[pd.DataFrame, Sequence[Union[Observation, Mapping[str, Any]]]]
ExtraFeaturesInput = Union[Mapping[str, Mapping[str, Any]], Sequence[Mapping[str, Any]]]


def validate_period(period: Any, raise_error: bool = True) -> bool:
    """
    Валидация квартального периода

    Args:
        period: Период для проверки (например, "2024-Q1")
        raise_error: Вызывать исключение при ошибке

    Returns:
        True если период валиден

    Raises:
        InvalidDataException: Если формат периода некорректен (при raise_error=True)
    """
    if not isinstance(period, str):
        if raise_error:
            raise InvalidDataException(f"Period must be string, got {type(period).__name__}")
        return False

    if not PERIOD_PATTERN.match(period):
        if raise_error:
            raise InvalidDataException(
                f"Invalid period format: {period!r}. Expected 'YYYY-Qn' with n in 1..4"
            )
        return False

    return True


def parse_period(period: str) -> Tuple[int, int]:
    """
    Разбор периода на год и номер квартала

    Args:
        period: Период вида "YYYY-Qn"

    Returns:
        Кортеж (год, квартал)
    """
    validate_period(period)
    match = PERIOD_PATTERN.match(period)
    return int(match.group(1)), int(match.group(2))


def extract_quarter_number(period: str) -> int:
    """Номер квартала из суффикса "Qk" (1, если суффикс не найден)"""
    match = QUARTER_PATTERN.search(period)
    return int(match.group(1)) if match else 1


def quarter_flags(period: str) -> List[float]:
    """One-hot признаки квартала [q1, q2, q3, q4]"""
    quarter = extract_quarter_number(period)
    return [1.0 if quarter == q else 0.0 for q in range(1, QUARTERS_PER_YEAR + 1)]


def shift_period(period: str, steps: int) -> str:
    """
    Сдвиг периода на заданное количество кварталов вперед

    Args:
        period: Исходный период "YYYY-Qn"
        steps: Количество кварталов

    Returns:
        Новый период "YYYY-Qn"
    """
    year, quarter = parse_period(period)
    offset = quarter - 1 + steps
    return f"{year + offset // QUARTERS_PER_YEAR}-Q{offset % QUARTERS_PER_YEAR + 1}"


def _is_number(value: Any) -> bool:
    """Числовое значение (bool не считается числом)"""
    return isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_))


def normalize_series(data: SeriesInput) -> pd.DataFrame:
    """
    Приведение ряда наблюдений к DataFrame, отсортированному по периоду

    Args:
        data: DataFrame с колонками period/value, список словарей
            {"period", "value"} или список Observation

    Returns:
        DataFrame с колонками period (str) и value (float)

    Raises:
        InvalidDataException: При некорректном формате, периоде, значении
            или дубликатах периодов
    """
    if isinstance(data, pd.DataFrame):
        missing = [col for col in ("period", "value") if col not in data.columns]
        if missing:
            raise InvalidDataException(
                f"Series is missing required columns: {missing}",
                data_info={"columns": [str(c) for c in data.columns]}
            )
        records = data[["period", "value"]].to_dict("records")
    elif isinstance(data, (list, tuple)):
        records = []
        for item in data:
            if isinstance(item, Observation):
                records.append(item.to_dict())
            elif isinstance(item, Mapping):
                if "period" not in item or "value" not in item:
                    raise InvalidDataException(
                        "Observation must contain 'period' and 'value'",
                        data_info={"keys": sorted(str(k) for k in item.keys())}
                    )
                records.append({"period": item["period"], "value": item["value"]})
            else:
                raise InvalidDataException(f"Unsupported observation type: {type(item).__name__}")
    else:
        raise InvalidDataException(f"Unsupported series type: {type(data).__name__}")

    invalid_periods = [r["period"] for r in records if not validate_period(r["period"], raise_error=False)]
    if invalid_periods:
        raise InvalidDataException(
            "Series contains malformed periods",
            validation_errors={"invalid_periods": [str(p) for p in invalid_periods[:10]]}
        )

    invalid_values = [
        r["period"] for r in records
        if not _is_number(r["value"]) or not math.isfinite(float(r["value"]))
    ]
    if invalid_values:
        raise InvalidDataException(
            "Series contains non-numeric or non-finite values",
            validation_errors={"invalid_value_periods": invalid_values[:10]}
        )

    df = pd.DataFrame(records, columns=["period", "value"])
    df["value"] = df["value"].astype(float)

    duplicated = df["period"][df["period"].duplicated()].unique().tolist()
    if duplicated:
        raise InvalidDataException(
            "Series contains duplicate periods",
            validation_errors={"duplicate_periods": duplicated}
        )

    # Лексикографический порядок совпадает с хронологическим для "YYYY-Qn"
    return df.sort_values("period", kind="mergesort").reset_index(drop=True)


def normalize_extra_features(extra: Optional[ExtraFeaturesInput]) -> Dict[str, Dict[str, float]]:
    """
    Приведение таблицы внешних признаков к виду {period: {name: value}}

    Нечисловые значения и ключ "period" отбрасываются. Для списка записей
    используется первая запись с данным периодом.

    Args:
        extra: Словарь period -> признаки или список словарей с ключом "period"

    Returns:
        Словарь числовых признаков по периодам
    """
    if extra is None:
        return {}

    if isinstance(extra, Mapping):
        items = list(extra.items())
    elif isinstance(extra, (list, tuple)):
        items = []
        for row in extra:
            if not isinstance(row, Mapping) or "period" not in row:
                raise InvalidDataException("Extra feature rows must be mappings with a 'period' key")
            items.append((row["period"], row))
    else:
        raise InvalidDataException(f"Unsupported extra features type: {type(extra).__name__}")

    table: Dict[str, Dict[str, float]] = {}
    for period, row in items:
        key = str(period)
        if key in table:
            continue
        table[key] = {
            str(name): float(value)
            for name, value in row.items()
            if name != "period" and _is_number(value)
        }

    return table


def safe_divide(
    numerator: Union[int, float],
    denominator: Union[int, float],
    default: Optional[float] = None
) -> Optional[float]:
    """Частное numerator / denominator; при нулевом знаменателе возвращается default"""
    if denominator == 0:
        return default
    return float(numerator) / float(denominator)


def round_to_precision(value: float, precision: int = 2) -> float:
    """
    Округление половины вверх (2.345 -> 2.35) через Decimal

    NaN и бесконечности возвращаются без изменений.
    """
    value = float(value)
    if not math.isfinite(value):
        return value
    quantize_exp = Decimal(1).scaleb(-precision)
    return float(Decimal(str(value)).quantize(quantize_exp, rounding=ROUND_HALF_UP))
