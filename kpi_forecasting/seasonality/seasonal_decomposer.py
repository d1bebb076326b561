"""
Seasonal decomposition of quarterly KPI series.

Additive split value = trend + seasonal + residual with a fixed period of
four quarters. The trend is a centered moving average over one seasonal
period, the seasonal component is the per-position mean of the detrended
series and the residual is whatever remains.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Union

import numpy as np
import pandas as pd

from ..config.engine_config import get_config, ForecastConfig
from ..utils.logger import LoggerMixin, timed_operation
from ..utils.helpers import SeriesInput, normalize_series, safe_divide, QUARTERS_PER_YEAR
from ..utils.metrics import population_variance, to_numpy, ArrayLike
from ..utils.exceptions import InvalidDataException

SEASONAL_PERIOD = QUARTERS_PER_YEAR


@dataclass
class SeasonalPatternEntry:
    """Средний сезонный эффект для позиции внутри года"""
    period: str  # "Q1".."Q4"
    multiplier: float

    def to_dict(self) -> Dict[str, Any]:
        return {"period": self.period, "multiplier": self.multiplier}


@dataclass
class SeasonalityResult:
    """
    Результат сезонной декомпозиции
    """
    has_seasonality: bool
    seasonal_period: int
    seasonal_strength: float
    seasonal_pattern: List[SeasonalPatternEntry] = field(default_factory=list)
    trend_component: List[float] = field(default_factory=list)
    seasonal_component: List[float] = field(default_factory=list)
    residual_component: List[float] = field(default_factory=list)
    periods: List[str] = field(default_factory=list)

    def pattern_map(self) -> Dict[str, float]:
        """Сезонный паттерн как словарь {"Q1": multiplier, ...}"""
        return {entry.period: entry.multiplier for entry in self.seasonal_pattern}

    def to_dict(self) -> Dict[str, Any]:
        """Конвертация в словарь для сериализации"""
        return {
            "has_seasonality": self.has_seasonality,
            "seasonal_period": self.seasonal_period,
            "seasonal_strength": self.seasonal_strength,
            "seasonal_pattern": [entry.to_dict() for entry in self.seasonal_pattern],
            "trend_component": list(self.trend_component),
            "seasonal_component": list(self.seasonal_component),
            "residual_component": list(self.residual_component),
            "periods": list(self.periods),
        }


class SeasonalDecomposer(LoggerMixin):
    """
    Аддитивная сезонная декомпозиция с периодом 4 квартала

    Ряды короче двух сезонных периодов не раскладываются: возвращается
    вырожденный результат без сезонности (это не ошибка).
    """

    def __init__(self, config: Optional[ForecastConfig] = None, period: int = SEASONAL_PERIOD):
        super().__init__()
        if period < 2:
            raise InvalidDataException(f"Seasonal period must be >= 2, got {period}")
        self.config = config or get_config().forecast
        self.period = period

    @timed_operation("seasonal_decomposition")
    def decompose(self, series: Union[SeriesInput, ArrayLike]) -> SeasonalityResult:
        """
        Сезонная декомпозиция ряда

        Args:
            series: Наблюдения {period, value} или массив значений по порядку

        Returns:
            SeasonalityResult с компонентами и силой сезонности
        """
        values, periods = self._extract(series)
        n = len(values)

        if n < 2 * self.period:
            self.logger.debug(
                "Series too short for seasonal decomposition",
                observations=n,
                required=2 * self.period
            )
            return SeasonalityResult(
                has_seasonality=False,
                seasonal_period=self.period,
                seasonal_strength=0.0,
                seasonal_pattern=[],
                trend_component=values.tolist(),
                seasonal_component=[0.0] * n,
                residual_component=[0.0] * n,
                periods=periods
            )

        trend = self.moving_average_trend(values)
        seasonal = self.seasonal_component(values, trend)
        residual = values - trend - seasonal

        strength = self.seasonal_strength(seasonal, residual)

        positions = np.arange(n) % self.period
        pattern = [
            SeasonalPatternEntry(period=f"Q{k + 1}", multiplier=float(seasonal[positions == k].mean()))
            for k in range(self.period)
        ]

        result = SeasonalityResult(
            has_seasonality=strength > self.config.seasonality_strength_threshold,
            seasonal_period=self.period,
            seasonal_strength=strength,
            seasonal_pattern=pattern,
            trend_component=trend.tolist(),
            seasonal_component=seasonal.tolist(),
            residual_component=residual.tolist(),
            periods=periods
        )

        self.logger.info(
            "Seasonal decomposition completed",
            observations=n,
            seasonal_strength=round(strength, 4),
            has_seasonality=result.has_seasonality
        )
        return result

    def moving_average_trend(self, values: ArrayLike) -> np.ndarray:
        """
        Центрированное скользящее среднее с окном в один сезонный период

        Для i в середине ряда: mean(v[i - p//2 : i - p//2 + p]).
        Первые и последние p//2 точек берутся из исходного ряда.
        """
        values = to_numpy(values)
        half = self.period // 2
        n = len(values)

        s = pd.Series(values)
        trend = s.rolling(window=self.period).mean().shift(-(self.period - half - 1))

        edges = (np.arange(n) < half) | (np.arange(n) >= n - half)
        trend[edges] = s[edges]
        return trend.to_numpy(dtype=float)

    def seasonal_component(self, values: ArrayLike, trend: ArrayLike) -> np.ndarray:
        """Среднее очищенного от тренда ряда по позиции i mod period"""
        detrended = pd.Series(to_numpy(values) - to_numpy(trend))
        positions = np.arange(len(detrended)) % self.period
        return detrended.groupby(positions).transform("mean").to_numpy(dtype=float)

    @staticmethod
    def seasonal_strength(seasonal: ArrayLike, residual: ArrayLike) -> float:
        """
        Var(seasonal) / (Var(seasonal) + Var(residual)), дисперсии генеральные

        Для ряда без сезонной и остаточной вариации сила равна 0.
        """
        seasonal_var = population_variance(seasonal)
        residual_var = population_variance(residual)
        strength = safe_divide(seasonal_var, seasonal_var + residual_var, default=0.0)
        return float(np.clip(strength, 0.0, 1.0))

    @staticmethod
    def _extract(series: Union[SeriesInput, ArrayLike]):
        if isinstance(series, np.ndarray) or (
            isinstance(series, (list, tuple)) and all(isinstance(v, (int, float)) for v in series)
        ):
            values = to_numpy(series)
            if not np.all(np.isfinite(values)):
                raise InvalidDataException("Series values must be finite numbers")
            return values, []

        if isinstance(series, pd.Series):
            return to_numpy(series), [str(p) for p in series.index]

        df = normalize_series(series)
        return df["value"].to_numpy(dtype=float), df["period"].tolist()
