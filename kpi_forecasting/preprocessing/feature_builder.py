"""
Feature engineering for quarterly KPI series.

Turns a period/value series into a supervised learning table: three lags,
short-term trend and volatility, one-hot quarter flags, a time index and
optional external numeric features keyed by period.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Sequence

import numpy as np
import pandas as pd

from ..config.engine_config import get_config, FeatureConfig
from ..utils.logger import LoggerMixin
from ..utils.exceptions import InsufficientDataException, InvalidDataException
from ..utils.helpers import (
    SeriesInput,
    ExtraFeaturesInput,
    normalize_series,
    normalize_extra_features,
    quarter_flags,
    QUARTERS_PER_YEAR
)
from ..utils.metrics import population_std

LAG_NAMES = ["lag1", "lag2", "lag3"]
QUARTER_NAMES = [f"quarter{q}" for q in range(1, QUARTERS_PER_YEAR + 1)]
BASE_FEATURE_NAMES = LAG_NAMES + ["trend", "volatility"] + QUARTER_NAMES + ["timeIndex"]
MIN_FEATURE_OBSERVATIONS = len(LAG_NAMES) + 1


@dataclass
class TrainingData:
    """
    Обучающая выборка: матрица признаков, целевые значения и периоды строк
    """
    features: pd.DataFrame  # Строки признаков, колонки в порядке feature_names
    targets: pd.Series  # Значение ряда в периоде строки
    periods: List[str]  # Периоды строк (первые три наблюдения не входят)
    values: pd.Series  # Исходный отсортированный ряд целиком, индекс - периоды
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_samples(self) -> int:
        return len(self.features)

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    @property
    def feature_names(self) -> List[str]:
        return list(self.features.columns)

    @property
    def n_periods(self) -> int:
        """Длина исходного ряда"""
        return len(self.values)

    def feature_rows(self) -> List[List[float]]:
        """Строки признаков как списки float"""
        return self.features.to_numpy(dtype=float).tolist()

    def to_dict(self) -> Dict[str, Any]:
        """Конвертация в словарь для сериализации"""
        return {
            "features": self.feature_rows(),
            "targets": self.targets.tolist(),
            "metadata": {
                **self.metadata,
                "periods": list(self.periods),
                "feature_names": self.feature_names,
            },
        }


class FeatureBuilder(LoggerMixin):
    """
    Построитель признаков для квартальных рядов KPI

    Строка для индекса i (i >= 3) отсортированного ряда:
    [lag1, lag2, lag3, trend, volatility, quarter1..quarter4, timeIndex, ...extra]
    """

    def __init__(self, config: Optional[FeatureConfig] = None):
        super().__init__()
        self.config = config or get_config().features

    def build(
        self,
        series: SeriesInput,
        extra_features: Optional[ExtraFeaturesInput] = None,
        kpi_id: str = "unknown",
        factory_id: Optional[str] = None
    ) -> TrainingData:
        """
        Построение обучающей выборки из ряда наблюдений

        Args:
            series: Наблюдения {period, value}
            extra_features: Внешние числовые признаки по периодам
            kpi_id: Идентификатор KPI для метаданных
            factory_id: Идентификатор площадки для метаданных

        Returns:
            TrainingData с признаками и целевыми значениями

        Raises:
            InsufficientDataException: Если наблюдений меньше четырех
        """
        df = normalize_series(series)

        if len(df) < MIN_FEATURE_OBSERVATIONS:
            raise InsufficientDataException(
                f"Insufficient data for feature building: {len(df)} observations, "
                f"minimum required: {MIN_FEATURE_OBSERVATIONS}",
                required_samples=MIN_FEATURE_OBSERVATIONS,
                provided_samples=len(df),
                stage="feature_building"
            )

        values = df["value"]
        features = pd.DataFrame(index=df.index)

        for lag, name in enumerate(LAG_NAMES, start=1):
            features[name] = values.shift(lag)

        features["trend"] = (values - values.shift(len(LAG_NAMES))) / len(LAG_NAMES)
        features["volatility"] = features[LAG_NAMES].std(axis=1, ddof=0)

        flags = pd.DataFrame(
            [quarter_flags(period) for period in df["period"]],
            columns=QUARTER_NAMES,
            index=df.index
        )
        features = features.join(flags)
        features["timeIndex"] = df.index.astype(float)

        # Первые три наблюдения служат только лагами
        features = features.iloc[len(LAG_NAMES):]
        periods = df["period"].iloc[len(LAG_NAMES):].tolist()

        extra = self._build_extra_features(extra_features, periods, features.index)
        if not extra.empty:
            features = features.join(extra)

        features = features.astype(float).reset_index(drop=True)
        targets = values.iloc[len(LAG_NAMES):].reset_index(drop=True)

        training_data = TrainingData(
            features=features,
            targets=targets,
            periods=periods,
            values=pd.Series(values.to_numpy(), index=df["period"].tolist(), name="value"),
            metadata={"kpi_id": kpi_id, "factory_id": factory_id}
        )

        self.logger.debug(
            "Training data prepared",
            kpi_id=kpi_id,
            samples=training_data.n_samples,
            features=training_data.n_features,
            extra_features=list(extra.columns)
        )

        return training_data

    def _build_extra_features(
        self,
        extra_features: Optional[ExtraFeaturesInput],
        periods: List[str],
        index: pd.Index
    ) -> pd.DataFrame:
        """Внешние признаки, выровненные по периодам строк"""
        table = normalize_extra_features(extra_features)
        rows = {period: table[period] for period in periods if period in table}
        if not any(rows.values()):
            return pd.DataFrame(index=index)

        extra = pd.DataFrame.from_dict(rows, orient="index").reindex(periods)
        extra = extra.rename(columns=lambda name: f"extra_{name}" if name in BASE_FEATURE_NAMES else name)
        if self.config.extra_feature_fill is not None:
            extra = extra.fillna(self.config.extra_feature_fill)
        extra.index = index
        return extra

    def build_forecast_features(
        self,
        window: Sequence[float],
        period: str,
        time_index: int
    ) -> List[float]:
        """
        Синтетическая строка признаков для будущего периода

        Args:
            window: Последние известные или спрогнозированные значения (до трех)
            period: Будущий период "YYYY-Qn"
            time_index: Индекс времени (длина ряда + шаг прогноза)

        Returns:
            Строка признаков без внешних признаков
        """
        if len(window) == 0:
            raise InvalidDataException("Forecast window must contain at least one value")

        lag1 = float(window[-1])
        lag2 = float(window[-2]) if len(window) >= 2 else lag1
        lag3 = float(window[-3]) if len(window) >= 3 else lag2

        trend = (lag1 - lag3) / 2
        volatility = population_std(np.asarray(window, dtype=float))

        return [lag1, lag2, lag3, trend, volatility, *quarter_flags(period), float(time_index)]
