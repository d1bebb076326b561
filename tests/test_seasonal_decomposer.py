"""
Tests for seasonal decomposition.
"""

import pytest
import numpy as np

from kpi_forecasting.config.engine_config import ForecastConfig
from kpi_forecasting.seasonality.seasonal_decomposer import SeasonalDecomposer, SeasonalityResult


@pytest.fixture
def decomposer():
    return SeasonalDecomposer(ForecastConfig())


def seasonal_series(n: int, amplitude: float, base: float = 100.0) -> np.ndarray:
    """Ряд с квартальной сезонностью: v[i] = base + A * sin(pi * i / 2)"""
    i = np.arange(n)
    return base + amplitude * np.sin(np.pi * i / 2)


class TestSeasonalDecomposer:
    """Тесты для класса SeasonalDecomposer"""

    def test_injected_seasonality_detected(self, decomposer):
        """Тест обнаружения внесенной сезонности с амплитудой A"""
        amplitude = 10.0
        result = decomposer.decompose(seasonal_series(40, amplitude))

        assert isinstance(result, SeasonalityResult)
        assert result.has_seasonality
        assert result.seasonal_strength > 0.1
        assert result.seasonal_period == 4

        pattern = result.pattern_map()
        assert list(pattern) == ["Q1", "Q2", "Q3", "Q4"]
        assert pattern["Q2"] > 0.8 * amplitude
        assert pattern["Q4"] < -0.8 * amplitude
        assert abs(pattern["Q1"]) < 0.2 * amplitude
        assert abs(pattern["Q3"]) < 0.2 * amplitude

    def test_components_sum_to_values(self, decomposer):
        """Тест аддитивности компонент"""
        values = seasonal_series(16, 5.0) + np.linspace(0, 20, 16)
        result = decomposer.decompose(values)

        reconstructed = (
            np.array(result.trend_component)
            + np.array(result.seasonal_component)
            + np.array(result.residual_component)
        )
        np.testing.assert_allclose(reconstructed, values)

    def test_moving_average_trend(self, decomposer):
        """Тест центрированного скользящего среднего и краев ряда"""
        trend = decomposer.moving_average_trend(np.arange(1.0, 9.0))

        assert trend[0] == 1.0
        assert trend[1] == 2.0
        assert trend[2] == pytest.approx(2.5)
        assert trend[5] == pytest.approx(5.5)
        assert trend[6] == 7.0
        assert trend[7] == 8.0

    def test_seasonal_component_broadcast(self, decomposer):
        """Тест повторения среднего по позиции на весь ряд"""
        result = decomposer.decompose(seasonal_series(12, 3.0))
        seasonal = np.array(result.seasonal_component)

        for position in range(4):
            assert np.allclose(seasonal[position::4], seasonal[position])

    def test_short_series_is_degenerate(self, decomposer):
        """Тест вырожденного результата для ряда короче 8 точек"""
        values = [10.0, 12.0, 9.0, 11.0, 10.0, 13.0, 9.0]
        result = decomposer.decompose(values)

        assert not result.has_seasonality
        assert result.seasonal_strength == 0.0
        assert result.seasonal_period == 4
        assert result.seasonal_pattern == []
        assert result.trend_component == values
        assert result.seasonal_component == [0.0] * 7
        assert result.residual_component == [0.0] * 7

    def test_constant_series(self, decomposer):
        """Тест постоянного ряда без вариации"""
        result = decomposer.decompose([50.0] * 12)

        assert result.seasonal_strength == 0.0
        assert not result.has_seasonality

    def test_threshold_from_config(self):
        """Тест порога силы сезонности из конфигурации"""
        values = seasonal_series(40, 10.0)
        strict = SeasonalDecomposer(ForecastConfig(seasonality_strength_threshold=1.0))

        assert not strict.decompose(values).has_seasonality

    def test_observations_input(self, decomposer):
        """Тест декомпозиции ряда наблюдений с периодами"""
        periods = [f"{2022 + i // 4}-Q{i % 4 + 1}" for i in range(8)]
        series = [{"period": p, "value": float(v)} for p, v in zip(periods, seasonal_series(8, 4.0))]

        result = decomposer.decompose(series[::-1])

        assert result.periods == periods
        assert len(result.trend_component) == 8

    def test_to_dict(self, decomposer):
        """Тест сериализации результата"""
        result = decomposer.decompose(seasonal_series(12, 2.0)).to_dict()

        assert set(result) == {
            "has_seasonality",
            "seasonal_period",
            "seasonal_strength",
            "seasonal_pattern",
            "trend_component",
            "seasonal_component",
            "residual_component",
            "periods",
        }
        assert [entry["period"] for entry in result["seasonal_pattern"]] == ["Q1", "Q2", "Q3", "Q4"]
