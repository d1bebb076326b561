"""
Multi-step KPI forecasting.
"""

from .forecast_engine import ForecastEngine, ForecastResult, ForecastPoint, TrainingDataStats

__all__ = ["ForecastEngine", "ForecastResult", "ForecastPoint", "TrainingDataStats"]
