"""
Basic usage example for the KPI forecasting engine.

This example demonstrates the fundamental workflow:
1. Data preparation
2. Seasonality analysis
3. Forecasting
4. Model management
"""

import numpy as np
from datetime import datetime

from kpi_forecasting import ForecastEngine, ModelRegistry, EngineConfig
from kpi_forecasting.config import ForecastConfig
from kpi_forecasting.utils.exceptions import KPIForecastingException, create_error_response


def generate_sample_data(n_quarters: int = 16):
    """Generate a quarterly production KPI with trend and seasonality"""
    print("📊 Generating sample quarterly KPI data...")

    rng = np.random.default_rng(42)
    series = []
    for i in range(n_quarters):
        period = f"{2021 + i // 4}-Q{i % 4 + 1}"
        value = 1000 + 12 * i + 40 * np.sin(np.pi * i / 2) + rng.normal(0, 5)
        series.append({"period": period, "value": round(float(value), 2)})

    print(f"✅ Generated {len(series)} quarters: {series[0]['period']} .. {series[-1]['period']}")
    return series


def basic_forecasting_example():
    """Basic forecasting workflow"""
    print("\n🔮 Basic Forecasting Example")
    print("=" * 50)

    series = generate_sample_data()
    engine = ForecastEngine(registry=ModelRegistry())

    # 1. Seasonality
    print("\n1️⃣ Analyzing seasonality...")
    seasonality = engine.analyze_seasonality(series)
    print(f"   Seasonal strength: {seasonality.seasonal_strength:.3f}")
    print(f"   Has seasonality: {seasonality.has_seasonality}")
    for entry in seasonality.seasonal_pattern:
        print(f"   {entry.period}: {entry.multiplier:+.2f}")

    # 2. Forecast
    print("\n2️⃣ Forecasting 4 quarters ahead...")
    result = engine.forecast(series, periods_ahead=4, kpi_id="units_produced", factory_id="plant-1")

    print(f"   Model accuracy: {result.model_accuracy}%")
    print(f"   Training rows: {result.training_data.samples}, features: {result.training_data.features}")
    for point in result.predictions:
        print(
            f"   {point.period}: {point.predicted:.2f} "
            f"[{point.low:.2f} .. {point.high:.2f}] p={point.probability:.2f}"
        )

    # 3. Models
    print("\n3️⃣ Registered models:")
    for model in engine.list_models():
        print(f"   {model['id']} ({model['type']}): R² = {model['performance']:.3f}")

    return result


def configuration_example():
    """Custom configuration example"""
    print("\n⚙️ Configuration Example")
    print("=" * 50)

    config = EngineConfig(
        forecast=ForecastConfig(default_periods_ahead=2, seasonality_strength_threshold=0.3)
    )
    engine = ForecastEngine(config=config)

    result = engine.forecast(generate_sample_data(12))
    print(f"   Default horizon: {[p.period for p in result.predictions]}")
    print(f"   Evicted models: {engine.cleanup_models(0)}")


def error_handling_example():
    """Error handling example"""
    print("\n🚨 Error Handling Example")
    print("=" * 50)

    engine = ForecastEngine()

    try:
        engine.forecast(generate_sample_data(5), periods_ahead=2)
    except KPIForecastingException as e:
        response = create_error_response(e)
        print(f"   ✅ Caught {response['error']['type']}: {response['error']['message']}")

    try:
        engine.predict_ensemble(["missing_model"], [1.0] * 10)
    except KPIForecastingException as e:
        print(f"   ✅ Caught {e.error_code}: {e.message}")


if __name__ == "__main__":
    print("🔮 KPI Forecasting - Basic Usage Examples")
    print("=" * 60)
    print(f"Execution started at: {datetime.now()}")

    try:
        basic_forecasting_example()
        configuration_example()
        error_handling_example()

        print("\n" + "=" * 60)
        print("🎉 All examples completed successfully!")
        print(f"Execution finished at: {datetime.now()}")

    except KPIForecastingException as e:
        print(f"\n❌ Example failed with error: {e}")
        raise
