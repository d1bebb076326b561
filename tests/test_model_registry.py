"""
Tests for the in-memory model registry.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from kpi_forecasting.registry.model_registry import ModelRegistry
from kpi_forecasting.models.estimators import fit_linear_regression
from kpi_forecasting.utils.exceptions import DuplicateModelException, ModelNotFoundException


class FakeClock:
    """Управляемые часы для проверки очистки по возрасту"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0))


@pytest.fixture
def registry(clock):
    return ModelRegistry(clock=clock)


def artifact(name: str) -> SimpleNamespace:
    return SimpleNamespace(name=name)


class TestModelRegistry:
    """Тесты для класса ModelRegistry"""

    def test_register_and_get(self, registry):
        """Тест регистрации и поиска модели"""
        model = artifact("a")
        registry.register("model_a", model, 0.7)

        assert registry.get("model_a") is model
        assert registry.score("model_a") == 0.7
        assert "model_a" in registry
        assert len(registry) == 1

    def test_duplicate_id_rejected(self, registry):
        """Тест запрета повторной регистрации идентификатора"""
        registry.register("model_a", artifact("a"), 0.7)

        with pytest.raises(DuplicateModelException):
            registry.register("model_a", artifact("b"), 0.9)

        assert registry.score("model_a") == 0.7

    def test_get_missing(self, registry):
        """Тест поиска отсутствующей модели"""
        with pytest.raises(ModelNotFoundException) as exc_info:
            registry.get("missing")

        assert exc_info.value.details["model_id"] == "missing"
        assert registry.score("missing") is None

    def test_list_sorted_by_score(self, registry):
        """Тест сортировки списка моделей по убыванию оценки"""
        registry.register("low", artifact("low"), 0.2)
        registry.register("high", artifact("high"), 0.9)
        registry.register("mid", artifact("mid"), 0.5)

        summaries = registry.list_models()

        assert [s["id"] for s in summaries] == ["high", "mid", "low"]
        assert summaries[0]["performance"] == 0.9
        assert summaries[0]["trained_at"] == "2024-01-01T12:00:00"

    def test_list_reports_model_type(self, registry):
        """Тест типа модели в сводке"""
        model = fit_linear_regression([1.0, 2.0, 3.0], [2.0, 3.0, 4.0])
        registry.register(model.model_id, model, model.performance.r2)

        assert registry.list_models()[0]["type"] == "linear_regression"
        assert registry.list_models()[0]["trained_at"] == model.trained_at.isoformat()

    def test_cleanup_zero_evicts_everything(self, registry):
        """Тест очистки с нулевым возрастом"""
        for name in ("a", "b", "c"):
            registry.register(name, artifact(name), 0.5)

        assert registry.cleanup(0) == 3
        assert registry.list_models() == []
        assert len(registry) == 0

    def test_cleanup_by_age(self, registry, clock):
        """Тест удаления только устаревших моделей"""
        registry.register("old", artifact("old"), 0.5)
        clock.advance(hours=2)
        registry.register("new", artifact("new"), 0.5)

        evicted = registry.cleanup(60 * 60 * 1000)

        assert evicted == 1
        assert "old" not in registry
        assert "new" in registry
        assert registry.score("old") is None

        with pytest.raises(ModelNotFoundException):
            registry.get("old")

    def test_cleanup_boundary_age(self, registry, clock):
        """Тест модели ровно предельного возраста"""
        registry.register("edge", artifact("edge"), 0.5)
        clock.advance(milliseconds=500)

        assert registry.cleanup(501) == 0
        assert registry.cleanup(500) == 1

    def test_cleanup_negative_age(self, registry):
        """Тест отрицательного возраста"""
        with pytest.raises(ValueError):
            registry.cleanup(-1)

    def test_registries_are_independent(self):
        """Тест независимости экземпляров реестра"""
        first, second = ModelRegistry(), ModelRegistry()
        first.register("model_a", artifact("a"), 0.5)

        assert "model_a" in first
        assert "model_a" not in second
