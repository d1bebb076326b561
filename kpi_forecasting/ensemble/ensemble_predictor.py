"""
Ensemble Predictor
Performance-weighted combination of registered KPI models.

Every member model predicts the same feature row; point predictions and
confidences are averaged with the members' R² as weights. A member that
fails is logged and left out as long as at least one member succeeds.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Sequence

import numpy as np

from ..config.engine_config import get_config, EnsembleConfig
from ..models.estimators import SUPPORTED_MODEL_CLASSES, ModelType
from ..registry.model_registry import ModelRegistry
from ..utils.logger import LoggerMixin
from ..utils.exceptions import (
    KPIForecastingException,
    ModelNotFoundException,
    UnsupportedModelTypeException,
    EmptyEnsembleException,
    PredictionException,
    log_exception
)


@dataclass(frozen=True)
class FeatureImportance:
    feature: str
    importance: float
    impact: str  # positive | negative

    def to_dict(self) -> Dict[str, Any]:
        return {"feature": self.feature, "importance": self.importance, "impact": self.impact}


# Статическая таблица, не вычисляется по коэффициентам моделей
FEATURE_IMPORTANCE = (
    FeatureImportance("lag1", 0.4, "positive"),
    FeatureImportance("trend", 0.3, "positive"),
    FeatureImportance("seasonal", 0.2, "positive"),
    FeatureImportance("volatility", 0.1, "negative"),
)

ASSUMPTIONS = (
    "Historical patterns continue",
    "No major structural changes",
    "Seasonal patterns remain stable",
)

LIMITATIONS = (
    "Based on historical data only",
    "External factors not considered",
    "Uncertainty increases with forecast horizon",
)


@dataclass
class ModelExplanation:
    """
    Описательный блок объяснения ансамблевого прогноза

    Таблица важности признаков, допущения и ограничения фиксированы;
    от вызова зависят только уровень уверенности и его факторы.
    """
    confidence_level: str  # high | medium | low
    confidence_factors: List[str]
    feature_importance: List[FeatureImportance] = field(default_factory=lambda: list(FEATURE_IMPORTANCE))
    assumptions: List[str] = field(default_factory=lambda: list(ASSUMPTIONS))
    limitations: List[str] = field(default_factory=lambda: list(LIMITATIONS))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_importance": [item.to_dict() for item in self.feature_importance],
            "confidence": {
                "level": self.confidence_level,
                "factors": list(self.confidence_factors),
            },
            "assumptions": list(self.assumptions),
            "limitations": list(self.limitations),
        }


@dataclass
class PredictionResult:
    """Точечный прогноз одной модели или ансамбля"""
    predicted: float
    confidence: float
    model: str
    features: List[float]
    explanation: Optional[ModelExplanation] = None
    members: Dict[str, float] = field(default_factory=dict)  # model_id -> вес участника

    def to_dict(self) -> Dict[str, Any]:
        """Конвертация в словарь для сериализации"""
        result = {
            "predicted": self.predicted,
            "confidence": self.confidence,
            "model": self.model,
            "features": list(self.features),
        }
        if self.explanation is not None:
            result["explanation"] = self.explanation.to_dict()
        if self.members:
            result["members"] = dict(self.members)
        return result


@dataclass
class _MemberPrediction:
    model_id: str
    value: float
    confidence: float
    weight: float


class EnsemblePredictor(LoggerMixin):
    """
    Прогнозирование зарегистрированными моделями и их ансамблем
    """

    def __init__(self, registry: ModelRegistry, config: Optional[EnsembleConfig] = None):
        super().__init__()
        self.registry = registry
        self.config = config or get_config().ensemble

    def clamp_confidence(self, confidence: float) -> float:
        """Ограничение уверенности интервалом [min_confidence, max_confidence]"""
        return float(min(self.config.max_confidence, max(self.config.min_confidence, confidence)))

    def predict_single(self, model_id: str, features: Sequence[float]) -> PredictionResult:
        """
        Прогноз одной моделью

        Args:
            model_id: Идентификатор модели в реестре
            features: Строка признаков

        Returns:
            PredictionResult с уверенностью R², ограниченной [0.1, 0.95]

        Raises:
            ModelNotFoundException: Модель не зарегистрирована или удалена
            UnsupportedModelTypeException: Артефакт не является известной моделью
            PredictionException: Ошибка вычисления прогноза
        """
        artifact = self.registry.get(model_id)

        if not isinstance(artifact, SUPPORTED_MODEL_CLASSES):
            model_type = getattr(artifact, "model_type", None)
            raise UnsupportedModelTypeException(
                str(getattr(model_type, "value", model_type) or type(artifact).__name__),
                model_id=model_id,
                supported_types=[cls.model_type.value for cls in SUPPORTED_MODEL_CLASSES]
            )

        features = [float(x) for x in features]

        try:
            predicted, confidence = artifact.predict(features)
        except Exception as e:
            # Любой сбой модели становится ошибкой прогноза этой модели
            raise PredictionException(
                f"Prediction failed for model {model_id}: {e}",
                prediction_params={"n_features": len(features)},
                model_info={"model_id": model_id, "model_type": artifact.model_type.value},
                original_exception=e
            ) from e

        if not np.isfinite(predicted):
            raise PredictionException(
                f"Model {model_id} produced a non-finite prediction",
                model_info={"model_id": model_id, "model_type": artifact.model_type.value}
            )

        return PredictionResult(
            predicted=float(predicted),
            confidence=self.clamp_confidence(confidence),
            model=artifact.model_type.value,
            features=features
        )

    def predict(
        self,
        model_ids: Sequence[str],
        features: Sequence[float],
        include_explanation: bool = True
    ) -> PredictionResult:
        """
        Ансамблевый прогноз, взвешенный по R² моделей

        Вес модели - ее R² в реестре; модель с нулевой или неизвестной
        оценкой получает вес по умолчанию.

        Args:
            model_ids: Идентификаторы моделей ансамбля
            features: Строка признаков
            include_explanation: Добавить блок объяснения

        Returns:
            PredictionResult ансамбля

        Raises:
            EmptyEnsembleException: Ни одна модель не дала прогноз
        """
        members: List[_MemberPrediction] = []
        failures: Dict[str, str] = {}

        for model_id in model_ids:
            try:
                prediction = self.predict_single(model_id, features)
            except KPIForecastingException as e:
                failures[model_id] = e.error_code
                if not isinstance(e, ModelNotFoundException):
                    log_exception(self.logger, e, {"model_id": model_id, "stage": "ensemble_member"})
                continue

            members.append(_MemberPrediction(
                model_id=model_id,
                value=prediction.predicted,
                confidence=prediction.confidence,
                weight=self.registry.score(model_id) or self.config.default_weight
            ))

        if not members:
            raise EmptyEnsembleException(list(model_ids), failures=failures)

        if failures:
            self.logger.warning(
                "Ensemble members skipped",
                skipped=sorted(failures),
                used=len(members)
            )

        weights = np.array([m.weight for m in members])
        total_weight = float(weights.sum())

        predicted = float(np.dot(weights, [m.value for m in members]) / total_weight)
        confidence = self.clamp_confidence(
            float(np.dot(weights, [m.confidence for m in members]) / total_weight)
        )

        explanation = None
        if include_explanation:
            explanation = self.explain(confidence, len(members), total_weight / len(members))

        return PredictionResult(
            predicted=predicted,
            confidence=confidence,
            model=ModelType.ENSEMBLE.value,
            features=[float(x) for x in features],
            explanation=explanation,
            members={m.model_id: m.weight for m in members}
        )

    def model_predictions(
        self,
        model_ids: Sequence[str],
        features: Sequence[float],
        fallback: float
    ) -> List[float]:
        """
        Точечные прогнозы каждой модели, fallback для модели с ошибкой

        Используется для интервала разброса между моделями.
        """
        values = []
        for model_id in model_ids:
            try:
                values.append(self.predict_single(model_id, features).predicted)
            except KPIForecastingException:
                values.append(float(fallback))
        return values

    def confidence_level(self, confidence: float) -> str:
        if confidence > self.config.high_confidence_threshold:
            return "high"
        if confidence > self.config.medium_confidence_threshold:
            return "medium"
        return "low"

    def explain(self, confidence: float, n_models: int, mean_weight: float) -> ModelExplanation:
        """Фиксированный блок объяснения с уровнем уверенности"""
        return ModelExplanation(
            confidence_level=self.confidence_level(confidence),
            confidence_factors=[
                f"{n_models} models agreement",
                f"Average R² = {mean_weight:.3f}",
            ]
        )
