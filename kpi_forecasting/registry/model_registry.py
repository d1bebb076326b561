"""
Model Registry
In-memory store of trained model artifacts and their fit scores.

Each registry is an explicit handle owned by its caller: there is no
process-wide instance, no persistence, no locking and no background
eviction. Artifacts leave the registry only through cleanup().
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..utils.logger import LoggerMixin
from ..utils.exceptions import DuplicateModelException, ModelNotFoundException


@dataclass
class RegistryEntry:
    """Registered artifact with its score and training timestamp"""
    model_id: str
    artifact: Any
    score: float
    trained_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.trained_at

    def to_summary(self) -> Dict[str, Any]:
        """Summary row for list_models()"""
        model_type = getattr(self.artifact, "model_type", None)
        return {
            'id': self.model_id,
            'type': getattr(model_type, "value", model_type),
            'performance': self.score,
            'trained_at': self.trained_at.isoformat()
        }


class ModelRegistry(LoggerMixin):
    """
    Keyed store of trained models.

    Holds one mapping model id -> artifact and a parallel mapping
    model id -> performance score. Ids are unique: registering an id twice
    is an error.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        super().__init__()
        self._clock = clock
        self._models: Dict[str, RegistryEntry] = {}
        self._performance: Dict[str, float] = {}

    def register(self, model_id: str, artifact: Any, score: float) -> None:
        """
        Register a trained artifact.

        Args:
            model_id: Unique model identifier
            artifact: Trained model artifact
            score: Performance score (R²) used for ranking and ensemble weights

        Raises:
            DuplicateModelException: If the id is already registered
        """
        if model_id in self._models:
            raise DuplicateModelException(model_id)

        trained_at = getattr(artifact, "trained_at", None) or self._clock()
        self._models[model_id] = RegistryEntry(
            model_id=model_id,
            artifact=artifact,
            score=float(score),
            trained_at=trained_at
        )
        self._performance[model_id] = float(score)

        self.logger.debug("Model registered", model_id=model_id, score=float(score))

    def get(self, model_id: str) -> Any:
        """
        Look up an artifact by id.

        Raises:
            ModelNotFoundException: If the id is unknown or was evicted
        """
        try:
            return self._models[model_id].artifact
        except KeyError:
            raise ModelNotFoundException(model_id) from None

    def score(self, model_id: str) -> Optional[float]:
        """Performance score of a model, None if unknown"""
        return self._performance.get(model_id)

    def list_models(self) -> List[Dict[str, Any]]:
        """Summaries of all models sorted by score, best first"""
        entries = sorted(self._models.values(), key=lambda e: e.score, reverse=True)
        return [entry.to_summary() for entry in entries]

    def cleanup(self, max_age_ms: float) -> int:
        """
        Evict every model trained at or before now - max_age_ms.

        Args:
            max_age_ms: Maximum model age in milliseconds (0 evicts everything)

        Returns:
            Number of evicted models
        """
        if max_age_ms < 0:
            raise ValueError(f"max_age_ms must be >= 0, got {max_age_ms}")

        now = self._clock()
        max_age = timedelta(milliseconds=max_age_ms)

        expired = [
            model_id for model_id, entry in self._models.items()
            if entry.age(now) >= max_age
        ]
        for model_id in expired:
            del self._models[model_id]
            del self._performance[model_id]

        self.logger.info(
            f"Cleaned {len(expired)} old models",
            evicted=len(expired),
            remaining=len(self._models),
            max_age_ms=max_age_ms
        )
        return len(expired)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._models))
