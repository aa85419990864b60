"""Online Passive-Aggressive linear classifier.

The model is an ordered history of weight vectors ``w_0 ... w_t``, one per
learning step. Each step scores a vector against ``w_t``, measures the
hinge loss and appends ``w_{t+1}``. A step may be replayed from an older
index, which discards every later snapshot (rollback).

Supported step sizes (``tau``):

- ``PA``: ``loss / ||x||^2``
- ``PA-I``: ``min(C, loss / ||x||^2)``
- ``PA-II``: ``loss / (||x||^2 + 1 / (2C))``
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional

from .base import BaseClassifier
from .exceptions import (
    DimensionMismatchError,
    EmptyModelError,
    EmptyVectorError,
    StaleStepIndexError,
)
from .models import (
    ClassificationResult,
    ClassifierType,
    FeatureVector,
    Label,
    TrainingSet,
    WeightVector,
)

logger = logging.getLogger(__name__)


class PAVariant(str, Enum):
    """Passive-Aggressive step-size rules."""

    PA = "pa"
    PA_I = "pa1"
    PA_II = "pa2"


# ---------------------------------------------------------------------------
# Vector helpers
# ---------------------------------------------------------------------------

def inner_product(a: Mapping[str, float], b: Mapping[str, float]) -> float:
    """Dot product of two vectors keyed by the same features.

    Raises:
        DimensionMismatchError: If the vectors differ in length or keys.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Inner product needs vectors of the same length ({len(a)} != {len(b)})"
        )
    try:
        return sum(value * b[key] for key, value in a.items())
    except KeyError as e:
        raise DimensionMismatchError(f"Feature {e.args[0]!r} missing from vector") from e


def norm(vector: Mapping[str, float]) -> float:
    """Euclidean norm of a vector.

    Raises:
        EmptyVectorError: If the vector has no dimensions.
    """
    if not vector:
        raise EmptyVectorError("Norm can only be computed on a non-empty vector")
    return math.sqrt(sum(value * value for value in vector.values()))


def hinge_loss(margin: float) -> float:
    """``max(0, 1 - margin)``."""
    return 0.0 if margin >= 1 else 1.0 - margin


def compute_tau(
    loss: float,
    x_norm: float,
    variant: PAVariant = PAVariant.PA,
    aggressiveness: float = 1.0,
) -> float:
    """Step size for an update; a zero norm is treated as 1."""
    if x_norm == 0:
        x_norm = 1.0
    squared = x_norm ** 2

    if variant is PAVariant.PA_I:
        return min(aggressiveness, loss / squared)
    if variant is PAVariant.PA_II:
        return loss / (squared + 1 / (2 * aggressiveness))
    return loss / squared


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

@dataclass
class PassiveAggressiveModel:
    """Weight history; ``history[i]`` holds the weights of step ``offset + i``."""

    history: list[WeightVector] = field(default_factory=list)
    offset: int = 0

    @property
    def latest_step(self) -> int:
        return self.offset + len(self.history) - 1

    def weights(self, step: int) -> WeightVector:
        """Weights of a retained step.

        Raises:
            StaleStepIndexError: If the step was pruned or does not exist yet.
        """
        if step < self.offset:
            raise StaleStepIndexError(
                f"Step {step} was pruned; oldest retained step is {self.offset}"
            )
        if step > self.latest_step:
            raise StaleStepIndexError(
                f"Step {step} is beyond the latest step {self.latest_step}"
            )
        return self.history[step - self.offset]

    def commit(self, step: int, weights: WeightVector) -> None:
        """Drop snapshots after ``step`` and append ``weights`` as ``step + 1``."""
        del self.history[step - self.offset + 1:]
        self.history.append(weights)

    def prune(self, history_length: int) -> None:
        """Keep only the most recent ``history_length`` snapshots."""
        if history_length < 1:
            raise ValueError(f"history_length must be positive, got {history_length}")
        dropped = max(0, len(self.history) - history_length)
        del self.history[:dropped]
        self.offset += dropped

    def snapshot(self) -> dict[int, WeightVector]:
        return {self.offset + i: dict(w) for i, w in enumerate(self.history)}

    def to_dict(self) -> dict:
        return {"offset": self.offset, "history": [dict(w) for w in self.history]}

    @classmethod
    def from_dict(cls, data: dict) -> "PassiveAggressiveModel":
        return cls(history=[dict(w) for w in data["history"]], offset=data["offset"])


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class PassiveAggressiveClassifier(BaseClassifier):
    """Passive-Aggressive spam classifier with replayable weight history.

    Classification is online: every classified vector is learned from,
    using the prediction itself as the label, and advances the history.
    Calls on one instance are serialized with a lock.

    Args:
        variant: Step-size rule (PA, PA-I or PA-II).
        aggressiveness: The ``C`` constant of PA-I and PA-II.
        **kwargs: Passed to :class:`BaseClassifier`.
    """

    kind: ClassVar[ClassifierType] = ClassifierType.PASSIVE_AGGRESSIVE

    def __init__(
        self,
        variant: PAVariant | str = PAVariant.PA,
        aggressiveness: float = 1.0,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.variant = PAVariant(variant)
        if aggressiveness <= 0:
            raise ValueError(f"aggressiveness must be positive, got {aggressiveness}")
        self.aggressiveness = float(aggressiveness)
        self.model: Optional[PassiveAggressiveModel] = None
        self._lock = threading.Lock()

    @property
    def is_trained(self) -> bool:
        return self.model is not None

    @property
    def latest_step(self) -> int:
        return self._require_model().latest_step

    def get_params(self) -> dict:
        params = super().get_params()
        params.update(variant=self.variant.value, aggressiveness=self.aggressiveness)
        return params

    def fit(self, training_set: TrainingSet) -> None:
        """Replay every entry in order, starting from all-zero weights."""
        model = PassiveAggressiveModel(
            history=[{feature: 0.0 for feature in training_set.vocabulary}]
        )
        for t, entry in enumerate(training_set.entries):
            self._step(model, entry.features, entry.label, t)

        with self._lock:
            self.model = model

    def update(
        self,
        features: FeatureVector,
        true_label: Label | str | int | None = None,
        step_index: Optional[int] = None,
    ) -> ClassificationResult:
        """Learn from one vector.

        Args:
            features: Vector aligned to the vocabulary.
            true_label: Known label; the prediction is used when omitted.
            step_index: Step whose weights are updated. Later snapshots are
                discarded. Defaults to the latest step.

        Returns:
            The prediction made before the update, with the hinge loss as
            confidence.

        Raises:
            StaleStepIndexError: If ``step_index`` is not retained.
            DimensionMismatchError: If ``features`` is not aligned.
        """
        with self._lock:
            return self._step(self._require_model(), features, true_label, step_index)

    def train_step(
        self,
        features: FeatureVector,
        label: Label | str | int,
        step_index: Optional[int] = None,
    ) -> ClassificationResult:
        """Supervised update, optionally replaying from ``step_index``."""
        if label is None:
            raise ValueError("train_step needs a label; use predict_online for inference")
        return self.update(features, label, step_index)

    def predict_online(self, features: FeatureVector) -> ClassificationResult:
        """Predict and self-train on the prediction, after the latest step."""
        return self.update(features)

    def _predict(self, vectors: list[FeatureVector]) -> list[ClassificationResult]:
        return [self.predict_online(vec) for vec in vectors]

    def is_ambiguous(self, result: ClassificationResult) -> bool:
        """Ambiguous when the hinge loss reaches the threshold.

        Confidence here is the loss of the self-labelled step, in ``[0, 1]``;
        it is 1.0 only for a zero margin.
        """
        return result.confidence >= self.ambiguity_threshold

    def optimize(self, history_length: int = 10) -> None:
        """Drop cached entries and keep the last ``history_length`` snapshots."""
        super().optimize(history_length)
        if self.model is not None:
            with self._lock:
                self.model.prune(history_length)
            logger.info(
                "Pruned weight history to steps %d..%d",
                self.model.offset, self.model.latest_step,
            )

    def model_details(self) -> dict:
        return {"w": self._require_model().snapshot()}

    def _model_to_dict(self) -> Optional[dict]:
        return self.model.to_dict() if self.model else None

    def _model_from_dict(self, data: dict) -> None:
        self.model = PassiveAggressiveModel.from_dict(data)

    def _require_model(self) -> PassiveAggressiveModel:
        if self.model is None:
            raise EmptyModelError("Classifier has not been trained. Call train() first.")
        return self.model

    def _step(
        self,
        model: PassiveAggressiveModel,
        features: FeatureVector,
        true_label: Label | str | int | None,
        step_index: Optional[int],
    ) -> ClassificationResult:
        t = model.latest_step if step_index is None else step_index
        weights = model.weights(t)

        score = inner_product(weights, features)
        predicted = Label.from_sign(score)
        truth = predicted if true_label is None else Label.parse(true_label)

        loss = hinge_loss(truth.sign * score)
        tau = compute_tau(loss, norm(features), self.variant, self.aggressiveness)

        updated = dict(weights)
        for feature, value in features.items():
            updated[feature] = weights[feature] + loss * tau * value

        model.commit(t, updated)
        logger.debug("Step %d: predicted=%s loss=%.4f tau=%.4f", t, predicted.value, loss, tau)
        return ClassificationResult(label=predicted, confidence=loss)
