"""Multinomial-style Naive Bayes over token frequencies.

Likelihoods are normalized by the class prior rather than by the total
feature count of the class, and scores multiply add-one smoothed factors
``(freq * likelihood + 1) / (prior + 1)``. Both choices are unusual but
models and thresholds in use depend on them, so they are kept unchanged.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import ClassVar, Optional

from .base import BaseClassifier
from .exceptions import EmptyModelError
from .models import (
    ClassificationResult,
    ClassifierType,
    FeatureVector,
    Label,
    TrainingSet,
)

logger = logging.getLogger(__name__)


@dataclass
class NaiveBayesModel:
    """Learned class priors and per-class feature likelihoods."""

    priors: dict[Label, float] = field(default_factory=dict)
    likelihoods: dict[Label, dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "priors": {label.value: p for label, p in self.priors.items()},
            "likelihoods": {
                label.value: dict(features) for label, features in self.likelihoods.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NaiveBayesModel":
        return cls(
            priors={Label(k): v for k, v in data["priors"].items()},
            likelihoods={Label(k): dict(v) for k, v in data["likelihoods"].items()},
        )


class NaiveBayesClassifier(BaseClassifier):
    """Naive Bayes spam classifier.

    Classification is stateless, so a trained instance may be shared by
    concurrent readers.

    Example::

        clf = NaiveBayesClassifier()
        clf.train(training_set)
        results = clf.classify(vectors, use_default_fallback=True)
    """

    kind: ClassVar[ClassifierType] = ClassifierType.NAIVE_BAYES

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.model: Optional[NaiveBayesModel] = None

    @property
    def is_trained(self) -> bool:
        return self.model is not None

    def fit(self, training_set: TrainingSet) -> None:
        """Estimate priors and prior-normalized likelihoods."""
        total = len(training_set)
        counts: dict[Label, int] = {label: 0 for label in Label}
        sums: dict[Label, dict[str, float]] = {
            label: defaultdict(float) for label in Label
        }

        for entry in training_set.entries:
            counts[entry.label] += 1
            label_sums = sums[entry.label]
            for feature, freq in entry.features.items():
                label_sums[feature] += freq

        priors = {label: counts[label] / total for label in Label}
        likelihoods: dict[Label, dict[str, float]] = {}
        for label in Label:
            prior = priors[label]
            likelihoods[label] = {
                feature: (sums[label][feature] / prior if prior else 0.0)
                for feature in training_set.vocabulary
            }

        self.model = NaiveBayesModel(priors=priors, likelihoods=likelihoods)
        logger.debug("Naive Bayes priors: %s", {label.value: p for label, p in priors.items()})

    def _predict(self, vectors: list[FeatureVector]) -> list[ClassificationResult]:
        return [self._predict_single(vec) for vec in vectors]

    def _predict_single(self, vec: FeatureVector) -> ClassificationResult:
        scores = self.scores(vec)

        best_label, best_score = None, None
        for label in Label:
            if best_score is None or scores[label] > best_score:
                best_label, best_score = label, scores[label]

        return ClassificationResult(label=best_label, confidence=best_score)

    def scores(self, vec: FeatureVector) -> dict[Label, float]:
        """Unnormalized per-class scores of one aligned vector."""
        model = self._require_model()
        scores = {label: 1.0 for label in Label}

        for feature, freq in vec.items():
            if freq <= 0 or feature not in model.likelihoods[Label.SPAM]:
                continue
            for label in Label:
                factor = (freq * model.likelihoods[label][feature] + 1) / (model.priors[label] + 1)
                scores[label] *= factor

        return scores

    def most_informative_features(
        self,
        label: Label | str,
        top_n: int = 20,
    ) -> list[tuple[str, float]]:
        """Features whose likelihood most favours ``label`` over the other class.

        Returns:
            ``(feature, likelihood difference)`` pairs, strongest first.
        """
        model = self._require_model()
        target = Label.parse(label)
        others = [other for other in Label if other is not target]

        ranked = []
        for feature, score in model.likelihoods[target].items():
            other = sum(model.likelihoods[o][feature] for o in others) / len(others)
            ranked.append((feature, round(score - other, 4)))

        ranked.sort(key=lambda x: x[1], reverse=True)
        return ranked[:top_n]

    def model_details(self) -> dict:
        model = self._require_model()
        return {
            "likelihoods": {
                label.value: dict(features) for label, features in model.likelihoods.items()
            },
        }

    def _model_to_dict(self) -> Optional[dict]:
        return self.model.to_dict() if self.model else None

    def _model_from_dict(self, data: dict) -> None:
        self.model = NaiveBayesModel.from_dict(data)

    def _require_model(self) -> NaiveBayesModel:
        if self.model is None:
            raise EmptyModelError("Classifier has not been trained. Call train() first.")
        return self.model
