"""Shared classifier contract and the cross-validation harness.

:class:`BaseClassifier` owns the training statistics, the cached training
set and the generic stratified k-fold cross-validation. Subclasses only
implement ``fit`` and ``_predict`` plus their model (de)serialization.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import ClassVar, Optional

from .exceptions import (
    EmptyModelError,
    InvalidTrainingSetError,
    UnsupportedOperationError,
)
from .models import (
    ClassificationResult,
    ClassifierType,
    FeatureVector,
    Label,
    Statistics,
    TrainingSet,
    Vocabulary,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Fold construction
# ---------------------------------------------------------------------------

def stratified_folds(
    labels: Sequence[Label],
    num_folds: int,
    balance: Mapping[Label, float],
) -> list[list[int]]:
    """Partition entry indices into folds that follow the class balance.

    Every fold holds at most ``len(labels) // num_folds`` entries. Entries
    are scanned in order and go to the first fold that still has room and
    whose share of the entry's label has not passed the corpus-wide share.
    Entries that fit in no fold are left out.

    Args:
        labels: Label of each entry, in corpus order.
        num_folds: Number of folds to create.
        balance: Corpus-wide fraction of each label.

    Returns:
        One list of entry indices per fold.
    """
    if num_folds < 1:
        raise ValueError(f"num_folds must be positive, got {num_folds}")

    size = len(labels) // num_folds
    folds: list[list[int]] = [[] for _ in range(num_folds)]
    if size == 0:
        return folds

    counters = [Counter() for _ in range(num_folds)]
    for idx, label in enumerate(labels):
        for fold, counter in zip(folds, counters):
            if len(fold) >= size:
                continue
            if counter[label] / size <= balance.get(label, 0.0):
                fold.append(idx)
                counter[label] += 1
                break

    return folds


def round_robin_folds(total: int, num_folds: int) -> list[list[int]]:
    """Assign entry ``j`` to fold ``j % num_folds`` while that fold has room."""
    if num_folds < 1:
        raise ValueError(f"num_folds must be positive, got {num_folds}")

    size = total // num_folds
    folds: list[list[int]] = [[] for _ in range(num_folds)]
    for idx in range(total):
        fold = folds[idx % num_folds]
        if len(fold) < size:
            fold.append(idx)
    return folds


# ---------------------------------------------------------------------------
# Base classifier
# ---------------------------------------------------------------------------

class BaseClassifier(ABC):
    """Abstract spam classifier.

    Args:
        name: Free-form model name, kept in reports and stored models.
        default_class: Label used by the fallback for ambiguous results.
        ambiguity_threshold: Bound of the ambiguous band. For scores (Naive
            Bayes) results with ``|confidence|`` at or below it are ambiguous;
            subclasses redefine the band in :meth:`is_ambiguous`.
    """

    kind: ClassVar[ClassifierType]

    def __init__(
        self,
        name: str = "",
        default_class: Label | str = Label.NOT_SPAM,
        ambiguity_threshold: float = 1.0,
    ) -> None:
        self.name = name
        self.default_class = Label.parse(default_class)
        self.ambiguity_threshold = float(ambiguity_threshold)

        self.vocabulary: Vocabulary = ()
        self.training_set: Optional[TrainingSet] = None
        self.statistics = Statistics()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"features={len(self.vocabulary)}, trained={self.is_trained})"
        )

    # ------------------------------------------------------------------
    # Subclass contract
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def is_trained(self) -> bool:
        """Whether a model is available for classification."""

    @abstractmethod
    def fit(self, training_set: TrainingSet) -> None:
        """Learn the algorithm-specific model from an aligned training set."""

    @abstractmethod
    def _predict(self, vectors: list[FeatureVector]) -> list[ClassificationResult]:
        """Classify aligned vectors without the default-class fallback."""

    @abstractmethod
    def model_details(self) -> dict:
        """Algorithm-specific model data shown in reports."""

    @abstractmethod
    def _model_to_dict(self) -> Optional[dict]:
        """Serialize the learned model, or ``None`` when untrained."""

    @abstractmethod
    def _model_from_dict(self, data: dict) -> None:
        """Restore the learned model from :meth:`_model_to_dict` output."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_params(self) -> dict:
        """Constructor arguments, as JSON-compatible values."""
        return {
            "name": self.name,
            "default_class": self.default_class.value,
            "ambiguity_threshold": self.ambiguity_threshold,
        }

    def spawn(self) -> "BaseClassifier":
        """Return an untrained classifier with the same configuration."""
        return type(self)(**self.get_params())

    def train(self, training_set: TrainingSet) -> "BaseClassifier":
        """Train on a vocabulary-aligned training set.

        Caches the set (for cross-validation), resets the statistics and
        delegates to :meth:`fit`.

        Raises:
            InvalidTrainingSetError: If ``training_set`` is not a valid,
                non-empty :class:`TrainingSet`.
        """
        if not isinstance(training_set, TrainingSet):
            raise InvalidTrainingSetError(
                f"Expected a TrainingSet, got {type(training_set).__name__}"
            )
        training_set.validate()
        if not training_set.entries:
            raise InvalidTrainingSetError("Training set has no entries")

        self.fit(training_set)

        self.training_set = training_set
        self.vocabulary = training_set.vocabulary
        self.statistics = Statistics(total=len(training_set))

        logger.info(
            "Trained %s on %d instances (%d features)",
            self.kind.value, len(training_set), len(self.vocabulary),
        )
        return self

    def classify(
        self,
        feature_vectors: Sequence[FeatureVector],
        use_default_fallback: bool = False,
    ) -> list[ClassificationResult]:
        """Classify aligned feature vectors.

        Args:
            feature_vectors: Vectors aligned to :attr:`vocabulary`.
            use_default_fallback: Relabel ambiguous results to
                :attr:`default_class`.

        Raises:
            EmptyModelError: If the classifier has not been trained.
        """
        if not self.is_trained:
            raise EmptyModelError("Classifier has not been trained. Call train() first.")

        results = self._predict(list(feature_vectors))

        if use_default_fallback:
            for result in results:
                if self.is_ambiguous(result):
                    result.label = self.default_class

        return results

    def is_ambiguous(self, result: ClassificationResult) -> bool:
        """Whether the fallback should relabel ``result``."""
        return abs(result.confidence) <= self.ambiguity_threshold

    def update(
        self,
        features: FeatureVector,
        true_label: Label | str | None = None,
        step_index: Optional[int] = None,
    ) -> ClassificationResult:
        """Online learning from a single example.

        Raises:
            UnsupportedOperationError: Unless the algorithm learns online.
        """
        raise UnsupportedOperationError(f"{self.kind.value} does not support online updates")

    def classes_balance(self) -> dict[Label, float]:
        """Fraction of each label among the cached training entries.

        Raises:
            EmptyModelError: If no training entries are loaded.
        """
        if self.training_set is None or not self.training_set.entries:
            raise EmptyModelError("No training entries loaded. Call train() first.")

        counts = Counter(self.training_set.labels)
        total = len(self.training_set)
        return {label: counts[label] / total for label in Label}

    def cross_validate(
        self,
        num_folds: int = 10,
        stratified: bool = True,
        workers: int = 1,
    ) -> Statistics:
        """Estimate accuracy with k-fold cross-validation.

        Each fold is held out once while a fresh clone of this classifier
        is trained on the union of the other folds. The trained model of
        this instance is left untouched; only :attr:`statistics` changes.

        Args:
            num_folds: Number of folds. Reduced to the number of instances
                when the corpus is smaller.
            stratified: Preserve the class balance in every fold.
            workers: Evaluate folds on a thread pool of this size.

        Returns:
            A copy of the updated statistics.

        Raises:
            EmptyModelError: If no training entries are loaded.
            InvalidTrainingSetError: If fewer than two instances are loaded.
        """
        if self.training_set is None or not self.training_set.entries:
            raise EmptyModelError("No training entries loaded. Call train() first.")
        if num_folds < 2:
            raise ValueError(f"num_folds must be at least 2, got {num_folds}")

        training_set = self.training_set
        total = len(training_set)
        if total < 2:
            raise InvalidTrainingSetError("Cross-validation needs at least two instances")
        if total < num_folds:
            logger.warning(
                "Only %d instances for %d folds; using %d folds", total, num_folds, total
            )
            num_folds = total

        if stratified:
            folds = stratified_folds(training_set.labels, num_folds, self.classes_balance())
        else:
            folds = round_robin_folds(total, num_folds)

        tasks: list[tuple[int, list[int], list[int]]] = []
        for i, test_idx in enumerate(folds):
            if not test_idx:
                continue
            train_idx = sorted(j for k, fold in enumerate(folds) if k != i for j in fold)
            if not train_idx:
                logger.warning("Fold %d has no training data; skipped", i)
                continue
            tasks.append((i, train_idx, test_idx))

        if workers > 1 and len(tasks) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                outcomes = list(executor.map(lambda task: self._evaluate_fold(*task), tasks))
        else:
            outcomes = [self._evaluate_fold(*task) for task in tasks]

        asserts = sum(correct for correct, _ in outcomes)
        evaluated = sum(size for _, size in outcomes)
        accuracies = [correct / size for correct, size in outcomes]
        ratio = asserts / total

        if len(accuracies) > 1:
            squares = sum((acc - ratio) ** 2 for acc in accuracies)
            deviation = math.sqrt(squares / (len(accuracies) - 1))
        else:
            deviation = 0.0

        self.statistics = Statistics(
            total=total,
            asserts=asserts,
            assertion_ratio=ratio,
            deviation=deviation,
            evaluated=evaluated,
            folds=len(accuracies),
        )
        logger.info(
            "Cross-validation (%d folds): %d/%d correct, ratio=%.4f, deviation=%.4f",
            len(accuracies), asserts, total, ratio, deviation,
        )
        return replace(self.statistics)

    def optimize(self, history_length: int = 10) -> None:
        """Release the cached training entries to shrink the stored model."""
        self.training_set = None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Serialize configuration, statistics and model state."""
        return {
            "params": self.get_params(),
            "vocabulary": list(self.vocabulary),
            "statistics": self.statistics.to_dict(),
            "training_set": self.training_set.to_dict() if self.training_set else None,
            "model": self._model_to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BaseClassifier":
        """Rebuild a classifier from :meth:`to_dict` output."""
        clf = cls(**data["params"])
        clf.vocabulary = tuple(data["vocabulary"])
        clf.statistics = Statistics.from_dict(data.get("statistics") or {})
        if data.get("training_set"):
            clf.training_set = TrainingSet.from_dict(data["training_set"])
        if data.get("model") is not None:
            clf._model_from_dict(data["model"])
        return clf

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _evaluate_fold(
        self,
        index: int,
        train_idx: list[int],
        test_idx: list[int],
    ) -> tuple[int, int]:
        """Train a clone without fold ``index`` and score it on that fold."""
        training_set = self.training_set
        clone = self.spawn()
        clone.train(training_set.subset(train_idx))

        held_out = [training_set.entries[j] for j in test_idx]
        results = clone.classify([entry.features for entry in held_out])
        correct = sum(1 for result, entry in zip(results, held_out) if result.label is entry.label)

        logger.debug("Fold %d: %d/%d correct", index, correct, len(held_out))
        return correct, len(held_out)
