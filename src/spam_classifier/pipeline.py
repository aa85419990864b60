"""End-to-end spam filtering: raw comments in, labels out.

:class:`SpamFilter` ties the feature pipeline, a classifier and the model
store together::

    spam_filter = SpamFilter.build(store.find_all(), "naive_bayes")
    key = spam_filter.save(ModelStore("models/"))

    spam_filter = SpamFilter.load(ModelStore("models/"), key)
    for result in spam_filter.classify(["Buy cheap pills at http://spam.biz"]):
        print(result.label.value, result.confidence)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional, Union

from .base import BaseClassifier
from .config import Settings
from .factory import create_classifier
from .features import DocumentLike, FeatureExtractor, TrainingSetBuilder
from .models import ClassificationResult, ClassifierType, Document, Label
from .persistence import ModelKey, ModelStore
from .report import ModelReport, build_report

logger = logging.getLogger(__name__)

TextLike = Union[str, Document]


class SpamFilter:
    """A trained classifier plus the feature pipeline that feeds it.

    Args:
        classifier: Trained (or loaded) classifier.
        extractor: Feature extractor; must match the one used in training.
        key: Store key the classifier was loaded from or saved under.
    """

    def __init__(
        self,
        classifier: BaseClassifier,
        extractor: Optional[FeatureExtractor] = None,
        key: Optional[ModelKey] = None,
    ) -> None:
        self.classifier = classifier
        self.builder = TrainingSetBuilder(extractor)
        self.key = key

    def __repr__(self) -> str:
        return f"SpamFilter(classifier={self.classifier!r}, key={self.key!r})"

    @classmethod
    def build(
        cls,
        documents: Iterable[DocumentLike],
        kind: Optional[Union[ClassifierType, str]] = None,
        *,
        settings: Optional[Settings] = None,
        extractor: Optional[FeatureExtractor] = None,
        cross_validate: Optional[bool] = None,
        optimize: Optional[bool] = None,
        **classifier_kwargs,
    ) -> "SpamFilter":
        """Train a new filter on a labelled corpus.

        Builds the training set, trains, then cross-validates and optimizes
        unless disabled. Unset options come from ``settings``.

        Args:
            documents: Labelled documents (see :meth:`TrainingSetBuilder.build`).
            kind: Classifier type; defaults to ``settings.classifier_type``.
            settings: Defaults for folds, stratification, history length and
                classifier parameters.
            extractor: Custom feature extractor.
            cross_validate: Run k-fold cross-validation after training.
            optimize: Drop cached entries and prune history after training.
            **classifier_kwargs: Override classifier constructor arguments.
        """
        settings = settings or Settings()
        kind = ClassifierType(kind or settings.classifier_type)
        if cross_validate is None:
            cross_validate = settings.cross_validate
        if optimize is None:
            optimize = settings.optimize

        spam_filter = cls(
            create_classifier(kind, **{**settings.classifier_kwargs(kind), **classifier_kwargs}),
            extractor=extractor,
        )
        training_set = spam_filter.builder.build(documents)
        spam_filter.classifier.train(training_set)

        if cross_validate:
            spam_filter.classifier.cross_validate(
                num_folds=settings.folds,
                stratified=settings.stratified,
                workers=settings.workers,
            )
        if optimize:
            spam_filter.classifier.optimize(settings.history_length)

        return spam_filter

    def classify(
        self,
        documents: Union[TextLike, Iterable[TextLike]],
        use_default_fallback: bool = True,
    ) -> list[ClassificationResult]:
        """Classify raw comments.

        Documents that carry a label get it attached as ``correct`` on their
        result so callers can check predictions.

        Note:
            A Passive-Aggressive classifier learns from each prediction;
            save the filter afterwards to keep that state.
        """
        if isinstance(documents, (str, Document)):
            documents = [documents]
        docs = list(documents)

        vectors = self.builder.vectorize(docs, self.classifier.vocabulary)
        results = self.classifier.classify(vectors, use_default_fallback=use_default_fallback)

        for doc, result in zip(docs, results):
            if isinstance(doc, Document) and doc.label is not None:
                result.correct = doc.label
        return results

    def update(
        self,
        document: TextLike,
        label: Optional[Union[Label, str]] = None,
        step_index: Optional[int] = None,
    ) -> ClassificationResult:
        """Online update from one comment.

        The label defaults to the document's own label, then to the
        prediction.

        Raises:
            UnsupportedOperationError: If the classifier does not learn online.
        """
        if label is None and isinstance(document, Document):
            label = document.label
        vector = self.builder.vectorize([document], self.classifier.vocabulary)[0]
        return self.classifier.update(vector, label, step_index)

    def report(self, key: Optional[ModelKey] = None) -> ModelReport:
        return build_report(self.classifier, key if key is not None else self.key)

    def save(self, store: ModelStore, key: Optional[ModelKey] = None) -> ModelKey:
        """Persist the classifier; reuses the loaded key unless one is given."""
        self.key = store.save(self.classifier, key if key is not None else self.key)
        return self.key

    @classmethod
    def load(
        cls,
        store: ModelStore,
        key: ModelKey,
        extractor: Optional[FeatureExtractor] = None,
    ) -> "SpamFilter":
        return cls(store.load(key), extractor=extractor, key=key)
