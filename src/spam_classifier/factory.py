"""Closed dispatch from :class:`ClassifierType` to classifier classes."""

from __future__ import annotations

from .base import BaseClassifier
from .models import ClassifierType
from .naive_bayes import NaiveBayesClassifier
from .passive_aggressive import PassiveAggressiveClassifier

_CLASSIFIERS: dict[ClassifierType, type[BaseClassifier]] = {
    ClassifierType.NAIVE_BAYES: NaiveBayesClassifier,
    ClassifierType.PASSIVE_AGGRESSIVE: PassiveAggressiveClassifier,
}


def classifier_class(kind: ClassifierType | str) -> type[BaseClassifier]:
    """Return the classifier class for a type tag.

    Raises:
        ValueError: If the tag names no supported classifier.
    """
    try:
        return _CLASSIFIERS[ClassifierType(kind)]
    except ValueError:
        raise ValueError(
            f"Unsupported classifier: {kind!r}. Known: {[t.value for t in ClassifierType]}"
        ) from None


def create_classifier(kind: ClassifierType | str, **kwargs) -> BaseClassifier:
    """Instantiate an untrained classifier of the given type."""
    return classifier_class(kind)(**kwargs)
