"""Model reports built from classifier statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from .base import BaseClassifier


@dataclass
class ModelReport:
    """Summary of a trained classifier.

    Attributes:
        type: Classifier type tag.
        key: Store key of the model, if known.
        name: Model name given at construction.
        instance_count: Number of training instances.
        attribute_count: Vocabulary size.
        assert_count: Correct predictions during cross-validation.
        assertion_ratio: Cross-validated accuracy.
        deviation: Standard deviation of per-fold accuracy.
        extra: Weight history (``w``) for Passive-Aggressive models or the
            likelihood table (``likelihoods``) for Naive Bayes.
    """

    type: str
    key: Optional[Union[int, str]] = None
    name: str = ""
    instance_count: int = 0
    attribute_count: int = 0
    assert_count: int = 0
    assertion_ratio: float = 0.0
    deviation: float = 0.0
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "key": self.key,
            "name": self.name,
            "instance_count": self.instance_count,
            "attribute_count": self.attribute_count,
            "assert_count": self.assert_count,
            "assertion_ratio": self.assertion_ratio,
            "deviation": self.deviation,
            "extra": _json_keys(self.extra),
        }

    def summary(self) -> str:
        """Human-readable summary, without the ``extra`` payload."""
        lines = [
            f"Type: {self.type}" + (f" (key {self.key})" if self.key is not None else ""),
            f"Instances: {self.instance_count}",
            f"Attributes: {self.attribute_count}",
            f"Asserts: {self.assert_count}",
            f"Assertion ratio: {self.assertion_ratio:.2%}",
            f"Deviation: {self.deviation:.4f}",
        ]
        return "\n".join(lines)


def build_report(
    classifier: BaseClassifier,
    key: Optional[Union[int, str]] = None,
) -> ModelReport:
    """Build a :class:`ModelReport` for a trained classifier."""
    stats = classifier.statistics
    return ModelReport(
        type=classifier.kind.value,
        key=key,
        name=classifier.name,
        instance_count=stats.total,
        attribute_count=len(classifier.vocabulary),
        assert_count=stats.asserts,
        assertion_ratio=stats.assertion_ratio,
        deviation=stats.deviation,
        extra=classifier.model_details(),
    )


def _json_keys(data):
    """Stringify mapping keys recursively (weight steps are ints)."""
    if isinstance(data, dict):
        return {str(k): _json_keys(v) for k, v in data.items()}
    return data
