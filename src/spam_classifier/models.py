"""Data models shared by the feature pipeline and the classifiers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .exceptions import InvalidTrainingSetError

FeatureVector = dict[str, int]
WeightVector = dict[str, float]
Vocabulary = tuple[str, ...]
DocumentId = Union[int, str]


class Label(str, Enum):
    """Comment classes. ``SPAM`` is the positive class."""

    SPAM = "spam"
    NOT_SPAM = "not_spam"

    @property
    def sign(self) -> int:
        """Numeric representation used by linear models (+1 / -1)."""
        return 1 if self is Label.SPAM else -1

    @classmethod
    def from_sign(cls, value: float) -> "Label":
        """Map a score to a label; zero counts as spam."""
        return cls.SPAM if value >= 0 else cls.NOT_SPAM

    @classmethod
    def parse(cls, value: object) -> "Label":
        """Coerce a label, its string value, a spam flag or a +1/-1 sign.

        Raises:
            ValueError: If the value does not name a known label.
        """
        if isinstance(value, Label):
            return value
        if isinstance(value, bool):
            return cls.SPAM if value else cls.NOT_SPAM
        if isinstance(value, int) and value in (1, -1):
            return cls.from_sign(value)
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"Unknown label: {value!r}. Known: {[label.value for label in cls]}")


class ClassifierType(str, Enum):
    """Supported learning algorithms."""

    NAIVE_BAYES = "naive_bayes"
    PASSIVE_AGGRESSIVE = "passive_aggressive"


@dataclass
class TrainingEntry:
    """A labelled feature vector aligned to a vocabulary."""

    label: Label
    features: FeatureVector

    def to_dict(self) -> dict:
        return {"label": self.label.value, "features": dict(self.features)}

    @classmethod
    def from_dict(cls, data: dict) -> "TrainingEntry":
        return cls(label=Label.parse(data["label"]), features=dict(data["features"]))


@dataclass
class TrainingSet:
    """Frozen vocabulary plus the ordered entries aligned to it."""

    vocabulary: Vocabulary
    entries: list[TrainingEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def labels(self) -> list[Label]:
        return [entry.label for entry in self.entries]

    @property
    def vectors(self) -> list[FeatureVector]:
        return [entry.features for entry in self.entries]

    def subset(self, indices: list[int]) -> "TrainingSet":
        """Return a training set with the selected entries, same vocabulary."""
        return TrainingSet(
            vocabulary=self.vocabulary,
            entries=[self.entries[i] for i in indices],
        )

    def validate(self) -> None:
        """Check that every entry is keyed by exactly the vocabulary.

        Raises:
            InvalidTrainingSetError: On any structural violation.
        """
        if len(set(self.vocabulary)) != len(self.vocabulary):
            raise InvalidTrainingSetError("Vocabulary contains duplicate features")

        expected = set(self.vocabulary)
        for idx, entry in enumerate(self.entries):
            if not isinstance(entry, TrainingEntry) or not isinstance(entry.label, Label):
                raise InvalidTrainingSetError(f"Entry {idx} is not a labelled TrainingEntry")
            if not isinstance(entry.features, Mapping):
                raise InvalidTrainingSetError(f"Entry {idx} features must be a mapping")
            if set(entry.features) != expected:
                missing = expected - set(entry.features)
                extra = set(entry.features) - expected
                raise InvalidTrainingSetError(
                    f"Entry {idx} is not aligned to the vocabulary "
                    f"(missing={sorted(missing)[:5]}, extra={sorted(extra)[:5]})"
                )

    def to_dict(self) -> dict:
        return {
            "vocabulary": list(self.vocabulary),
            "entries": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrainingSet":
        return cls(
            vocabulary=tuple(data["vocabulary"]),
            entries=[TrainingEntry.from_dict(e) for e in data["entries"]],
        )


@dataclass
class Statistics:
    """Training and cross-validation statistics of a classifier.

    Attributes:
        total: Number of training instances.
        asserts: Correct held-out predictions across all folds.
        assertion_ratio: ``asserts / total``.
        deviation: Sample standard deviation of per-fold accuracy.
        evaluated: Held-out predictions actually made.
        folds: Number of folds that produced predictions.
    """

    total: int = 0
    asserts: int = 0
    assertion_ratio: float = 0.0
    deviation: float = 0.0
    evaluated: int = 0
    folds: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "asserts": self.asserts,
            "assertion_ratio": self.assertion_ratio,
            "deviation": self.deviation,
            "evaluated": self.evaluated,
            "folds": self.folds,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Statistics":
        return cls(**{k: data[k] for k in cls().to_dict() if k in data})


@dataclass
class ClassificationResult:
    """Predicted label and confidence for one document."""

    label: Label
    confidence: float
    correct: Optional[Label] = None

    @property
    def is_correct(self) -> Optional[bool]:
        """Whether the prediction matches the known label, if any."""
        if self.correct is None:
            return None
        return self.label is self.correct

    def to_dict(self) -> dict:
        data = {
            "predicted_label": self.label.value,
            "confidence": self.confidence,
        }
        if self.correct is not None:
            data["correct"] = self.correct.value
        return data


@dataclass
class Document:
    """A raw comment as handed over by a document store."""

    content: str
    label: Optional[Label] = None
    id: Optional[DocumentId] = None

    def __post_init__(self) -> None:
        if self.label is not None:
            self.label = Label.parse(self.label)

    @classmethod
    def from_mapping(cls, data: Mapping) -> "Document":
        """Build a document from a ``{id, content, label}`` record.

        A boolean ``spam`` flag is accepted in place of ``label``.
        """
        if "content" not in data:
            raise ValueError("Document record has no 'content' field")
        raw_label = data.get("label")
        if raw_label is None and data.get("spam") is not None:
            # knowledge-table rows store the class as a 0/1 spam column
            raw_label = bool(int(data["spam"]))
        return cls(
            content=str(data["content"]),
            label=Label.parse(raw_label) if raw_label is not None else None,
            id=data.get("id"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "label": self.label.value if self.label else None,
        }
