"""Tests for data models."""

from __future__ import annotations

import pytest

from spam_classifier.exceptions import InvalidTrainingSetError
from spam_classifier.models import (
    ClassificationResult,
    ClassifierType,
    Document,
    Label,
    Statistics,
    TrainingEntry,
    TrainingSet,
)


class TestLabel:
    def test_values(self):
        assert Label.SPAM.value == "spam"
        assert Label.NOT_SPAM.value == "not_spam"

    def test_sign(self):
        assert Label.SPAM.sign == 1
        assert Label.NOT_SPAM.sign == -1

    def test_from_sign_zero_is_spam(self):
        assert Label.from_sign(0) is Label.SPAM
        assert Label.from_sign(0.0) is Label.SPAM

    def test_from_sign_negative_is_not_spam(self):
        assert Label.from_sign(-0.5) is Label.NOT_SPAM

    @pytest.mark.parametrize("value,expected", [
        ("spam", Label.SPAM),
        (" NOT_SPAM ", Label.NOT_SPAM),
        (True, Label.SPAM),
        (False, Label.NOT_SPAM),
        (1, Label.SPAM),
        (-1, Label.NOT_SPAM),
        (Label.SPAM, Label.SPAM),
    ])
    def test_parse(self, value, expected):
        assert Label.parse(value) is expected

    @pytest.mark.parametrize("value", ["ham", 0, 2, None, 1.5])
    def test_parse_rejects_unknown(self, value):
        with pytest.raises(ValueError, match="Unknown label"):
            Label.parse(value)

    def test_classifier_type_values(self):
        assert ClassifierType("naive_bayes") is ClassifierType.NAIVE_BAYES
        assert ClassifierType("passive_aggressive") is ClassifierType.PASSIVE_AGGRESSIVE


class TestTrainingSet:
    def test_len_and_labels(self, small_training_set):
        assert len(small_training_set) == 3
        assert small_training_set.labels == [Label.SPAM, Label.SPAM, Label.NOT_SPAM]

    def test_subset_keeps_vocabulary(self, small_training_set):
        subset = small_training_set.subset([2, 0])
        assert subset.vocabulary == small_training_set.vocabulary
        assert subset.labels == [Label.NOT_SPAM, Label.SPAM]

    def test_validate_accepts_aligned(self, small_training_set):
        small_training_set.validate()

    def test_validate_rejects_duplicate_vocabulary(self):
        ts = TrainingSet(vocabulary=("a", "a"), entries=[])
        with pytest.raises(InvalidTrainingSetError, match="duplicate"):
            ts.validate()

    def test_validate_rejects_misaligned_entry(self):
        ts = TrainingSet(
            vocabulary=("a", "b"),
            entries=[TrainingEntry(label=Label.SPAM, features={"a": 1})],
        )
        with pytest.raises(InvalidTrainingSetError, match="not aligned"):
            ts.validate()

    def test_validate_rejects_unlabelled_entry(self):
        ts = TrainingSet(
            vocabulary=("a",),
            entries=[TrainingEntry(label="spam", features={"a": 1})],
        )
        with pytest.raises(InvalidTrainingSetError, match="Entry 0"):
            ts.validate()

    def test_validate_rejects_foreign_items(self):
        ts = TrainingSet(vocabulary=("a",), entries=[("spam", {"a": 1})])
        with pytest.raises(InvalidTrainingSetError):
            ts.validate()

    def test_dict_roundtrip(self, small_training_set):
        restored = TrainingSet.from_dict(small_training_set.to_dict())
        assert restored == small_training_set


class TestStatistics:
    def test_defaults(self):
        stats = Statistics()
        assert stats.total == 0
        assert stats.assertion_ratio == 0.0

    def test_from_dict_ignores_unknown_keys(self):
        stats = Statistics.from_dict({"total": 5, "asserts": 4, "legacy": True})
        assert stats.total == 5
        assert stats.asserts == 4
        assert stats.folds == 0


class TestClassificationResult:
    def test_to_dict(self):
        result = ClassificationResult(label=Label.SPAM, confidence=2.5)
        assert result.to_dict() == {"predicted_label": "spam", "confidence": 2.5}

    def test_to_dict_with_truth(self):
        result = ClassificationResult(label=Label.SPAM, confidence=2.5, correct=Label.NOT_SPAM)
        assert result.to_dict()["correct"] == "not_spam"
        assert result.is_correct is False

    def test_is_correct_unknown_without_truth(self):
        assert ClassificationResult(label=Label.SPAM, confidence=0.0).is_correct is None


class TestDocument:
    def test_from_mapping_with_label(self):
        doc = Document.from_mapping({"id": 7, "content": "hello", "label": "spam"})
        assert doc == Document(content="hello", label=Label.SPAM, id=7)

    @pytest.mark.parametrize("flag,expected", [(1, Label.SPAM), ("0", Label.NOT_SPAM)])
    def test_from_mapping_with_spam_flag(self, flag, expected):
        assert Document.from_mapping({"content": "x", "spam": flag}).label is expected

    def test_from_mapping_unlabelled(self):
        assert Document.from_mapping({"content": "x"}).label is None

    def test_from_mapping_without_content_raises(self):
        with pytest.raises(ValueError, match="content"):
            Document.from_mapping({"label": "spam"})

    def test_to_dict(self):
        doc = Document(content="x", label=Label.NOT_SPAM, id="a1")
        assert doc.to_dict() == {"id": "a1", "content": "x", "label": "not_spam"}
