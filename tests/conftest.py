"""Shared test fixtures for comment-spam-classifier tests."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from spam_classifier.config import ENV_PREFIX
from spam_classifier.features import TrainingSetBuilder
from spam_classifier.models import TrainingSet
from spam_classifier.naive_bayes import NaiveBayesClassifier
from spam_classifier.passive_aggressive import PassiveAggressiveClassifier
from spam_classifier.persistence import ModelStore

# Tokens are repeated three times so they survive per-document pruning
SPAM_TEXTS = [
    "cheap cheap cheap pills pills pills",
    "cheap cheap cheap casino casino casino",
    "casino casino casino bonus bonus bonus",
    "pills pills pills bonus bonus bonus",
    "cheap cheap cheap bonus bonus bonus http://spam.biz",
    "casino casino casino pills pills pills",
]

HAM_TEXTS = [
    "great great great article article article",
    "thanks thanks thanks article article article",
    "great great great writing writing writing",
    "thanks thanks thanks writing writing writing",
    "article article article helpful helpful helpful",
    "helpful helpful helpful great great great",
]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Hide SPAM_CLASSIFIER_* variables and undo anything a .env file loads."""
    saved = dict(os.environ)
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def labelled_corpus() -> list[tuple[str, str]]:
    """Six spam and six legitimate comments as (label, text) pairs."""
    return (
        [("spam", text) for text in SPAM_TEXTS]
        + [("not_spam", text) for text in HAM_TEXTS]
    )


@pytest.fixture
def training_set(labelled_corpus) -> TrainingSet:
    """Aligned training set built from the labelled corpus."""
    return TrainingSetBuilder().build(labelled_corpus)


@pytest.fixture
def small_training_set() -> TrainingSet:
    """Three hand-made entries over a two-feature vocabulary."""
    return TrainingSet.from_dict({
        "vocabulary": ["a", "b"],
        "entries": [
            {"label": "spam", "features": {"a": 2, "b": 0}},
            {"label": "spam", "features": {"a": 1, "b": 1}},
            {"label": "not_spam", "features": {"a": 0, "b": 3}},
        ],
    })


@pytest.fixture
def nb_classifier(training_set) -> NaiveBayesClassifier:
    """Naive Bayes classifier trained on the labelled corpus."""
    return NaiveBayesClassifier(name="nb").train(training_set)


@pytest.fixture
def pa_classifier(training_set) -> PassiveAggressiveClassifier:
    """Passive-Aggressive classifier trained on the labelled corpus."""
    return PassiveAggressiveClassifier(name="pa").train(training_set)


@pytest.fixture
def model_store(tmp_path: Path) -> ModelStore:
    """Empty model store in a temporary directory."""
    return ModelStore(tmp_path / "models")


@pytest.fixture
def corpus_file(tmp_path: Path) -> Path:
    """JSON-lines corpus with ``spam`` flags, as exported from a comment table."""
    file = tmp_path / "comments.jsonl"
    lines = [json.dumps({"content": text, "spam": 1}) for text in SPAM_TEXTS]
    lines += [json.dumps({"content": text, "spam": 0}) for text in HAM_TEXTS]
    file.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return file
