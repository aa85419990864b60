"""Comment Spam Classifier -- Naive Bayes and Passive-Aggressive comment filtering."""

__version__ = "0.1.0"

from .base import BaseClassifier, round_robin_folds, stratified_folds
from .config import Settings
from .documents import DocumentStore, JsonDocumentStore
from .exceptions import (
    ClassifierError,
    ConfigurationError,
    DimensionMismatchError,
    DocumentNotFoundError,
    EmptyCorpusError,
    EmptyModelError,
    EmptyVectorError,
    InvalidTrainingSetError,
    ModelFormatError,
    ModelNotFoundError,
    StaleStepIndexError,
    UnsupportedOperationError,
)
from .factory import classifier_class, create_classifier
from .features import FeatureExtractor, TrainingSetBuilder, slugify
from .models import (
    ClassificationResult,
    ClassifierType,
    Document,
    Label,
    Statistics,
    TrainingEntry,
    TrainingSet,
)
from .naive_bayes import NaiveBayesClassifier, NaiveBayesModel
from .passive_aggressive import (
    PassiveAggressiveClassifier,
    PassiveAggressiveModel,
    PAVariant,
    compute_tau,
    hinge_loss,
    inner_product,
    norm,
)
from .persistence import ModelStore, dumps, loads
from .pipeline import SpamFilter
from .report import ModelReport, build_report

__all__ = [
    # Core
    "SpamFilter",
    "Settings",
    "Label",
    "ClassifierType",
    "Document",
    "ClassificationResult",
    # Features
    "FeatureExtractor",
    "TrainingSetBuilder",
    "TrainingEntry",
    "TrainingSet",
    "slugify",
    # Classifiers
    "BaseClassifier",
    "NaiveBayesClassifier",
    "NaiveBayesModel",
    "PassiveAggressiveClassifier",
    "PassiveAggressiveModel",
    "PAVariant",
    "Statistics",
    "classifier_class",
    "create_classifier",
    "stratified_folds",
    "round_robin_folds",
    "inner_product",
    "norm",
    "hinge_loss",
    "compute_tau",
    # Storage and reporting
    "DocumentStore",
    "JsonDocumentStore",
    "ModelStore",
    "ModelReport",
    "build_report",
    "dumps",
    "loads",
    # Errors
    "ClassifierError",
    "ConfigurationError",
    "DimensionMismatchError",
    "DocumentNotFoundError",
    "EmptyCorpusError",
    "EmptyModelError",
    "EmptyVectorError",
    "InvalidTrainingSetError",
    "ModelFormatError",
    "ModelNotFoundError",
    "StaleStepIndexError",
    "UnsupportedOperationError",
]
