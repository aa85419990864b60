"""Exception hierarchy for the spam classifier.

Every error derives from :class:`ClassifierError` and from the closest
built-in exception, so callers may catch either.
"""

from __future__ import annotations


class ClassifierError(Exception):
    """Base exception for classifier errors."""
    pass


class InvalidTrainingSetError(ClassifierError, ValueError):
    """Raised when a training set is malformed or not a sequence."""
    pass


class EmptyCorpusError(ClassifierError, ValueError):
    """Raised when a training corpus contains zero documents."""
    pass


class DimensionMismatchError(ClassifierError, ValueError):
    """Raised when two vectors of unequal length are combined."""
    pass


class EmptyVectorError(ClassifierError, ValueError):
    """Raised when a norm is requested on an empty vector."""
    pass


class ModelNotFoundError(ClassifierError, LookupError):
    """Raised when a stored model is requested for an unknown key."""
    pass


class StaleStepIndexError(ClassifierError, IndexError):
    """Raised when a step index falls outside the retained weight history."""
    pass


class EmptyModelError(ClassifierError, RuntimeError):
    """Raised when a model is used before it has been trained."""
    pass


class ModelFormatError(ClassifierError, ValueError):
    """Raised when a serialized model cannot be decoded."""
    pass


class UnsupportedOperationError(ClassifierError):
    """Raised when an algorithm does not implement an operation."""
    pass


class ConfigurationError(ClassifierError, ValueError):
    """Raised when a configuration value cannot be parsed."""
    pass


class DocumentNotFoundError(ClassifierError, LookupError):
    """Raised when a document store has no document with the given id."""
    pass
