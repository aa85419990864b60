"""Runtime settings read from the environment.

Variables use the ``SPAM_CLASSIFIER_`` prefix and may be placed in a
``.env`` file::

    SPAM_CLASSIFIER_MODEL_DIR=/var/lib/spam/models
    SPAM_CLASSIFIER_TYPE=naive_bayes
    SPAM_CLASSIFIER_FOLDS=10
    SPAM_CLASSIFIER_STRATIFIED=true
    SPAM_CLASSIFIER_CROSS_VALIDATE=true
    SPAM_CLASSIFIER_OPTIMIZE=true
    SPAM_CLASSIFIER_HISTORY_LENGTH=10
    SPAM_CLASSIFIER_DEFAULT_CLASS=not_spam
    SPAM_CLASSIFIER_PA_VARIANT=pa
    SPAM_CLASSIFIER_PA_AGGRESSIVENESS=1.0
    SPAM_CLASSIFIER_WORKERS=1
    SPAM_CLASSIFIER_LOG_LEVEL=WARNING

Models default to ``$XDG_DATA_HOME/comment-spam-classifier/models``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, TypeVar, Union

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError
from .models import ClassifierType, Label
from .passive_aggressive import PAVariant

APP_NAME = "comment-spam-classifier"
ENV_PREFIX = "SPAM_CLASSIFIER_"

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})

E = TypeVar("E", bound=Enum)


def default_model_dir() -> Path:
    """``$XDG_DATA_HOME/comment-spam-classifier/models`` (``~/.local/share`` if unset)."""
    xdg_data = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg_data) if xdg_data else Path.home() / ".local" / "share"
    return base / APP_NAME / "models"


@dataclass(frozen=True)
class Settings:
    """Defaults for training, evaluation and storage."""

    model_dir: Path = field(default_factory=default_model_dir)
    classifier_type: ClassifierType = ClassifierType.PASSIVE_AGGRESSIVE
    folds: int = 10
    stratified: bool = True
    cross_validate: bool = True
    optimize: bool = True
    history_length: int = 10
    default_class: Label = Label.NOT_SPAM
    pa_variant: PAVariant = PAVariant.PA
    pa_aggressiveness: float = 1.0
    workers: int = 1
    log_level: str = "WARNING"

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """Build settings from environment variables.

        Args:
            env_file: ``.env`` file to load first. Without it the nearest
                ``.env`` from the working directory is used, if any.
                Variables already set in the environment take precedence.
            environ: Mapping to read instead of ``os.environ``; no ``.env``
                file is loaded in that case.

        Raises:
            ConfigurationError: If a variable has an invalid value.
        """
        if environ is None:
            load_dotenv(env_file or find_dotenv(usecwd=True))
            environ = os.environ

        def get(name: str) -> Optional[str]:
            value = environ.get(ENV_PREFIX + name)
            return value.strip() if value is not None and value.strip() else None

        defaults = cls()
        model_dir = get("MODEL_DIR")
        return cls(
            model_dir=Path(model_dir).expanduser() if model_dir else defaults.model_dir,
            classifier_type=_enum("TYPE", get("TYPE"), ClassifierType, defaults.classifier_type),
            folds=_int("FOLDS", get("FOLDS"), defaults.folds, minimum=2),
            stratified=_bool("STRATIFIED", get("STRATIFIED"), defaults.stratified),
            cross_validate=_bool("CROSS_VALIDATE", get("CROSS_VALIDATE"), defaults.cross_validate),
            optimize=_bool("OPTIMIZE", get("OPTIMIZE"), defaults.optimize),
            history_length=_int("HISTORY_LENGTH", get("HISTORY_LENGTH"), defaults.history_length, minimum=1),
            default_class=_enum("DEFAULT_CLASS", get("DEFAULT_CLASS"), Label, defaults.default_class),
            pa_variant=_enum("PA_VARIANT", get("PA_VARIANT"), PAVariant, defaults.pa_variant),
            pa_aggressiveness=_positive_float(
                "PA_AGGRESSIVENESS", get("PA_AGGRESSIVENESS"), defaults.pa_aggressiveness
            ),
            workers=_int("WORKERS", get("WORKERS"), defaults.workers, minimum=1),
            log_level=_log_level("LOG_LEVEL", get("LOG_LEVEL"), defaults.log_level),
        )

    def classifier_kwargs(self, kind: Optional[Union[ClassifierType, str]] = None) -> dict:
        """Constructor arguments for ``kind`` (the configured type by default)."""
        kind = ClassifierType(kind or self.classifier_type)
        kwargs: dict = {"default_class": self.default_class}
        if kind is ClassifierType.PASSIVE_AGGRESSIVE:
            kwargs.update(variant=self.pa_variant, aggressiveness=self.pa_aggressiveness)
        return kwargs


def _bool(name: str, value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")


def _int(name: str, value: Optional[str], default: int, minimum: int) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from None
    if number < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {number}")
    return number


def _positive_float(name: str, value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from None
    if number <= 0:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be positive, got {number}")
    return number


def _enum(name: str, value: Optional[str], enum_cls: type[E], default: E) -> E:
    if value is None:
        return default
    try:
        return enum_cls(value.lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(
            f"{ENV_PREFIX}{name} must be one of {choices}; got {value!r}"
        ) from None


def _log_level(name: str, value: Optional[str], default: str) -> str:
    if value is None:
        return default
    level = value.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"{ENV_PREFIX}{name} is not a logging level: {value!r}")
    return level
