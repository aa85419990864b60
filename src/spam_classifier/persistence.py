"""Versioned model serialization and a file-backed model store.

Models are stored as JSON envelopes::

    {
      "schema_version": 1,
      "type": "passive_aggressive",
      "classifier": {...}
    }

The ``type`` tag selects the classifier class on load. JSON floats
round-trip exactly, so a reloaded model classifies bit-for-bit like the
original.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Optional, Union

from .base import BaseClassifier
from .exceptions import ModelFormatError, ModelNotFoundError
from .factory import classifier_class

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

ModelKey = Union[int, str]

_KEY_RE = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")


def dumps(classifier: BaseClassifier, indent: Optional[int] = None) -> str:
    """Serialize a classifier to a versioned JSON blob."""
    envelope = {
        "schema_version": SCHEMA_VERSION,
        "type": classifier.kind.value,
        "classifier": classifier.to_dict(),
    }
    return json.dumps(envelope, indent=indent)


def loads(blob: Union[str, bytes]) -> BaseClassifier:
    """Rebuild a classifier from :func:`dumps` output.

    Raises:
        ModelFormatError: If the blob is not valid JSON, has an unsupported
            schema version, an unknown type tag or missing fields.
    """
    try:
        envelope = json.loads(blob)
    except json.JSONDecodeError as e:
        raise ModelFormatError(f"Model blob is not valid JSON: {e}") from e

    if not isinstance(envelope, dict):
        raise ModelFormatError("Model blob must be a JSON object")

    version = envelope.get("schema_version")
    if not isinstance(version, int) or version < 1 or version > SCHEMA_VERSION:
        raise ModelFormatError(
            f"Unsupported model schema version: {version!r} (supported: 1..{SCHEMA_VERSION})"
        )

    try:
        cls = classifier_class(envelope.get("type"))
    except ValueError as e:
        raise ModelFormatError(str(e)) from e

    try:
        return cls.from_dict(envelope["classifier"])
    except (KeyError, TypeError, ValueError) as e:
        raise ModelFormatError(f"Malformed {cls.kind.value} model: {e!r}") from e


class ModelStore:
    """Directory of serialized models, one ``<key>.json`` file per model.

    Example::

        store = ModelStore("~/.local/share/comment-spam-classifier/models")
        key = store.save(classifier)
        classifier = store.load(key)

    Args:
        root: Directory holding the model files. Created on first save.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser()

    def save(self, classifier: BaseClassifier, key: Optional[ModelKey] = None) -> ModelKey:
        """Persist a classifier and return its key.

        When ``key`` is omitted the next free integer key is used. The file
        is written to a temporary name first and renamed into place.
        """
        if key is None:
            key = self._next_key()
        path = self._path(key)

        self.root.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_text(dumps(classifier, indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.info("Saved %s model under key %r", classifier.kind.value, key)
        return key

    def load(self, key: ModelKey) -> BaseClassifier:
        """Load the classifier stored under ``key``.

        Raises:
            ModelNotFoundError: If no model is stored under ``key``.
            ModelFormatError: If the stored blob cannot be decoded.
        """
        path = self._path(key)
        if not path.is_file():
            raise ModelNotFoundError(f"No model stored under key {key!r} in {self.root}")

        classifier = loads(path.read_text(encoding="utf-8"))
        logger.info("Loaded %s model from key %r", classifier.kind.value, key)
        return classifier

    def exists(self, key: ModelKey) -> bool:
        return self._path(key).is_file()

    def delete(self, key: ModelKey) -> None:
        """Remove a stored model.

        Raises:
            ModelNotFoundError: If no model is stored under ``key``.
        """
        path = self._path(key)
        if not path.is_file():
            raise ModelNotFoundError(f"No model stored under key {key!r} in {self.root}")
        path.unlink()

    def keys(self) -> list[ModelKey]:
        """Stored keys; numeric keys are returned as ints, sorted first."""
        if not self.root.is_dir():
            return []
        keys = [parse_key(p.stem) for p in self.root.glob("*.json")]
        numeric = sorted(k for k in keys if isinstance(k, int))
        named = sorted(k for k in keys if isinstance(k, str))
        return [*numeric, *named]

    def _next_key(self) -> int:
        numeric = [k for k in self.keys() if isinstance(k, int)]
        return max(numeric, default=0) + 1

    def _path(self, key: ModelKey) -> Path:
        name = str(key)
        if not _KEY_RE.match(name):
            raise ValueError(f"Invalid model key: {key!r}")
        return self.root / f"{name}.json"


def parse_key(text: str) -> ModelKey:
    """Numeric keys are ints (``"3"`` -> ``3``); anything else stays a string."""
    return int(text) if text.isascii() and text.isdigit() else text
