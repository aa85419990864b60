"""Document store interface and a JSON file implementation.

Raw comments and their labels live outside the classifier. Anything with
``find_all()`` and ``find_by_id()`` can feed training; ``JsonDocumentStore``
reads a corpus file in either of these shapes::

    [{"id": 1, "content": "...", "label": "spam"}, ...]

    {"content": "...", "spam": 1}
    {"content": "...", "spam": 0}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol, Union, runtime_checkable

from .exceptions import DocumentNotFoundError, InvalidTrainingSetError
from .models import Document, DocumentId


@runtime_checkable
class DocumentStore(Protocol):
    """Source of labelled or unlabelled comments."""

    def find_all(self) -> list[Document]:
        ...

    def find_by_id(self, document_id: DocumentId) -> Document:
        ...


class JsonDocumentStore:
    """Read-only document store backed by a JSON array or JSON-lines file.

    Records without an ``id`` get their 1-based position as id.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def find_all(self) -> list[Document]:
        """Load every document in file order.

        Raises:
            FileNotFoundError: If the corpus file does not exist.
            InvalidTrainingSetError: If a record cannot be parsed.
        """
        text = self.path.read_text(encoding="utf-8")
        documents = []
        for position, record in enumerate(self._records(text), 1):
            if not isinstance(record, dict):
                raise InvalidTrainingSetError(
                    f"{self.path}: record {position} is not an object"
                )
            try:
                doc = Document.from_mapping(record)
            except ValueError as e:
                raise InvalidTrainingSetError(f"{self.path}: record {position}: {e}") from e
            if doc.id is None:
                doc.id = position
            documents.append(doc)
        return documents

    def find_by_id(self, document_id: DocumentId) -> Document:
        """Return the document with the given id.

        Raises:
            DocumentNotFoundError: If no document has that id.
        """
        for doc in self.find_all():
            if doc.id == document_id or str(doc.id) == str(document_id):
                return doc
        raise DocumentNotFoundError(f"No document with id {document_id!r} in {self.path}")

    def _records(self, text: str) -> list:
        stripped = text.lstrip()
        if not stripped:
            return []
        if stripped.startswith("["):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError as e:
                raise InvalidTrainingSetError(f"{self.path}: invalid JSON: {e}") from e

        records = []
        for lineno, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise InvalidTrainingSetError(f"{self.path}:{lineno}: invalid JSON: {e}") from e
        return records
