"""Text feature extraction and vocabulary alignment.

Comments are split into tokens, each token is folded into a lowercase
ASCII slug, and the slugs are counted into a sparse frequency map. A
synthetic ``links_count`` feature tracks URL-like tokens.

Per-document pruning drops every token seen fewer than three times in the
same comment. This discards a lot of signal on short texts but is kept for
compatibility with models trained under the same rule.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Union

from .exceptions import EmptyCorpusError, InvalidTrainingSetError
from .models import Document, FeatureVector, Label, TrainingEntry, TrainingSet, Vocabulary

logger = logging.getLogger(__name__)

LINKS_FEATURE = "links_count"

_TOKEN_SEPARATOR_RE = re.compile(r"[\s\[\]<>?;\"'=/()!&]+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Letters that NFKD decomposition does not reduce to ASCII
_TRANSLITERATION = str.maketrans({
    "ß": "ss",
    "æ": "ae",
    "œ": "oe",
    "ø": "o",
    "đ": "d",
    "ð": "d",
    "ł": "l",
    "þ": "th",
    "ı": "i",
})

DocumentLike = Union[Document, Mapping, Sequence]


def slugify(token: str) -> str:
    """Lowercase a token, fold diacritics to ASCII and join words with ``_``.

    >>> slugify("Café-Crème")
    'cafe_creme'
    >>> slugify("www.Spam.biz")
    'www_spam_biz'
    """
    folded = token.lower().translate(_TRANSLITERATION)
    folded = unicodedata.normalize("NFKD", folded).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM_RE.sub("_", folded).strip("_")


@dataclass
class FeatureExtractor:
    """Turn raw comment text into a sparse token-frequency map.

    Args:
        min_token_length: Slugs shorter than this are discarded.
        min_frequency: Tokens seen fewer times in one document are dropped.
    """

    min_token_length: int = 3
    min_frequency: int = 3

    def extract(self, text: str) -> FeatureVector:
        """Extract the feature vector of a single document.

        The result always contains ``links_count``; it is exempt from
        frequency pruning.
        """
        counts: FeatureVector = {LINKS_FEATURE: 0}

        for token in self.tokenize(text):
            slug = slugify(token)
            if len(slug) < self.min_token_length:
                continue

            if _is_link(token, slug):
                counts[LINKS_FEATURE] += 1

            counts[slug] = counts.get(slug, 0) + 1

        return {
            feature: freq
            for feature, freq in counts.items()
            if feature == LINKS_FEATURE or freq >= self.min_frequency
        }

    def extract_many(self, texts: Iterable[str]) -> list[FeatureVector]:
        """Extract feature vectors for several documents."""
        return [self.extract(text) for text in texts]

    @staticmethod
    def tokenize(text: str) -> list[str]:
        """Split text on whitespace and the separator punctuation set."""
        if not text:
            return []
        return [t for t in _TOKEN_SEPARATOR_RE.split(text) if t]


def _is_link(token: str, slug: str) -> bool:
    return token.lower().startswith("http:") or slug.startswith("www_")


class TrainingSetBuilder:
    """Build a vocabulary-aligned :class:`TrainingSet` from raw documents.

    The vocabulary is the union of all extracted features in first-seen
    order. The same alignment, restricted to a frozen vocabulary, is used
    when classifying new text.

    Example::

        builder = TrainingSetBuilder()
        training_set = builder.build([
            ("spam", "cheap cheap cheap pills"),
            ("not_spam", "see you at the meeting"),
        ])
        vectors = builder.vectorize(["cheap offer"], training_set.vocabulary)
    """

    def __init__(self, extractor: FeatureExtractor | None = None) -> None:
        self.extractor = extractor or FeatureExtractor()

    def build(self, documents: Iterable[DocumentLike]) -> TrainingSet:
        """Extract, union and align features of a labelled corpus.

        Args:
            documents: ``(label, text)`` pairs, :class:`Document` objects or
                ``{"label", "content"}`` mappings, in corpus order.

        Returns:
            TrainingSet whose entries are keyed by exactly the vocabulary.

        Raises:
            EmptyCorpusError: If there are no documents.
            InvalidTrainingSetError: If the input is not a sequence or a
                document is malformed.
        """
        if isinstance(documents, (str, bytes, Mapping)) or not isinstance(documents, Iterable):
            raise InvalidTrainingSetError("Training documents must be a sequence")

        docs = list(documents)
        if not docs:
            raise EmptyCorpusError("Cannot build a training set from zero documents")

        seen: dict[str, None] = {}
        extracted: list[tuple[Label, FeatureVector]] = []
        for idx, item in enumerate(docs):
            label, text = self._unpack(item, idx)
            features = self.extractor.extract(text)
            seen.update(dict.fromkeys(features))
            extracted.append((label, features))

        vocabulary: Vocabulary = tuple(seen)
        entries = [
            TrainingEntry(label=label, features=self.align(features, vocabulary))
            for label, features in extracted
        ]

        logger.info(
            "Built training set: %d documents, %d features", len(entries), len(vocabulary)
        )
        return TrainingSet(vocabulary=vocabulary, entries=entries)

    def vectorize(
        self,
        documents: Iterable[Union[str, Document]],
        vocabulary: Vocabulary,
    ) -> list[FeatureVector]:
        """Extract features of unlabelled text aligned to a frozen vocabulary."""
        vectors = []
        for item in documents:
            text = item.content if isinstance(item, Document) else item
            vectors.append(self.align(self.extractor.extract(text), vocabulary))
        return vectors

    @staticmethod
    def align(features: Mapping[str, int], vocabulary: Vocabulary) -> FeatureVector:
        """Restrict a vector to the vocabulary, filling missing features with 0."""
        return {feature: features.get(feature, 0) for feature in vocabulary}

    @staticmethod
    def _unpack(item: DocumentLike, idx: int) -> tuple[Label, str]:
        try:
            if isinstance(item, Document):
                label, text = item.label, item.content
            elif isinstance(item, Mapping):
                doc = Document.from_mapping(item)
                label, text = doc.label, doc.content
            elif isinstance(item, Sequence) and not isinstance(item, (str, bytes)) and len(item) == 2:
                label, text = Label.parse(item[0]), item[1]
            else:
                raise InvalidTrainingSetError(
                    f"Document {idx} must be a (label, text) pair, Document or mapping"
                )
        except ValueError as e:
            if isinstance(e, InvalidTrainingSetError):
                raise
            raise InvalidTrainingSetError(f"Document {idx}: {e}") from e

        if label is None:
            raise InvalidTrainingSetError(f"Document {idx} has no label")
        if not isinstance(text, str):
            raise InvalidTrainingSetError(f"Document {idx} content must be a string")
        return label, text
