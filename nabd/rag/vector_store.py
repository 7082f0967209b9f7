from __future__ import annotations

import math
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from nabd.schemas.knowledge import VectorSearchResult, VectorStoreDocument

VECTOR_SIZE = 256

_TOKEN_STRIP_RE = re.compile(r"[^a-z0-9_\u0600-\u06FF\s]")


def tokenize(text: str) -> list[str]:
    return [t for t in _TOKEN_STRIP_RE.sub(" ", text.lower()).split() if len(t) > 1]


def hash_token(token: str) -> int:
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch)) % 2**32
    return h % VECTOR_SIZE


def to_normalized_vector(text: str) -> list[float]:
    """Hashed term-frequency vector scaled to unit length (all zeros if no tokens)."""
    vector = [0.0] * VECTOR_SIZE
    for token in tokenize(text):
        vector[hash_token(token)] += 1

    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return vector
    return [v / magnitude for v in vector]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    # Both vectors are already unit length.
    return sum(x * y for x, y in zip(a, b))


@dataclass(frozen=True)
class StoredDocument:
    document: VectorStoreDocument
    vector: list[float]


class InMemoryVectorStore:
    def __init__(self) -> None:
        self._documents: dict[str, StoredDocument] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _embed(doc: VectorStoreDocument) -> StoredDocument:
        return StoredDocument(document=doc, vector=to_normalized_vector(f"{doc.title}\n{doc.content}"))

    def upsert_many(self, docs: Iterable[VectorStoreDocument]) -> None:
        stored = [self._embed(doc) for doc in docs]
        with self._lock:
            for item in stored:
                self._documents[item.document.id] = item

    def replace_all(self, docs: Iterable[VectorStoreDocument]) -> None:
        stored = {item.document.id: item for item in (self._embed(doc) for doc in docs)}
        with self._lock:
            self._documents = stored

    def search(self, query: str, top_k: int = 3) -> list[VectorSearchResult]:
        query_vector = to_normalized_vector(query)
        with self._lock:
            items = list(self._documents.values())

        scored = [
            VectorSearchResult(
                **item.document.model_dump(), score=cosine_similarity(query_vector, item.vector)
            )
            for item in items
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[: max(1, top_k)]

    def list_documents(self) -> list[VectorStoreDocument]:
        with self._lock:
            return [item.document for item in self._documents.values()]

    def size(self) -> int:
        return len(self._documents)
