from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from pathlib import Path

import structlog
from pydantic import TypeAdapter, ValidationError

from nabd.rag.knowledge import KNOWLEDGE_DOCUMENTS
from nabd.rag.vector_store import InMemoryVectorStore
from nabd.schemas.knowledge import VectorStoreDocument
from nabd.schemas.trace import RetrievedContext

log = structlog.get_logger()

MIN_SCORE = 0.08
DEFAULT_TOP_K = 3

_documents_adapter = TypeAdapter(list[VectorStoreDocument])


class KnowledgeBase:
    """Vector store seeded from built-in documents and a JSON file on disk.

    Documents persisted in ``store_path`` override seed documents with the
    same id. Every upsert is written back to the file; I/O failures are
    logged and otherwise ignored.
    """

    def __init__(
        self,
        store_path: Path | str,
        seed: Iterable[VectorStoreDocument] = KNOWLEDGE_DOCUMENTS,
        store: InMemoryVectorStore | None = None,
    ) -> None:
        self.store_path = Path(store_path)
        self.store = store or InMemoryVectorStore()
        self._save_lock = asyncio.Lock()
        self._bootstrap(list(seed))

    def _bootstrap(self, seed: list[VectorStoreDocument]) -> None:
        persisted = self._load_persisted()
        if not persisted:
            self.store.upsert_many(seed)
            self._save()
            return

        merged = {doc.id: doc for doc in seed}
        merged.update({doc.id: doc for doc in persisted})
        self.store.replace_all(merged.values())
        log.info("rag.bootstrapped", documents=len(merged), persisted=len(persisted))

    def _load_persisted(self) -> list[VectorStoreDocument]:
        if not self.store_path.is_file():
            return []
        try:
            raw = json.loads(self.store_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("rag.load_failed", path=str(self.store_path), error=str(exc))
            return []
        if not isinstance(raw, list):
            return []

        docs: list[VectorStoreDocument] = []
        for item in raw:
            try:
                docs.append(VectorStoreDocument.model_validate(item))
            except ValidationError:
                log.debug("rag.persisted_entry_skipped", item=str(item)[:120])
        return docs

    def _snapshot(self) -> bytes:
        return _documents_adapter.dump_json(self.store.list_documents(), indent=2)

    def _write(self, payload: bytes) -> None:
        try:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            self.store_path.write_bytes(payload)
        except OSError as exc:
            log.warning("rag.persist_failed", path=str(self.store_path), error=str(exc))

    def _save(self) -> None:
        self._write(self._snapshot())

    def retrieve(self, query: str, top_k: int = DEFAULT_TOP_K) -> list[RetrievedContext]:
        results = self.store.search(query, top_k + 2)
        return [
            RetrievedContext(title=r.title, source=r.source, content=r.content, score=r.score)
            for r in results
            if r.score >= MIN_SCORE
        ][:top_k]

    def upsert(self, docs: Iterable[VectorStoreDocument]) -> None:
        self.store.upsert_many(docs)
        self._save()

    async def upsert_async(self, docs: Iterable[VectorStoreDocument]) -> None:
        """Upsert from a request handler; the file write runs in a worker thread."""
        self.store.upsert_many(docs)
        async with self._save_lock:
            await asyncio.to_thread(self._write, self._snapshot())

    def list_documents(self) -> list[VectorStoreDocument]:
        return self.store.list_documents()
