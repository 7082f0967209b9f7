from __future__ import annotations

import threading
from collections import deque

from nabd.schemas.trace import OrchestrationTrace

DEFAULT_PER_CONVERSATION = 30
DEFAULT_GLOBAL = 80


class TraceStore:
    """Bounded in-memory history of orchestration traces, oldest evicted first."""

    def __init__(
        self,
        per_conversation: int = DEFAULT_PER_CONVERSATION,
        global_capacity: int = DEFAULT_GLOBAL,
    ) -> None:
        self.per_conversation = per_conversation
        self.global_capacity = global_capacity
        self._by_conversation: dict[str, deque[OrchestrationTrace]] = {}
        self._global: deque[OrchestrationTrace] = deque(maxlen=global_capacity)
        self._lock = threading.Lock()

    def record(self, conversation_id: str, trace: OrchestrationTrace) -> None:
        with self._lock:
            items = self._by_conversation.setdefault(
                conversation_id, deque(maxlen=self.per_conversation)
            )
            items.append(trace)
            self._global.append(trace)

    def latest(self, conversation_id: str | None = None) -> OrchestrationTrace | None:
        with self._lock:
            items = self._select(conversation_id)
            return items[-1] if items else None

    def history(self, conversation_id: str | None = None, limit: int = 10) -> list[OrchestrationTrace]:
        if limit <= 0:
            return []
        with self._lock:
            items = list(self._select(conversation_id))
        return items[-limit:]

    def _select(self, conversation_id: str | None) -> deque[OrchestrationTrace]:
        if conversation_id:
            return self._by_conversation.get(conversation_id, deque())
        return self._global
