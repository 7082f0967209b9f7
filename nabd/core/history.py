from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from nabd.schemas.chat import ChatRole, ChatTurn

HISTORY_VERBATIM_TURNS = 10
SUMMARY_MAX_OLDER_TURNS = 12
SUMMARY_BULLET_CHARS = 180
SUMMARY_MAX_CHARS = 1400

_ROLE_LABELS = {"user": "User", "assistant": "Assistant", "system": "System"}


def normalize_chat_role(role: str) -> ChatRole | None:
    if role in ("system", "user", "assistant"):
        return role  # type: ignore[return-value]
    return None


def clip(text: str, limit: int) -> str:
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: max(0, limit - 1)].rstrip() + "…"


@dataclass(frozen=True)
class HistoryWindow:
    turns: list[ChatTurn]
    summary: str | None = None

    @property
    def summarized(self) -> bool:
        return self.summary is not None


def summarize_history(history: Sequence[ChatTurn]) -> HistoryWindow:
    """Keep recent turns verbatim and fold older ones into a short bullet list."""
    turns = list(history)
    if len(turns) <= HISTORY_VERBATIM_TURNS:
        return HistoryWindow(turns=turns)

    recent = turns[-HISTORY_VERBATIM_TURNS:]
    older = turns[:-HISTORY_VERBATIM_TURNS][-SUMMARY_MAX_OLDER_TURNS:]
    bullets = [
        f"- {_ROLE_LABELS.get(turn.role, turn.role or 'Unknown')}: {clip(turn.content, SUMMARY_BULLET_CHARS)}"
        for turn in older
        if turn.content.strip()
    ]
    if not bullets:
        return HistoryWindow(turns=recent)

    summary = "\n".join(bullets)
    if len(summary) > SUMMARY_MAX_CHARS:
        summary = summary[: SUMMARY_MAX_CHARS - 1].rstrip() + "…"
    return HistoryWindow(turns=recent, summary=summary)
