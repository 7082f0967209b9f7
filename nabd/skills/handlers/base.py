from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from nabd.schemas.skill import SkillExecutionOutput

SkillHandler = Callable[[dict[str, Any]], Awaitable[SkillExecutionOutput]]

DEFAULT_TIMEZONE = "Asia/Riyadh"
DEFAULT_CITY = "Riyadh"
UNAVAILABLE = "not available"

_ARABIC_RE = re.compile(r"[\u0600-\u06FF]")
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


class BaseSkillHandler(ABC):
    name: str

    @abstractmethod
    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        """Run the skill and return the text the model will see."""

    async def __call__(self, args: dict[str, Any]) -> SkillExecutionOutput:
        return await self.execute(args)


_HANDLERS: dict[str, BaseSkillHandler] = {}


def register_handler(handler: BaseSkillHandler) -> None:
    _HANDLERS[handler.name] = handler


def all_handlers() -> dict[str, SkillHandler]:
    return dict(_HANDLERS)


def to_safe_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def to_safe_number(value: Any, fallback: float = 1) -> float:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return fallback
    return fallback


def resolve_timezone(value: Any) -> str:
    """Return ``value`` if it names an IANA zone, else the default zone."""
    candidate = to_safe_string(value) or DEFAULT_TIMEZONE
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return DEFAULT_TIMEZONE
    return candidate


def has_arabic(text: str) -> bool:
    return bool(_ARABIC_RE.search(text))


def strip_html(text: str) -> str:
    return _SPACE_RE.sub(" ", _TAG_RE.sub("", text)).strip()


def format_amount(value: float) -> str:
    return f"{value:g}"
