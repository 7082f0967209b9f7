from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape

import structlog

from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.errors import SkillNotExecutableError, SkillNotFoundError
from nabd.skills.handlers import SKILL_HANDLERS
from nabd.skills.handlers.base import SkillHandler
from nabd.skills.loader import discover_skills, tokenize
from nabd.skills.skill import LoadedSkill

log = structlog.get_logger()

DEFAULT_DISCOVERY_TTL_SECONDS = 4.0

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(text: str) -> str:
    return escape(text, _XML_ENTITIES)


class SkillRegistry:
    """Process-wide catalog of skills discovered from a directory on disk.

    Discovery results are cached for ``ttl_seconds``; reads past the TTL
    trigger a rescan. Concurrent rescans are harmless because each one builds
    a fresh list and swaps it in whole.
    """

    def __init__(
        self,
        root: Path | str,
        ttl_seconds: float = DEFAULT_DISCOVERY_TTL_SECONDS,
        handlers: Mapping[str, SkillHandler] | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.ttl_seconds = ttl_seconds
        self._handlers = dict(handlers if handlers is not None else SKILL_HANDLERS)
        self._skills: list[LoadedSkill] = []
        self._last_scan_monotonic: float | None = None
        self._last_scan_at: datetime | None = None
        self._last_scan_error: str | None = None

    def refresh(self, force: bool = False) -> None:
        now = time.monotonic()
        if (
            not force
            and self._last_scan_monotonic is not None
            and now - self._last_scan_monotonic < self.ttl_seconds
        ):
            return

        try:
            self._skills = discover_skills(self.root, self._handlers)
            self._last_scan_error = None
            log.debug("skills.discovery_complete", count=len(self._skills), root=str(self.root))
        except Exception as exc:
            self._last_scan_error = str(exc) or exc.__class__.__name__
            log.exception("skills.discovery_failed", root=str(self.root))
        finally:
            self._last_scan_monotonic = time.monotonic()
            self._last_scan_at = datetime.now(UTC)

    async def refresh_async(self, force: bool = False) -> None:
        """Rescan from a worker thread so directory walks stay off the event loop."""
        await asyncio.to_thread(self.refresh, force)

    def list_skills(self) -> list[LoadedSkill]:
        self.refresh()
        return list(self._skills)

    def list_executable_skills(self) -> list[LoadedSkill]:
        return [s for s in self.list_skills() if s.is_executable]

    def get_skill(self, skill_id: str) -> LoadedSkill | None:
        self.refresh()
        return next((s for s in self._skills if s.id == skill_id), None)

    def match_instruction_skills(self, query: str, limit: int = 2) -> list[LoadedSkill]:
        """Rank skills carrying instructions by token overlap with ``query``."""
        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        scored: list[tuple[int, LoadedSkill]] = []
        for skill in self.list_skills():
            if not skill.instructions:
                continue
            haystack = set(
                tokenize(f"{skill.id} {skill.name} {skill.description} {skill.instructions}")
            )
            score = sum(1 for token in query_tokens if token in haystack)
            if score > 0:
                scored.append((score, skill))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [skill for _, skill in scored[: max(1, limit)]]

    def build_available_skills_xml(self, skills: Iterable[LoadedSkill] | None = None) -> str:
        lines = ["<available_skills>"]
        for skill in self.list_skills() if skills is None else skills:
            lines.extend(
                [
                    "<skill>",
                    f"<name>{escape_xml(skill.id)}</name>",
                    f"<description>{escape_xml(skill.description)}</description>",
                    f"<location>{escape_xml(str(skill.skill_file_path))}</location>",
                    "</skill>",
                ]
            )
        lines.append("</available_skills>")
        return "\n".join(lines)

    async def run_skill(self, skill_id: str, raw_input: Any = None) -> SkillExecutionOutput:
        skill = self.get_skill(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)
        if not skill.is_executable:
            raise SkillNotExecutableError(skill_id)
        return await skill.execute(raw_input or {})

    def tool_definitions(self) -> list[dict[str, Any]]:
        return [s.to_tool_definition() for s in self.list_executable_skills()]

    def diagnostics(self) -> dict[str, Any]:
        self.refresh()
        return {
            "root": str(self.root),
            "count": len(self._skills),
            "executable_count": sum(1 for s in self._skills if s.is_executable),
            "ids": [s.id for s in self._skills],
            "formats": [
                {"id": s.id, "format": s.format, "executable": s.is_executable}
                for s in self._skills
            ],
            "last_scan_at": self._last_scan_at.isoformat() if self._last_scan_at else None,
            "last_scan_error": self._last_scan_error,
        }
