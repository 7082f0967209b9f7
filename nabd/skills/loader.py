from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from nabd.schemas.skill import SkillExecutionOutput, SkillInputSchema, SkillManifest, SkillPlannerHints
from nabd.skills.errors import SkillNotExecutableError
from nabd.skills.handlers.base import SkillHandler
from nabd.skills.skill import LoadedSkill

log = structlog.get_logger()

MANIFEST_FILE = "skill.json"
INSTRUCTIONS_FILE = "SKILL.md"
MAX_DERIVED_KEYWORDS = 18

_TOKEN_STRIP_RE = re.compile(r"[^a-z0-9_\-\u0600-\u06FF\s]")
_NESTED_RE = re.compile(r"^\s{2,}([A-Za-z0-9_.-]+):\s*(.*)$")
_TOP_RE = re.compile(r"^([A-Za-z0-9_.-]+):\s*(.*)$")


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens (Latin alphanumerics and Arabic), length > 1."""
    return [t for t in _TOKEN_STRIP_RE.sub(" ", text.lower()).split() if len(t) > 1]


@dataclass
class SkillMarkdown:
    frontmatter: dict[str, str | dict[str, str]] = field(default_factory=dict)
    body: str = ""


def _unquote(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in {'"', "'"}:
        return trimmed[1:-1]
    return trimmed


def parse_skill_markdown(text: str) -> SkillMarkdown | None:
    """Split a ``SKILL.md`` document into front matter and body.

    Front matter is a ``---`` delimited block of ``key: value`` lines. A key
    with an empty value opens a block whose indented ``key: value`` lines are
    collected into a nested mapping (one level only).
    """
    raw = text.replace("\r\n", "\n")
    if not raw.startswith("---\n"):
        return None
    closing = raw.find("\n---\n", 4)
    if closing < 0:
        return None

    frontmatter: dict[str, str | dict[str, str]] = {}
    pending_block: str | None = None

    for line in raw[4:closing].split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        nested = _NESTED_RE.match(line)
        if nested and pending_block:
            block = frontmatter.setdefault(pending_block, {})
            if isinstance(block, dict):
                block[nested.group(1)] = _unquote(nested.group(2))
            continue

        top = _TOP_RE.match(line)
        if not top:
            continue
        key, value = top.group(1), top.group(2)
        if value.strip() == "":
            frontmatter[key] = {}
            pending_block = key
        else:
            frontmatter[key] = _unquote(value)
            pending_block = None

    body = raw[closing + len("\n---\n"):].strip()
    return SkillMarkdown(frontmatter=frontmatter, body=body)


def load_manifest(path: Path) -> SkillManifest | None:
    try:
        return SkillManifest.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as exc:
        log.warning("skills.manifest_invalid", path=str(path), error=str(exc))
        return None


def _read_skill_markdown(path: Path) -> SkillMarkdown | None:
    try:
        return parse_skill_markdown(path.read_text(encoding="utf-8"))
    except OSError as exc:
        log.warning("skills.skill_md_unreadable", path=str(path), error=str(exc))
        return None


def _instruction_only_handler(skill_id: str) -> SkillHandler:
    async def _execute(args: dict[str, Any]) -> SkillExecutionOutput:
        raise SkillNotExecutableError(skill_id)

    return _execute


def build_instruction_skill(path: Path, parsed: SkillMarkdown) -> LoadedSkill | None:
    """Build a non-executable skill from a standalone ``SKILL.md``."""
    name_field = parsed.frontmatter.get("name")
    description_field = parsed.frontmatter.get("description")

    skill_id = (name_field.strip() if isinstance(name_field, str) else "") or path.parent.name
    if not skill_id:
        return None
    description = (
        description_field.strip() if isinstance(description_field, str) else ""
    ) or "Instruction-only agent skill"

    metadata = parsed.frontmatter.get("metadata")
    metadata = metadata if isinstance(metadata, Mapping) else {}
    keywords = list(dict.fromkeys(tokenize(skill_id) + tokenize(description)))[:MAX_DERIVED_KEYWORDS]

    manifest = SkillManifest.model_construct(
        id=skill_id,
        name=skill_id,
        description=description,
        category=(metadata.get("category") or "").strip() or "instruction",
        version=(metadata.get("version") or "").strip() or "1.0.0",
        handler="instruction_only",
        input_schema=SkillInputSchema(properties={}, required=[], additional_properties=True),
        planner=SkillPlannerHints(
            keywords=keywords,
            objective=f"Apply the instructions of skill {skill_id} when the request relates to it.",
            priority=5,
            extractor="none",
        ),
        sample_prompts=[],
    )
    return LoadedSkill(
        manifest=manifest,
        format="agent-skills",
        is_executable=False,
        skill_file_path=path,
        handler=_instruction_only_handler(skill_id),
        instructions=parsed.body or None,
    )


def discover_skills(root: Path, handlers: Mapping[str, SkillHandler]) -> list[LoadedSkill]:
    """Scan ``root`` subdirectories for ``skill.json`` and ``SKILL.md`` files.

    Invalid entries are logged and skipped. The first skill to claim an id
    wins. Raises ``OSError`` only when the root itself cannot be listed.
    """
    if not root.is_dir():
        log.warning("skills.root_missing", path=str(root))
        return []

    loaded: list[LoadedSkill] = []
    seen: set[str] = set()

    for skill_dir in sorted(root.iterdir()):
        if not skill_dir.is_dir():
            continue

        json_path = skill_dir / MANIFEST_FILE
        md_path = skill_dir / INSTRUCTIONS_FILE
        has_md = md_path.is_file()

        if json_path.is_file():
            manifest = load_manifest(json_path)
            if manifest is None:
                continue
            if manifest.id in seen:
                log.warning("skills.duplicate_id", skill=manifest.id, path=str(json_path))
                continue
            handler = handlers.get(manifest.handler)
            if handler is None:
                log.warning("skills.missing_handler", skill=manifest.id, handler=manifest.handler)
                continue

            parsed_md = _read_skill_markdown(md_path) if has_md else None
            seen.add(manifest.id)
            loaded.append(
                LoadedSkill(
                    manifest=manifest,
                    format="nabd-json",
                    is_executable=True,
                    skill_file_path=md_path if has_md else json_path,
                    handler=handler,
                    instructions=(parsed_md.body or None) if parsed_md else None,
                )
            )
            log.debug("skills.loaded", skill=manifest.id, format="nabd-json")
            continue

        if has_md:
            parsed = _read_skill_markdown(md_path)
            if parsed is None:
                log.warning("skills.skill_md_invalid", path=str(md_path))
                continue
            skill = build_instruction_skill(md_path, parsed)
            if skill is None:
                continue
            if skill.id in seen:
                log.warning("skills.duplicate_id", skill=skill.id, path=str(md_path))
                continue
            seen.add(skill.id)
            loaded.append(skill)
            log.debug("skills.loaded", skill=skill.id, format="agent-skills")

    return sorted(loaded, key=lambda s: s.id)
