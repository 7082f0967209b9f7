from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from nabd.schemas.skill import SkillExecutionOutput, SkillManifest, SkillPlannerHints
from nabd.skills.handlers.base import SkillHandler
from nabd.skills.validation import parse_input_against_schema

SkillFormat = Literal["nabd-json", "agent-skills"]


@dataclass(frozen=True)
class LoadedSkill:
    """A discovered skill bound to its handler. Replaced, never mutated, on refresh."""

    manifest: SkillManifest
    format: SkillFormat
    is_executable: bool
    skill_file_path: Path
    handler: SkillHandler
    instructions: str | None = None

    @property
    def id(self) -> str:
        return self.manifest.id

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def description(self) -> str:
        return self.manifest.description

    @property
    def planner(self) -> SkillPlannerHints | None:
        return self.manifest.planner

    def parse_input(self, raw_input: Any) -> dict[str, Any]:
        if not self.is_executable:
            return {}
        return parse_input_against_schema(self.manifest.input_schema, raw_input)

    async def execute(self, raw_input: Any) -> SkillExecutionOutput:
        return await self.handler(self.parse_input(raw_input))

    def to_tool_definition(self) -> dict[str, Any]:
        """Provider-neutral tool definition: name, description and JSON schema."""
        return {
            "name": self.id,
            "description": self.description,
            "input_schema": self.manifest.input_schema.to_json_schema(),
        }
