from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

SkillPropertyType = Literal["string", "number", "boolean"]

PlannerExtractor = Literal[
    "none",
    "location",
    "query",
    "currency",
    "timezone",
    "country",
    "news_topic",
    "ip",
]


class SkillPropertySchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: SkillPropertyType
    description: NonEmptyStr


class SkillInputSchema(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["object"] = "object"
    properties: dict[str, SkillPropertySchema] = Field(default_factory=dict)
    required: list[NonEmptyStr] = Field(default_factory=list)
    additional_properties: bool = Field(default=False, alias="additionalProperties")

    def to_json_schema(self) -> dict[str, Any]:
        """Render with the camelCase keys JSON Schema consumers expect."""
        return self.model_dump(by_alias=True)


class SkillPlannerHints(BaseModel):
    model_config = ConfigDict(frozen=True)

    keywords: list[NonEmptyStr] = Field(default_factory=list)
    patterns: list[NonEmptyStr] | None = None
    extractor: PlannerExtractor | None = None
    objective: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2)] | None = None
    priority: int | None = None


class SkillManifest(BaseModel):
    """On-disk ``skill.json`` contract. Unknown top-level keys are rejected."""

    model_config = ConfigDict(
        extra="forbid", frozen=True, populate_by_name=True, str_strip_whitespace=True
    )

    id: str = Field(..., min_length=2, pattern=r"^[a-z0-9_\-]+$")
    name: str = Field(..., min_length=2)
    description: str = Field(..., min_length=6)
    category: str = Field(..., min_length=2)
    version: str = Field(..., min_length=1)
    handler: str = Field(..., min_length=2)
    input_schema: SkillInputSchema = Field(..., alias="inputSchema")
    planner: SkillPlannerHints | None = None
    sample_prompts: (
        list[Annotated[str, StringConstraints(strip_whitespace=True, min_length=2)]] | None
    ) = Field(default=None, alias="samplePrompts", max_length=8)


class SkillExecutionOutput(BaseModel):
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)
