from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PlanStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description='Sequential step id, e.g. "step-2"')
    kind: Literal["tool", "synthesis"]
    objective: str
    tool_name: str | None = None
    tool_input: dict[str, Any] | None = None


class ExecutionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_multi_step: bool = False
    steps: list[PlanStep] = Field(default_factory=list)

    @property
    def tool_steps(self) -> list[PlanStep]:
        return [s for s in self.steps if s.kind == "tool" and s.tool_name]


class ToolPlanningMatch(BaseModel):
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    objective: str
    score: float
