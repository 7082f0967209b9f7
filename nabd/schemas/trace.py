from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from nabd.schemas.plan import ExecutionPlan

AssistantReplySource = Literal["tool", "llm", "rag", "planner"]


class ToolRunTrace(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_id: str
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)
    output_text: str | None = None
    error: str | None = None
    latency_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.output_text is not None


class RetrievedContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    source: str
    content: str
    score: float


class OrchestrationTrace(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    started_at: datetime
    finished_at: datetime
    duration_ms: int
    user_content: str
    system_prompt_provided: bool
    model_configured: bool
    source: AssistantReplySource
    plan: ExecutionPlan
    tool_runs: list[ToolRunTrace] = Field(default_factory=list)
    rag_contexts: list[RetrievedContext] = Field(default_factory=list)
    history_summarized: bool = False
    history_messages_used: int = 0
    activated_instruction_skills: list[str] = Field(default_factory=list)
    provider_error: str | None = None


class AssistantReply(BaseModel):
    content: str
    source: AssistantReplySource
    trace: OrchestrationTrace
