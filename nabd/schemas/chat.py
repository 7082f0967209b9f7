from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from nabd.schemas.knowledge import VectorStoreDocument
from nabd.schemas.plan import ExecutionPlan
from nabd.schemas.trace import RetrievedContext

ChatRole = Literal["system", "user", "assistant"]


class ChatTurn(BaseModel):
    """One prior message as the orchestrator sees it; role is not yet normalized."""

    model_config = ConfigDict(frozen=True)

    role: str
    content: str


class MessageCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., min_length=1, max_length=8000)
    system_prompt: str | None = Field(default=None, alias="systemPrompt", max_length=8000)
    system_prompt_id: str | None = Field(default=None, alias="systemPromptId")
    role: Literal["user"] = "user"


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: str
    role: str
    content: str
    created_at: datetime


class MessagePairResponse(BaseModel):
    user_message: MessageOut
    assistant_message: MessageOut


class PromptProfileSummary(BaseModel):
    id: str
    label: str
    description: str
    prompt_length: int


class PlanPreviewRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=8000)


class ToolDefinition(BaseModel):
    name: str
    description: str
    input_schema: dict


class OrchestrationPreview(BaseModel):
    plan: ExecutionPlan
    rag_contexts: list[RetrievedContext] = Field(default_factory=list)
    tool_definitions: list[ToolDefinition] = Field(default_factory=list)


class KnowledgeUpsertRequest(BaseModel):
    documents: list[VectorStoreDocument] = Field(..., min_length=1, max_length=50)
