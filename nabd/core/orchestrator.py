from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from nabd.connectors.llm import BaseLLMClient, ToolCall, ToolCallOutcome
from nabd.core.executor import ToolRunner
from nabd.core.history import normalize_chat_role, summarize_history
from nabd.core.planner import build_execution_plan
from nabd.core.prompts import build_citations, build_fallback_reply, build_system_instructions
from nabd.core.trace_store import TraceStore
from nabd.rag.retriever import KnowledgeBase
from nabd.schemas.chat import ChatTurn, OrchestrationPreview, ToolDefinition
from nabd.schemas.plan import ExecutionPlan
from nabd.schemas.trace import (
    AssistantReply,
    AssistantReplySource,
    OrchestrationTrace,
    RetrievedContext,
    ToolRunTrace,
)
from nabd.skills.registry import SkillRegistry

log = structlog.get_logger()

INSTRUCTION_SKILL_LIMIT = 2


def infer_source(
    tool_runs: Sequence[ToolRunTrace], plan: ExecutionPlan, rag_contexts: Sequence[RetrievedContext]
) -> AssistantReplySource:
    if len(tool_runs) > 1 or plan.is_multi_step:
        return "planner"
    if len(tool_runs) == 1:
        return "tool"
    if rag_contexts:
        return "rag"
    return "llm"


class Orchestrator:
    """Runs one assistant turn: plan, tools, retrieval, prompt, model, trace."""

    def __init__(
        self,
        registry: SkillRegistry,
        runner: ToolRunner,
        knowledge: KnowledgeBase,
        llm: BaseLLMClient,
        trace_store: TraceStore | None = None,
        rag_top_k: int = 3,
        max_tool_rounds: int = 2,
    ) -> None:
        self.registry = registry
        self.runner = runner
        self.knowledge = knowledge
        self.llm = llm
        self.trace_store = trace_store
        self.rag_top_k = rag_top_k
        self.max_tool_rounds = max_tool_rounds

    def _retrieve(self, content: str) -> list[RetrievedContext]:
        try:
            return self.knowledge.retrieve(content, self.rag_top_k)
        except Exception:
            log.exception("orchestrator.retrieval_failed")
            return []

    def preview(self, content: str) -> OrchestrationPreview:
        return OrchestrationPreview(
            plan=build_execution_plan(content, self.registry.list_executable_skills()),
            rag_contexts=self._retrieve(content),
            tool_definitions=[ToolDefinition(**d) for d in self.registry.tool_definitions()],
        )

    async def generate_reply(
        self,
        content: str,
        history: Sequence[ChatTurn] = (),
        system_prompt: str | None = None,
        conversation_id: str | None = None,
    ) -> AssistantReply:
        started_at = datetime.now(UTC)
        started = time.monotonic()

        await self.registry.refresh_async()
        plan = build_execution_plan(content, self.registry.list_executable_skills())
        tool_runs = await self.runner.execute_plan(plan)
        rag_contexts = self._retrieve(content)
        window = summarize_history(history)
        instruction_skills = self.registry.match_instruction_skills(content, INSTRUCTION_SKILL_LIMIT)
        tool_definitions = self.registry.tool_definitions()

        instructions = build_system_instructions(
            skills_xml=self.registry.build_available_skills_xml(),
            tool_definitions=tool_definitions,
            plan=plan,
            tool_runs=tool_runs,
            rag_contexts=rag_contexts,
            system_prompt=system_prompt,
            history_summary=window.summary,
            instruction_skills=instruction_skills,
        )

        messages: list[dict[str, Any]] = [{"role": "system", "content": instructions}]
        for turn in window.turns:
            role = normalize_chat_role(turn.role)
            if role is not None:
                messages.append({"role": role, "content": turn.content})
        history_used = len(messages) - 1
        messages.append({"role": "user", "content": content})

        model_configured = self.llm.is_configured
        provider_error: str | None = None

        if not model_configured:
            reply_text = build_fallback_reply(content, tool_runs, rag_contexts, plan)
        else:
            model_runs: list[ToolRunTrace] = []

            async def on_tool_call(call: ToolCall) -> ToolCallOutcome:
                step_id = f"model-{len(model_runs) + 1}"
                run = await self.runner.run_step(step_id, call.name, call.arguments)
                model_runs.append(run)
                return ToolCallOutcome(name=call.name, output=run.output_text, error=run.error)

            try:
                model_text = await self.llm.generate_reply(
                    messages,
                    tools=tool_definitions,
                    on_tool_call=on_tool_call,
                    max_tool_rounds=self.max_tool_rounds,
                )
                reply_text = model_text + build_citations(rag_contexts)
            except Exception as exc:
                provider_error = str(exc) or exc.__class__.__name__
                log.exception("orchestrator.provider_failed", error=provider_error)
                reply_text = build_fallback_reply(
                    content, tool_runs + model_runs, rag_contexts, plan, provider_error=provider_error
                )
            tool_runs = tool_runs + model_runs

        source = infer_source(tool_runs, plan, rag_contexts)
        finished_at = datetime.now(UTC)
        trace = OrchestrationTrace(
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=int((time.monotonic() - started) * 1000),
            user_content=content,
            system_prompt_provided=bool(system_prompt and system_prompt.strip()),
            model_configured=model_configured,
            source=source,
            plan=plan,
            tool_runs=tool_runs,
            rag_contexts=rag_contexts,
            history_summarized=window.summarized,
            history_messages_used=history_used,
            activated_instruction_skills=[s.id for s in instruction_skills],
            provider_error=provider_error,
        )
        if self.trace_store is not None and conversation_id:
            self.trace_store.record(conversation_id, trace)

        log.info(
            "orchestrator.turn_completed",
            conversation_id=conversation_id,
            source=source,
            tools=[r.tool_name for r in tool_runs],
            duration_ms=trace.duration_ms,
            provider_error=provider_error,
        )
        return AssistantReply(content=reply_text, source=source, trace=trace)
