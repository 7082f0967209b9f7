"""Tests for a full assistant turn through the orchestrator."""

import pytest
from conftest import ScriptedLLMClient, write_manifest

from nabd.connectors.llm import LLMProviderError, LLMResponse, ToolCall
from nabd.core.executor import ToolRunner
from nabd.core.orchestrator import Orchestrator, infer_source
from nabd.core.prompts import PERSONA, UNCONFIGURED_REPLY
from nabd.core.trace_store import TraceStore
from nabd.rag.retriever import KnowledgeBase
from nabd.schemas.chat import ChatTurn
from nabd.schemas.knowledge import VectorStoreDocument
from nabd.schemas.plan import ExecutionPlan, PlanStep
from nabd.schemas.trace import RetrievedContext, ToolRunTrace
from nabd.skills.registry import SkillRegistry

NOTES_DOC = VectorStoreDocument(
    id="notes",
    title="Repeater notes",
    source="internal://notes",
    content="The repeater returns the text back unchanged.",
)


@pytest.fixture
def registry(skills_root, handlers):
    write_manifest(
        skills_root,
        "echo-tool",
        planner={"keywords": ["echo"], "objective": "Echo the segment: {segment}"},
    )
    write_manifest(
        skills_root,
        "boom-tool",
        handler="boom",
        planner={"keywords": ["explode"], "objective": "Explode: {segment}"},
    )
    return SkillRegistry(skills_root, handlers=handlers)


def _orchestrator(registry, tmp_path, llm, seed=(), trace_store=None):
    return Orchestrator(
        registry=registry,
        runner=ToolRunner(registry),
        knowledge=KnowledgeBase(tmp_path / "knowledge.json", seed=list(seed)),
        llm=llm,
        trace_store=trace_store,
    )


@pytest.mark.asyncio
async def test_unconfigured_model_with_single_tool(registry, tmp_path):
    store = TraceStore()
    orchestrator = _orchestrator(
        registry, tmp_path, ScriptedLLMClient(configured=False), trace_store=store
    )

    reply = await orchestrator.generate_reply("echo this", conversation_id="conv-1")

    assert reply.source == "tool"
    assert "- [echo_tool] echo: " in reply.content
    trace = reply.trace
    assert not trace.model_configured
    assert [r.step_id for r in trace.tool_runs] == ["step-1"]
    assert trace.plan.steps[0].objective == "Echo the segment: echo this"
    assert store.latest("conv-1") is trace


@pytest.mark.asyncio
async def test_unconfigured_model_with_multi_step_plan(registry, tmp_path):
    orchestrator = _orchestrator(registry, tmp_path, ScriptedLLMClient(configured=False))

    reply = await orchestrator.generate_reply("echo this then explode now")

    assert reply.source == "planner"
    assert reply.trace.plan.is_multi_step
    assert "- Could not run boom_tool: upstream exploded" in reply.content
    assert "Plan followed:" in reply.content


@pytest.mark.asyncio
async def test_unconfigured_model_without_tools_or_context(registry, tmp_path):
    orchestrator = _orchestrator(registry, tmp_path, ScriptedLLMClient(configured=False))

    reply = await orchestrator.generate_reply("hello there")

    assert reply.source == "llm"
    assert reply.content == UNCONFIGURED_REPLY


@pytest.mark.asyncio
async def test_retrieved_context_only(registry, tmp_path):
    orchestrator = _orchestrator(
        registry, tmp_path, ScriptedLLMClient(configured=False), seed=[NOTES_DOC]
    )

    reply = await orchestrator.generate_reply("what does the repeater return")

    assert reply.source == "rag"
    assert reply.trace.rag_contexts[0].title == "Repeater notes"
    assert reply.content.endswith("Sources:\n1. Repeater notes (internal://notes)")


@pytest.mark.asyncio
async def test_model_tool_calls_are_traced(registry, tmp_path):
    llm = ScriptedLLMClient(
        LLMResponse(
            tool_calls=[ToolCall(id="c1", name="echo_tool", arguments={"text": "from model"})]
        ),
        LLMResponse(text="Model answer"),
    )
    orchestrator = _orchestrator(registry, tmp_path, llm)
    history = [
        ChatTurn(role="user", content="earlier question"),
        ChatTurn(role="tool", content="dropped"),
        ChatTurn(role="assistant", content="earlier answer"),
    ]

    reply = await orchestrator.generate_reply(
        "hello there", history=history, system_prompt="Be brief."
    )

    assert reply.content == "Model answer"
    assert reply.source == "tool"
    runs = reply.trace.tool_runs
    assert [(r.step_id, r.tool_name, r.output_text) for r in runs] == [
        ("model-1", "echo_tool", "echo: from model")
    ]
    assert reply.trace.system_prompt_provided
    assert reply.trace.history_messages_used == 2

    first_request = llm.requests[0]
    messages = first_request["messages"]
    assert messages[0]["role"] == "system"
    assert messages[0]["content"].startswith(PERSONA)
    assert "Be brief." in messages[0]["content"]
    assert messages[1:] == [
        {"role": "user", "content": "earlier question"},
        {"role": "assistant", "content": "earlier answer"},
        {"role": "user", "content": "hello there"},
    ]
    assert {t["name"] for t in first_request["tools"]} == {"echo_tool", "boom_tool"}


@pytest.mark.asyncio
async def test_model_reply_carries_citations(registry, tmp_path):
    llm = ScriptedLLMClient(LLMResponse(text="It repeats."))
    orchestrator = _orchestrator(registry, tmp_path, llm, seed=[NOTES_DOC])

    reply = await orchestrator.generate_reply("what does the repeater return")

    assert reply.content == "It repeats.\n\nSources:\n1. Repeater notes (internal://notes)"
    assert reply.source == "rag"


@pytest.mark.asyncio
async def test_provider_failure_falls_back(registry, tmp_path):
    llm = ScriptedLLMClient(LLMProviderError("Model API responded with status 503", 503))
    orchestrator = _orchestrator(registry, tmp_path, llm)

    reply = await orchestrator.generate_reply("echo this")

    assert reply.trace.provider_error == "Model API responded with status 503"
    assert "could not be reached (Model API responded with status 503)" in reply.content
    assert "- [echo_tool] echo: " in reply.content
    assert reply.source == "tool"


@pytest.mark.asyncio
async def test_long_history_is_summarized(registry, tmp_path):
    llm = ScriptedLLMClient(LLMResponse(text="ok"))
    orchestrator = _orchestrator(registry, tmp_path, llm)
    history = [ChatTurn(role="user", content=f"turn {i}") for i in range(14)]

    reply = await orchestrator.generate_reply("hello there", history=history)

    assert reply.trace.history_summarized
    assert reply.trace.history_messages_used == 10
    instructions = llm.requests[0]["messages"][0]["content"]
    assert "Summary of earlier conversation:\n- User: turn 0" in instructions


@pytest.mark.asyncio
async def test_trace_not_recorded_without_conversation(registry, tmp_path):
    store = TraceStore()
    orchestrator = _orchestrator(
        registry, tmp_path, ScriptedLLMClient(configured=False), trace_store=store
    )

    await orchestrator.generate_reply("hello there")

    assert store.latest() is None


def test_preview(registry, tmp_path):
    orchestrator = _orchestrator(
        registry, tmp_path, ScriptedLLMClient(configured=False), seed=[NOTES_DOC]
    )

    preview = orchestrator.preview("echo the repeater text")

    assert [s.tool_name for s in preview.plan.tool_steps] == ["echo_tool"]
    assert preview.rag_contexts[0].title == "Repeater notes"
    assert {d.name for d in preview.tool_definitions} == {"echo_tool", "boom_tool"}


def test_infer_source():
    run = ToolRunTrace(step_id="step-1", tool_name="x", output_text="y")
    context = RetrievedContext(title="t", source="s", content="c", score=0.5)
    single = ExecutionPlan(steps=[PlanStep(id="step-1", kind="synthesis", objective="o")])
    multi = single.model_copy(update={"is_multi_step": True})

    assert infer_source([run, run], single, []) == "planner"
    assert infer_source([], multi, []) == "planner"
    assert infer_source([run], single, [context]) == "tool"
    assert infer_source([], single, [context]) == "rag"
    assert infer_source([], single, []) == "llm"
