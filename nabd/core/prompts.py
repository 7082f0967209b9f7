from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from nabd.core.history import clip
from nabd.schemas.plan import ExecutionPlan
from nabd.schemas.trace import RetrievedContext, ToolRunTrace
from nabd.skills.skill import LoadedSkill

PERSONA = (
    "You are Nabd, a precise Arabic-first assistant. Reply in the language the user writes in. "
    "Use tool results and retrieved context, when present, before answering."
)

TOOL_GAP_DIRECTIVE = (
    "If the tool results are incomplete or contain errors, say so clearly "
    "and offer the best practical alternative."
)

INSTRUCTION_BODY_CHARS = 2000

UNCONFIGURED_REPLY = (
    "I can't give a complete answer right now because the language model is not configured "
    "(set OPENAI_API_KEY or NVIDIA_API_KEY)."
)


def format_tool_definitions(definitions: Sequence[dict[str, Any]]) -> str:
    lines = []
    for d in definitions:
        schema = json.dumps(d["input_schema"], ensure_ascii=False, separators=(",", ":"))
        lines.append(f"- {d['name']}: {d['description']}\n  schema: {schema}")
    return "\n".join(lines)


def format_tool_runs(runs: Sequence[ToolRunTrace]) -> str:
    lines = []
    for run in runs:
        if run.error:
            lines.append(f"- {run.tool_name}: failed ({run.error}) (latency={run.latency_ms}ms)")
            continue
        lines.append(
            f"- {run.tool_name}\n"
            f"  input: {json.dumps(run.input, ensure_ascii=False)}\n"
            f"  output: {run.output_text or 'no output'}\n"
            f"  latencyMs: {run.latency_ms}"
        )
    return "\n".join(lines)


def format_retrieved_context(contexts: Sequence[RetrievedContext]) -> str:
    return "\n\n".join(
        f"{i}. [{c.title}] ({c.source})\n{c.content}" for i, c in enumerate(contexts, start=1)
    )


def format_plan(plan: ExecutionPlan) -> str:
    return "\n".join(f"- ({step.id}) {step.objective}" for step in plan.steps)


def format_instruction_skills(skills: Sequence[LoadedSkill]) -> str:
    blocks = [
        f'<skill name="{skill.id}">\n{clip_block(skill.instructions, INSTRUCTION_BODY_CHARS)}\n</skill>'
        for skill in skills
        if skill.instructions
    ]
    return "\n".join(blocks)


def clip_block(text: str, limit: int) -> str:
    """Clip without collapsing newlines, unlike :func:`clip`."""
    stripped = text.strip()
    if len(stripped) <= limit:
        return stripped
    return stripped[: limit - 1].rstrip() + "…"


def build_system_instructions(
    *,
    skills_xml: str,
    tool_definitions: Sequence[dict[str, Any]],
    plan: ExecutionPlan,
    tool_runs: Sequence[ToolRunTrace] = (),
    rag_contexts: Sequence[RetrievedContext] = (),
    system_prompt: str | None = None,
    history_summary: str | None = None,
    instruction_skills: Sequence[LoadedSkill] = (),
) -> str:
    sections = [PERSONA, f"Available skills:\n{skills_xml}"]
    if system_prompt and system_prompt.strip():
        sections.append(system_prompt.strip())
    if history_summary:
        sections.append(f"Summary of earlier conversation:\n{history_summary}")
    sections.append(TOOL_GAP_DIRECTIVE)
    if tool_definitions:
        sections.append(f"Available tools:\n{format_tool_definitions(tool_definitions)}")
    guidance = format_instruction_skills(instruction_skills)
    if guidance:
        sections.append(f"Skill guidance:\n{guidance}")
    if len(plan.steps) > 1:
        sections.append(f"Current execution plan:\n{format_plan(plan)}")
    if tool_runs:
        sections.append(f"Tool results:\n{format_tool_runs(tool_runs)}")
    if rag_contexts:
        sections.append(f"Retrieved context (RAG):\n{format_retrieved_context(rag_contexts)}")
    return "\n\n".join(sections)


def build_citations(contexts: Sequence[RetrievedContext]) -> str:
    if not contexts:
        return ""
    lines = [f"{i}. {c.title} ({c.source})" for i, c in enumerate(contexts, start=1)]
    return "\n\nSources:\n" + "\n".join(lines)


def describe_plan(plan: ExecutionPlan) -> str:
    tool_steps = plan.tool_steps
    if not tool_steps:
        return ""
    lines = [f"{i}. {step.objective}" for i, step in enumerate(tool_steps, start=1)]
    return "Plan followed:\n" + "\n".join(lines)


def build_fallback_reply(
    user_content: str,
    tool_runs: Sequence[ToolRunTrace],
    contexts: Sequence[RetrievedContext],
    plan: ExecutionPlan | None = None,
    provider_error: str | None = None,
) -> str:
    """Compose a reply without the model. The result is never empty."""
    parts: list[str] = []

    if provider_error:
        parts.append(f"The language model could not be reached ({provider_error}).")

    successful = [run for run in tool_runs if run.output_text]
    if successful:
        parts.append(
            f'Results for "{clip(user_content, 200)}":\n'
            + "\n".join(f"- [{run.tool_name}] {run.output_text}" for run in successful)
        )

    failed = [run for run in tool_runs if run.error]
    if failed:
        parts.append(
            "Notes:\n" + "\n".join(f"- Could not run {run.tool_name}: {run.error}" for run in failed)
        )

    if contexts:
        parts.append(
            "Related knowledge:\n" + "\n".join(f"- {c.title}: {c.content}" for c in contexts)
        )

    if plan is not None:
        description = describe_plan(plan)
        if description:
            parts.append(description)

    if not successful and not failed and not contexts:
        parts.append(UNCONFIGURED_REPLY if not provider_error else "Please try again in a moment.")

    return "\n\n".join(parts) + build_citations(contexts)
