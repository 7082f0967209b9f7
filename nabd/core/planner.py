from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from nabd.core.tool_matching import match_tool_for_segment
from nabd.schemas.plan import ExecutionPlan, PlanStep
from nabd.skills.skill import LoadedSkill

log = structlog.get_logger()

ACTION_KEYWORDS = (
    "ابحث",
    "طقس",
    "الطقس",
    "درجة الحرارة",
    "الوقت",
    "التاريخ",
    "أخبار",
    "سعر",
    "حول",
    "search",
    "weather",
    "temperature",
    "time",
    "date",
    "news",
    "exchange",
    "convert",
)

_ACTIONS = "|".join(re.escape(k) for k in ACTION_KEYWORDS)

# "و" is a prefix in Arabic ("وطقس"); "and" is a separate word.
_CONJUNCTION_RE = re.compile(
    rf"\s+(?:و|and\s+(?:the\s+)?)(?=(?:{_ACTIONS}))", re.IGNORECASE
)
_SPLIT_RE = re.compile(
    r"\s+(?:ثم|وبعد ذلك|بعدها|and then|after that|then)\s+|[،,\n]+", re.IGNORECASE
)

DIRECT_ANSWER_OBJECTIVE = "Answer the user's request directly with the language model."
SYNTHESIS_OBJECTIVE = "Combine the tool results with the context into one clear final answer."


def normalize_for_planning(content: str) -> str:
    # Collapse spaces but keep newlines; they separate segments.
    text = _CONJUNCTION_RE.sub(" ثم ", content)
    return re.sub(r"[^\S\n]+", " ", text).strip()


def split_into_segments(content: str) -> list[str]:
    segments = [part.strip() for part in _SPLIT_RE.split(normalize_for_planning(content))]
    segments = [s for s in segments if s]
    return segments or [content.strip()]


def build_execution_plan(content: str, skills: Iterable[LoadedSkill]) -> ExecutionPlan:
    """Split a request into tool steps followed by one synthesis step.

    Segments that match no skill are dropped; the synthesis step and the
    model still see the whole request.
    """
    candidates = [s for s in skills if s.is_executable]
    steps: list[PlanStep] = []

    for segment in split_into_segments(content):
        match = match_tool_for_segment(segment, candidates)
        if match is None:
            continue
        steps.append(
            PlanStep(
                id=f"step-{len(steps) + 1}",
                kind="tool",
                objective=match.objective,
                tool_name=match.tool_name,
                tool_input=match.tool_input,
            )
        )

    if not steps:
        return ExecutionPlan(
            is_multi_step=False,
            steps=[PlanStep(id="step-1", kind="synthesis", objective=DIRECT_ANSWER_OBJECTIVE)],
        )

    tool_count = len(steps)
    steps.append(PlanStep(id=f"step-{tool_count + 1}", kind="synthesis", objective=SYNTHESIS_OBJECTIVE))
    plan = ExecutionPlan(is_multi_step=tool_count > 1, steps=steps)
    log.debug("planner.plan_built", tools=[s.tool_name for s in plan.tool_steps])
    return plan
