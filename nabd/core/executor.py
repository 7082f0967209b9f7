from __future__ import annotations

import time
from typing import Any

import structlog

from nabd.schemas.plan import ExecutionPlan
from nabd.schemas.skill import SkillExecutionOutput
from nabd.schemas.trace import ToolRunTrace
from nabd.skills.registry import SkillRegistry

log = structlog.get_logger()


class ToolRunner:
    def __init__(self, registry: SkillRegistry):
        self._registry = registry

    async def run_tool(self, name: str, raw_input: Any = None) -> SkillExecutionOutput:
        return await self._registry.run_skill(name, raw_input or {})

    async def run_step(self, step_id: str, name: str, raw_input: Any = None) -> ToolRunTrace:
        """Run one tool and record the outcome. Failures are captured, never raised."""
        tool_input = dict(raw_input) if isinstance(raw_input, dict) else {}
        started = time.monotonic()

        try:
            output = await self.run_tool(name, tool_input)
        except Exception as exc:
            latency_ms = int((time.monotonic() - started) * 1000)
            log.exception("executor.step_failed", step=step_id, tool=name, latency_ms=latency_ms)
            return ToolRunTrace(
                step_id=step_id,
                tool_name=name,
                input=tool_input,
                error=str(exc) or exc.__class__.__name__,
                latency_ms=latency_ms,
            )

        latency_ms = int((time.monotonic() - started) * 1000)
        log.info("executor.step_ok", step=step_id, tool=name, latency_ms=latency_ms)
        return ToolRunTrace(
            step_id=step_id,
            tool_name=name,
            input=tool_input,
            output_text=output.text,
            latency_ms=latency_ms,
        )

    async def execute_plan(self, plan: ExecutionPlan) -> list[ToolRunTrace]:
        """Await every tool step in order; a failed step does not stop the plan."""
        runs: list[ToolRunTrace] = []
        for step in plan.tool_steps:
            runs.append(await self.run_step(step.id, step.tool_name or "", step.tool_input))
        return runs
