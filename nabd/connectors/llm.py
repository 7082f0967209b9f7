from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from nabd.config import Settings, settings as default_settings

log = structlog.get_logger()

NO_REPLY_FALLBACK = "Sorry, I could not generate a reply."
MAX_TOOL_ROUNDS_LIMIT = 3
MAX_TOOL_CALLS_PER_ROUND = 4
TOOL_REJECTED_STATUSES = (400, 422)


# ---------------------------------------------------------------------------
# Unified response types
# ---------------------------------------------------------------------------

@dataclass
class ToolCall:
    """A single tool call extracted from the LLM response."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolCallOutcome:
    name: str
    output: str | None = None
    error: str | None = None


@dataclass
class LLMResponse:
    """Provider-agnostic LLM response."""

    text: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    raw: Any = None  # original provider response


ToolCallHandler = Callable[[ToolCall], Awaitable[ToolCallOutcome]]


class LLMProviderError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def summarize_tool_outcomes(outcomes: Sequence[ToolCallOutcome]) -> str:
    lines = ["Tool results:"]
    for outcome in outcomes:
        if outcome.error:
            lines.append(f"- {outcome.name}: error: {outcome.error}")
        else:
            lines.append(f"- {outcome.name}: {outcome.output or 'no output'}")
    return "\n".join(lines)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        log.warning("llm.tool_arguments_invalid", arguments=str(raw)[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseLLMClient(ABC):
    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when the provider credential is present."""

    @abstractmethod
    async def _complete(
        self,
        messages: list[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> LLMResponse:
        """One provider request. Raises ``LLMProviderError`` on failure."""

    async def generate_reply(
        self,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
        on_tool_call: ToolCallHandler | None = None,
        max_tool_rounds: int = 2,
    ) -> str:
        """Run the bounded tool-calling loop and return the final reply text.

        ``tools`` are provider-neutral definitions (name, description,
        input_schema). A request carrying tools that the provider rejects is
        retried once without them, and tools stay off for the rest of the turn.
        """
        rounds = max(0, min(MAX_TOOL_ROUNDS_LIMIT, max_tool_rounds))
        transcript = list(messages)
        tools_enabled = bool(tools) and on_tool_call is not None
        last_content: str | None = None
        round_index = 0

        while True:
            use_tools = tools_enabled and round_index < rounds
            try:
                response = await self._complete(transcript, tools if use_tools else None)
            except LLMProviderError as exc:
                if not use_tools or exc.status_code not in TOOL_REJECTED_STATUSES:
                    raise
                log.warning("llm.tools_rejected", status=exc.status_code, error=str(exc))
                tools_enabled = False
                use_tools = False
                response = await self._complete(transcript, None)

            if response.text and response.text.strip():
                last_content = response.text.strip()

            if not use_tools or not response.tool_calls:
                break

            calls = response.tool_calls[:MAX_TOOL_CALLS_PER_ROUND]
            outcomes = [await on_tool_call(call) for call in calls]
            transcript.append(
                {
                    "role": "assistant",
                    "content": response.text
                    or "Calling tools: " + ", ".join(call.name for call in calls),
                }
            )
            transcript.append({"role": "system", "content": summarize_tool_outcomes(outcomes)})
            round_index += 1
            log.debug("llm.tool_round", round=round_index, calls=[c.name for c in calls])

        return last_content or NO_REPLY_FALLBACK


# ---------------------------------------------------------------------------
# Anthropic implementation
# ---------------------------------------------------------------------------

class AnthropicLLMClient(BaseLLMClient):
    """Anthropic Messages API.

    Leading system messages become the ``system`` parameter; system messages
    later in the transcript (tool summaries) are sent as user turns.
    """

    def __init__(self, config: Settings = default_settings) -> None:
        self._api_key = config.anthropic_api_key
        self._model = config.anthropic_model
        self._max_tokens = config.anthropic_max_tokens
        self._client = None
        if self._api_key:
            from anthropic import AsyncAnthropic

            self._client = AsyncAnthropic(
                api_key=self._api_key, timeout=config.llm_timeout_seconds, max_retries=0
            )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @staticmethod
    def _split_messages(messages: list[dict[str, Any]]) -> tuple[str, list[dict[str, Any]]]:
        system_parts: list[str] = []
        converted: list[dict[str, Any]] = []
        for msg in messages:
            role, content = msg.get("role"), msg.get("content") or ""
            if role == "system" and not converted:
                system_parts.append(content)
            elif role == "system":
                converted.append({"role": "user", "content": content})
            elif role in ("user", "assistant"):
                converted.append({"role": role, "content": content})
        return "\n\n".join(system_parts), converted

    async def _complete(
        self,
        messages: list[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> LLMResponse:
        import anthropic

        if self._client is None:
            raise LLMProviderError("ANTHROPIC_API_KEY is not configured")

        system_prompt, msgs = self._split_messages(messages)
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": msgs,
            "temperature": 0.3,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if tools:
            kwargs["tools"] = [
                {"name": t["name"], "description": t["description"], "input_schema": t["input_schema"]}
                for t in tools
            ]
            kwargs["tool_choice"] = {"type": "auto"}

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise LLMProviderError(
                f"Model API responded with status {exc.status_code}", exc.status_code
            ) from exc
        except anthropic.APIError as exc:
            raise LLMProviderError(f"Model API request failed: {exc.__class__.__name__}") from exc
        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=_parse_arguments(block.input))
                )

        text = "\n".join(text_parts) if text_parts else None

        log.debug(
            "llm.anthropic.response",
            content=text[:200] if text else None,
            tool_calls=len(tool_calls),
            stop_reason=response.stop_reason,
        )
        return LLMResponse(text=text, tool_calls=tool_calls, raw=response)


# ---------------------------------------------------------------------------
# OpenAI-compatible implementation (NVIDIA integrate endpoint by default)
# ---------------------------------------------------------------------------

class OpenAILLMClient(BaseLLMClient):
    def __init__(self, config: Settings = default_settings) -> None:
        self._api_key = config.openai_api_key
        self._model = config.openai_model
        self._client = None
        if self._api_key:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=config.openai_base_url or None,
                timeout=config.llm_timeout_seconds,
                max_retries=0,
            )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def _complete(
        self,
        messages: list[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> LLMResponse:
        import openai

        if self._client is None:
            raise LLMProviderError("OPENAI_API_KEY / NVIDIA_API_KEY is not configured")

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "stream": False,
            "temperature": 0.3,
        }
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t["name"],
                        "description": t["description"],
                        "parameters": t["input_schema"],
                    },
                }
                for t in tools
            ]
            kwargs["tool_choice"] = "auto"

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            raise LLMProviderError(
                f"Model API responded with status {exc.status_code}", exc.status_code
            ) from exc
        except openai.APIError as exc:
            raise LLMProviderError(f"Model API request failed: {exc.__class__.__name__}") from exc

        if not response.choices:
            return LLMResponse(raw=response)
        return self._parse_response(response.choices[0].message)

    def _parse_response(self, msg: Any) -> LLMResponse:
        tool_calls: list[ToolCall] = []
        if msg.tool_calls:
            for tc in msg.tool_calls:
                tool_calls.append(
                    ToolCall(
                        id=tc.id,
                        name=tc.function.name,
                        arguments=_parse_arguments(tc.function.arguments),
                    )
                )

        log.debug(
            "llm.openai.response",
            content=msg.content[:200] if msg.content else None,
            tool_calls=len(tool_calls),
        )
        return LLMResponse(text=msg.content, tool_calls=tool_calls, raw=msg)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_llm_client(config: Settings = default_settings) -> BaseLLMClient:
    """Create an LLM client based on the configured provider."""
    if config.llm_provider == "anthropic":
        return AnthropicLLMClient(config)
    return OpenAILLMClient(config)
