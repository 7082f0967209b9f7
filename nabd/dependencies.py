from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from nabd.config import Settings, settings
from nabd.connectors.llm import BaseLLMClient, create_llm_client
from nabd.core.executor import ToolRunner
from nabd.core.message_store import MessageStore
from nabd.core.orchestrator import Orchestrator
from nabd.core.trace_store import TraceStore
from nabd.db.session import get_db
from nabd.rag.retriever import KnowledgeBase
from nabd.skills.registry import SkillRegistry


@dataclass
class Services:
    """Process-scoped state shared by every request."""

    registry: SkillRegistry
    runner: ToolRunner
    knowledge: KnowledgeBase
    trace_store: TraceStore
    llm: BaseLLMClient
    orchestrator: Orchestrator


def build_services(config: Settings = settings) -> Services:
    registry = SkillRegistry(config.skills_dir, ttl_seconds=config.skills_discovery_ttl_seconds)
    runner = ToolRunner(registry)
    knowledge = KnowledgeBase(config.rag_store_path)
    trace_store = TraceStore(
        per_conversation=config.trace_history_per_conversation,
        global_capacity=config.trace_history_global,
    )
    llm = create_llm_client(config)
    orchestrator = Orchestrator(
        registry=registry,
        runner=runner,
        knowledge=knowledge,
        llm=llm,
        trace_store=trace_store,
        rag_top_k=config.rag_top_k,
        max_tool_rounds=config.llm_max_tool_rounds,
    )
    return Services(
        registry=registry,
        runner=runner,
        knowledge=knowledge,
        trace_store=trace_store,
        llm=llm,
        orchestrator=orchestrator,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_message_store(db: Annotated[AsyncSession, Depends(get_db)]) -> MessageStore:
    return MessageStore(db)


def require_debug_token(
    x_debug_token: Annotated[str | None, Header()] = None,
) -> None:
    if not settings.debug_token:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Not Found")
    if not x_debug_token or not hmac.compare_digest(x_debug_token, settings.debug_token):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid debug token")
