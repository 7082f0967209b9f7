from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, status

from nabd.core.message_store import MessageStore
from nabd.core.prompt_profiles import get_prompt_profile, list_prompt_profiles
from nabd.dependencies import ServicesDep, get_message_store
from nabd.schemas.chat import (
    ChatTurn,
    MessageCreateRequest,
    MessageOut,
    MessagePairResponse,
    PromptProfileSummary,
)

log = structlog.get_logger()

router = APIRouter()

TURN_FAILED_REPLY = "Sorry, something went wrong while preparing the reply. Please try again."

ConversationId = Annotated[str, Path(min_length=1, max_length=128)]
MessageStoreDep = Annotated[MessageStore, Depends(get_message_store)]


def _resolve_system_prompt(body: MessageCreateRequest) -> str | None:
    if not body.system_prompt_id:
        return body.system_prompt
    profile = get_prompt_profile(body.system_prompt_id)
    if profile is None:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, f"Unknown systemPromptId: {body.system_prompt_id}"
        )
    return "\n\n".join(p for p in (profile.prompt, body.system_prompt) if p)


@router.get("/prompt-profiles", response_model=list[PromptProfileSummary])
async def prompt_profiles() -> list[PromptProfileSummary]:
    return list_prompt_profiles()


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageOut])
async def list_messages(conversation_id: ConversationId, store: MessageStoreDep) -> list[MessageOut]:
    return [MessageOut.model_validate(m) for m in await store.get_messages(conversation_id)]


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessagePairResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_message(
    conversation_id: ConversationId,
    body: MessageCreateRequest,
    store: MessageStoreDep,
    services: ServicesDep,
) -> MessagePairResponse:
    system_prompt = _resolve_system_prompt(body)

    history = [
        ChatTurn(role=m.role, content=m.content) for m in await store.get_messages(conversation_id)
    ]
    user_message = await store.create_message(conversation_id, "user", body.content)

    try:
        reply = await services.orchestrator.generate_reply(
            body.content,
            history=history,
            system_prompt=system_prompt,
            conversation_id=conversation_id,
        )
        reply_text = reply.content
    except Exception:
        log.exception("chat.turn_failed", conversation_id=conversation_id)
        reply_text = TURN_FAILED_REPLY

    assistant_message = await store.create_message(conversation_id, "assistant", reply_text)
    return MessagePairResponse(
        user_message=MessageOut.model_validate(user_message),
        assistant_message=MessageOut.model_validate(assistant_message),
    )
