from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nabd.models.message import Message

log = structlog.get_logger()


class MessageStore:
    """Conversation messages stored in the database, oldest first."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_messages(self, conversation_id: str) -> list[Message]:
        result = await self._db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at, Message.id)
        )
        return list(result.scalars().all())

    async def create_message(self, conversation_id: str, role: str, content: str) -> Message:
        message = Message(conversation_id=conversation_id, role=role, content=content)
        self._db.add(message)
        await self._db.commit()
        await self._db.refresh(message)
        log.debug("messages.created", conversation_id=conversation_id, role=role, id=message.id)
        return message
