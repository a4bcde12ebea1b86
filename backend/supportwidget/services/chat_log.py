"""Append-only chat message log, scoped by tenant and visitor IP."""

import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from supportwidget.exceptions import ChatMessageNotFoundError, InvalidRequestError
from supportwidget.models import MESSAGE_REACTIONS, ChatMessage, utcnow
from supportwidget.repositories.base import ChatMessageRepository

logger = logging.getLogger(__name__)


class ChatLog:

    def __init__(self, repository: ChatMessageRepository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock

    async def record(
        self,
        tenant_id: int,
        session_id: str,
        ip_address: str,
        direction: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ChatMessage:
        message = await self.repository.add(
            tenant_id=tenant_id,
            session_id=session_id,
            ip_address=ip_address,
            direction=direction,
            content=content,
            timestamp=self.clock(),
            message_metadata=metadata or {},
        )
        logger.debug(f"Stored {direction} message {message.id} for session {session_id}")
        return message

    async def record_user_message(self, tenant_id: int, session_id: str, ip_address: str, content: str) -> ChatMessage:
        return await self.record(tenant_id, session_id, ip_address, "user", content)

    async def record_bot_message(
        self,
        tenant_id: int,
        session_id: str,
        ip_address: str,
        content: str,
        metadata: Dict[str, Any]
    ) -> ChatMessage:
        return await self.record(tenant_id, session_id, ip_address, "bot", content, metadata)

    async def history(self, tenant_id: int, ip_address: str, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        """
        One page of the visitor's conversation.

        Pages are counted from the newest message backwards; messages inside a
        page are returned oldest first so the widget can render them directly.
        """
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")
        page, limit = max(page, 1), max(limit, 1)

        rows, total = await self.repository.history(tenant_id, ip_address, (page - 1) * limit, limit)
        rows = list(reversed(rows))

        return {
            "messages": rows,
            "pagination": {
                "currentPage": page,
                "totalPages": math.ceil(total / limit),
                "totalMessages": total,
                "hasMore": page * limit < total,
            },
            "currentSessionId": await self.repository.latest_session_id(tenant_id, ip_address),
        }

    async def react(self, tenant_id: int, message_id: int, reaction: str) -> ChatMessage:
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")
        if reaction not in MESSAGE_REACTIONS:
            raise InvalidRequestError("Reaction must be helpful or not_helpful")

        message = await self.repository.get(tenant_id, message_id)
        if message is None:
            raise ChatMessageNotFoundError()

        message.reaction = reaction
        message.reacted_at = self.clock()
        return await self.repository.save(message)
