"""
Chat Service

Manages data chat persistence (one flat history of turns).
"""

import logging
from typing import List, Optional, Dict, Any
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import DataChatMessage
from fastapi import Depends
from database import get_async_db

logger = logging.getLogger(__name__)


class ChatService:
    """Service for stored chat turns."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_message(
        self,
        role: str,
        content: str,
        report_ids: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DataChatMessage:
        """Append a turn to the history."""
        message = DataChatMessage(
            role=role,
            content=content,
            report_ids=report_ids,
            message_metadata=metadata,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def get_messages(self, limit: int = 100, offset: int = 0) -> List[DataChatMessage]:
        """Most recent turns, returned oldest first."""
        stmt = (
            select(DataChatMessage)
            .order_by(desc(DataChatMessage.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(reversed(result.scalars().all()))


async def get_chat_service(db: AsyncSession = Depends(get_async_db)) -> ChatService:
    """Dependency injection provider."""
    return ChatService(db)
