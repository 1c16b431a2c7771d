"""
Chat Stream Service

Data chat over the ingested reports. The selected reports (and their
insights) are rendered into the system prompt; the model's reply is streamed
back as OpenAI-style chat-completion chunks and stored when complete.
"""

import json
import logging
from typing import AsyncIterator, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agents.prompts.data_chat import build_chat_system_prompt, build_report_context
from agents.prompts.llm import open_chat_stream
from database import get_async_db
from models import IngestedReport
from schemas.chat import ChatRequest
from services.chat_service import ChatService

logger = logging.getLogger(__name__)

CHAT_UNAVAILABLE = "Chat service unavailable"


def delta_chunk(content: str) -> str:
    """One streamed chunk in chat-completion format."""
    return json.dumps({"choices": [{"delta": {"content": content}}]})


class ChatStreamService:
    """Streams data chat replies."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.chat_service = ChatService(db)

    async def load_report_context(self, report_ids: Optional[List[str]]) -> str:
        """Context block for the selected reports; empty when none are selected or found."""
        if not report_ids:
            return ""
        result = await self.db.execute(
            select(IngestedReport)
            .where(IngestedReport.id.in_(report_ids))
            .options(selectinload(IngestedReport.insights))
        )
        reports = list(result.scalars().all())
        insights_by_report: Dict[str, List] = {r.id: list(r.insights) for r in reports}
        logger.info(f"Chat context: {len(reports)} of {len(report_ids)} selected reports found")
        return build_report_context(reports, insights_by_report)

    async def start(self, request: ChatRequest) -> AsyncIterator[str]:
        """
        Open the model stream.

        Raises:
            LLMGatewayError: before any chunk is produced (rate limited,
                credits exhausted, not configured, or unavailable)
        """
        context = await self.load_report_context(request.report_ids)
        messages = [m.model_dump() for m in request.messages]
        logger.info(f"Data chat: {len(messages)} messages, {len(request.report_ids or [])} reports")

        deltas = await open_chat_stream(
            build_chat_system_prompt(context),
            messages,
            task="data_chat",
            fallback_error=CHAT_UNAVAILABLE,
        )

        last_user = next((m for m in reversed(request.messages) if m.role == "user"), None)
        if last_user:
            await self.chat_service.add_message("user", last_user.content, report_ids=request.report_ids)
        return deltas

    async def stream(self, deltas: AsyncIterator[str], request: ChatRequest) -> AsyncIterator[str]:
        """Relay deltas as chunk JSON and store the assembled reply."""
        parts: List[str] = []
        async for content in deltas:
            parts.append(content)
            yield delta_chunk(content)

        reply = "".join(parts)
        if reply:
            await self.chat_service.add_message(
                "assistant",
                reply,
                report_ids=request.report_ids,
                metadata={"chunks": len(parts)},
            )


async def get_chat_stream_service(db: AsyncSession = Depends(get_async_db)) -> ChatStreamService:
    """Dependency injection provider."""
    return ChatStreamService(db)
