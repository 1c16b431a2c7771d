"""
Data chat schemas.

The stream itself is OpenAI chat-completion chunks on `data:` lines, terminated by `data: [DONE]`.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime


class ChatMessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request model for the data chat stream"""
    messages: List[ChatMessageIn] = Field(min_length=1)
    report_ids: Optional[List[str]] = Field(default=None, alias="reportIds")

    model_config = {"populate_by_name": True}


class ChatMessageSchema(BaseModel):
    """A persisted chat turn"""
    id: str
    role: str
    content: str
    report_ids: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="message_metadata")
    created_at: datetime

    model_config = {"from_attributes": True}


class ErrorEvent(BaseModel):
    """Sent on the stream when the model fails after streaming began"""
    error: str
