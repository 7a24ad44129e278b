from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)


class ChatMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    text: str
    is_from_user: bool
    created_at: datetime


class ChatHistoryResponse(BaseModel):
    messages: list[ChatMessageOut] = Field(default_factory=list)
