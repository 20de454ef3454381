"""API request and response schemas."""
from typing import Any, Optional
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    # Loosely typed so a missing or non-text message gets the localized 400 reply
    message: Optional[Any] = Field(default=None, description="The user's chat message")
    session_id: Optional[str] = Field(default=None, description="Client-supplied conversation id")
    user_id: Optional[str] = Field(default=None, description="Platform user id, if logged in")


class ChatResponse(BaseModel):
    reply: str = Field(..., description="Formatted HTML reply")
    session_id: str = Field(..., description="Conversation id to send with the next message")


class ClickEvent(BaseModel):
    url: str = Field(..., description="Course URL that was clicked")
    title: Optional[str] = None
    session_id: Optional[str] = None
