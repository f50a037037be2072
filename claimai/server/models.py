"""Pydantic models for the API layer."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """POST /api/chat request body."""

    prompt: str = Field(..., description="The user's request")
    thread_id: str | None = Field(default=None, alias="threadId", description="Conversation to continue")
    context: dict[str, Any] = Field(default_factory=dict, description="Opaque attributes forwarded to tools")

    model_config = {"populate_by_name": True}


class ChatResponse(BaseModel):
    """POST /api/chat response body."""

    response: str
    ui_resource: dict[str, Any] | None = Field(default=None, alias="uiResource")
    thread_id: str = Field(..., alias="threadId")

    model_config = {"populate_by_name": True}


class WorkerInfo(BaseModel):
    """Worker summary for list responses."""

    name: str
    description: str
    tools: list[str]


class MessageInfo(BaseModel):
    """Message in a thread."""

    role: str
    content: str
    authored_by: str | None = None
    ts: str


class ThreadInfo(BaseModel):
    """A conversation with its messages."""

    thread_id: str
    message_count: int
    messages: list[MessageInfo]
