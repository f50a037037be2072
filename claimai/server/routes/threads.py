"""Conversation inspection endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from claimai.server.dependencies import get_orchestrator
from claimai.server.models import MessageInfo, ThreadInfo

router = APIRouter(tags=["threads"])


@router.get("/threads")
def list_threads() -> list[str]:
    """Ids of the conversations currently held in memory."""
    return get_orchestrator().store.thread_ids()


@router.get("/threads/{thread_id}")
def get_thread(thread_id: str) -> ThreadInfo:
    """Get a conversation with all its messages."""
    conversation = get_orchestrator().store.peek(thread_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Thread not found")
    return ThreadInfo(
        thread_id=conversation.id,
        message_count=len(conversation.messages),
        messages=[
            MessageInfo(
                role=m.role,
                content=m.content,
                authored_by=m.authored_by,
                ts=m.ts.isoformat(),
            )
            for m in conversation.messages
        ],
    )


@router.delete("/threads/{thread_id}")
def delete_thread(thread_id: str) -> dict:
    """Forget a conversation."""
    if not get_orchestrator().store.delete(thread_id):
        raise HTTPException(status_code=404, detail="Thread not found")
    return {"ok": True}
