"""POST /api/chat - run one turn and return the consolidated answer."""

from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException

from claimai.core.context import CallerContext
from claimai.server.dependencies import get_orchestrator
from claimai.server.models import ChatRequest, ChatResponse

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model_by_alias=True, response_model_exclude_none=True)
def chat(
    body: ChatRequest,
    x_user_id: str | None = Header(default=None),
) -> ChatResponse:
    """
    Accepts { prompt, threadId?, context? } and returns { response, uiResource?, threadId }.

    The caller is identified by the X-User-Id header; without a threadId the
    conversation continues on ``session_<user>``. Declared sync so the
    blocking turn runs in FastAPI's threadpool.
    """
    if not body.prompt.strip():
        raise HTTPException(status_code=400, detail="prompt must not be empty")

    caller = CallerContext(user_id=x_user_id or "anonymous", attributes=body.context)
    result = get_orchestrator().handle(body.prompt, thread_id=body.thread_id, caller=caller)

    return ChatResponse(
        response=result.response,
        ui_resource=result.ui_resource.to_wire() if result.ui_resource else None,
        thread_id=result.thread_id,
    )
