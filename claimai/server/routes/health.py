"""Health check endpoint."""

from fastapi import APIRouter

from claimai.server.dependencies import get_orchestrator

router = APIRouter()


@router.get("/health")
def health():
    """Health check."""
    return {"status": "ok", "service": "claimai", "backend": get_orchestrator().backend}
