"""Worker listing endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from claimai.server.dependencies import get_orchestrator
from claimai.server.models import WorkerInfo

router = APIRouter(tags=["workers"])


@router.get("/workers")
def list_workers() -> list[WorkerInfo]:
    """List workers with the tools each may use."""
    return [WorkerInfo(**info) for info in get_orchestrator().describe_workers()]
