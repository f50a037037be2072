"""FastAPI dependency wiring: the process-wide orchestrator."""

from __future__ import annotations

import threading

from claimai.core.orchestrator import Orchestrator, create_orchestrator
from claimai.models.config import load_config

# Module-level singleton
_orchestrator: Orchestrator | None = None
_orchestrator_lock = threading.Lock()


def get_orchestrator() -> Orchestrator:
    """Get or build the global orchestrator from the environment's configuration."""
    global _orchestrator
    if _orchestrator is None:
        with _orchestrator_lock:
            if _orchestrator is None:
                _orchestrator = create_orchestrator(load_config())
    return _orchestrator


def set_orchestrator(orchestrator: Orchestrator | None) -> None:
    """Install a pre-built orchestrator (used by `claimai serve` and tests)."""
    global _orchestrator
    with _orchestrator_lock:
        _orchestrator = orchestrator


def reset_orchestrator() -> None:
    """Close and forget the global orchestrator."""
    global _orchestrator
    with _orchestrator_lock:
        if _orchestrator is not None:
            _orchestrator.close()
        _orchestrator = None
