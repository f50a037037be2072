"""
Default worker templates bundled with claimai.

Used when the configuration file does not define its own ``workers`` list.
Each template gives a role-specific system prompt and tool allow-list.
"""

from pathlib import Path
from typing import Any

import yaml

from claimai.models.config import WorkerConfig

WORKERS_DIR = Path(__file__).parent

# Role metadata for display
WORKER_ROLES: dict[str, dict[str, Any]] = {
    "triage_worker": {"description": "Mail and communication triage"},
    "claims_data_worker": {"description": "Claims data lookups"},
    "general": {"description": "General-purpose answer writer"},
}


def get_worker_template(role: str) -> str:
    """
    Read a bundled worker template as a raw YAML string.

    Raises ValueError if role is not recognized.
    """
    if role not in WORKER_ROLES:
        available = ", ".join(WORKER_ROLES.keys())
        raise ValueError(f"Unknown worker role '{role}'. Available: {available}")

    return (WORKERS_DIR / f"{role}.yaml").read_text()


def load_default_workers() -> list[WorkerConfig]:
    """Parse every bundled template, in WORKER_ROLES order."""
    return [WorkerConfig(**yaml.safe_load(get_worker_template(role))) for role in WORKER_ROLES]
