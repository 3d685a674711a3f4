"""
Workspace-level toggle for the priority system.

When off, classification returns the default result and ranking falls back
to each story's stored priority score.
"""
from typing import Optional

from stackrank.core.config import settings
from stackrank.db import crud


def is_priority_system_enabled(workspace_id: Optional[str] = None) -> bool:
    """The workspace's stored toggle, else the global PRIORITY_SYSTEM_ENABLED."""
    if workspace_id:
        stored = crud.get_workspace_priority_enabled(workspace_id)
        if stored is not None:
            return stored
    return settings.priority_system_enabled


def set_priority_system_enabled(workspace_id: str, enabled: bool) -> None:
    crud.set_workspace_priority_enabled(workspace_id, enabled)


def resolve_enabled(enabled: Optional[bool], workspace_id: Optional[str]) -> bool:
    """An explicit argument wins over the stored configuration."""
    if enabled is not None:
        return enabled
    return is_priority_system_enabled(workspace_id)
