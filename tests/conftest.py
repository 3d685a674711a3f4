"""
Pytest configuration for StackRank tests.

Every test that touches the store gets its own SQLite file; the LLM key is
always cleared so nothing reaches the network.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional

from stackrank.core.config import settings
from stackrank.db import crud
from stackrank.db.database import init_database
from stackrank.models.schemas import (
    PriorityLevel, PrioritySignal, SignalSource, SignalType
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
WORKSPACE_ID = "ws-test"


# -----------------------------------------------------------------------------
# Environment
# -----------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def no_llm_key(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "priority_system_enabled", True)


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Point the store at a fresh temporary database."""
    monkeypatch.setattr(settings, "db_path", str(tmp_path / "stackrank.db"))
    init_database()
    return settings.db_path


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------
def make_signal(
    level: Optional[PriorityLevel],
    age_hours: float = 0.0,
    confidence: float = 0.95,
    project_id: Optional[str] = None,
    story_id: Optional[str] = None,
    expires_in_hours: Optional[float] = 72.0,
    workspace_id: str = WORKSPACE_ID,
    source: SignalSource = SignalSource.SLACK,
) -> PrioritySignal:
    created_at = NOW - timedelta(hours=age_hours)
    return PrioritySignal(
        workspace_id=workspace_id,
        project_id=project_id,
        story_id=story_id,
        source=source,
        signal_type=SignalType.USER_MENTION,
        raw_text=f"{level.value if level else 'unclassified'} signal",
        priority=level,
        confidence=confidence,
        is_explicit=False,
        expires_at=None if expires_in_hours is None else created_at + timedelta(hours=expires_in_hours),
        created_at=created_at,
    )


def add_signal(level, **kwargs) -> str:
    return crud.append_signal(make_signal(level, **kwargs))


def add_story(project_id: str, title: str = "Story", age_hours: float = 2.0, **kwargs):
    return crud.create_story(
        project_id, title, created_at=NOW - timedelta(hours=age_hours), **kwargs
    )


@pytest.fixture
def project(db):
    return crud.create_project(WORKSPACE_ID, "Warmstart", project_id="proj-a")


@pytest.fixture
def other_project(db):
    return crud.create_project(WORKSPACE_ID, "ShipShow", project_id="proj-b")


@pytest.fixture
def stub_llm():
    """Build a classify_text replacement that returns a canned reply."""
    def factory(reply=None, error: Optional[Exception] = None):
        calls = []

        def classify(text):
            calls.append(text)
            if error is not None:
                raise error
            return reply

        classify.calls = calls
        return classify
    return factory
