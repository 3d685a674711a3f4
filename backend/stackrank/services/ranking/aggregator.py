"""
Story priority aggregation.

Combines every active signal visible to a story's project into one
decayed, confidence-weighted score, then re-derives the level from it.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from stackrank.core.logging import get_logger
from stackrank.db import crud
from stackrank.models.schemas import PriorityLevel, PrioritySignal, StoryPriority
from stackrank.services.feature_flags import resolve_enabled
from stackrank.services.ranking.scoring import (
    AGGREGATE_LEVEL_THRESHOLDS,
    LEVEL_SCORES,
    NEUTRAL_SCORE,
    decay_weight,
    hours_since,
    level_score,
    priority_from_score,
    round_half_up,
)

logger = get_logger(__name__)


class StoryNotFoundError(LookupError):
    """Raised when a story ID does not exist."""

    def __init__(self, story_id: str):
        super().__init__(f"Story not found: {story_id}")
        self.story_id = story_id


def neutral_priority() -> StoryPriority:
    return StoryPriority(priority_level=PriorityLevel.P2, priority_score=NEUTRAL_SCORE, signal_count=0)


def aggregate_signals(
    signals: Iterable[PrioritySignal],
    now: Optional[datetime] = None,
    level_scores: Mapping[PriorityLevel, int] = LEVEL_SCORES,
    thresholds: Sequence[Tuple[int, PriorityLevel]] = AGGREGATE_LEVEL_THRESHOLDS,
) -> StoryPriority:
    """Decayed weighted average of signal levels. No signals gives P2/50."""
    signals = list(signals)
    if not signals:
        return neutral_priority()

    total_weight = 0.0
    weighted_score = 0.0
    for signal in signals:
        weight = decay_weight(hours_since(signal.created_at, now), signal.confidence)
        weighted_score += level_score(signal.priority, level_scores) * weight
        total_weight += weight

    score = round_half_up(weighted_score / total_weight) if total_weight > 0 else NEUTRAL_SCORE

    return StoryPriority(
        priority_level=priority_from_score(score, thresholds),
        priority_score=score,
        signal_count=len(signals),
    )


def stored_story_priority(story_id: str) -> StoryPriority:
    """The priority already on the story, used when the system is disabled."""
    story = crud.get_story(story_id)
    if story is None or story.priority_score is None:
        return neutral_priority()

    level = story.priority_level or priority_from_score(story.priority_score)
    return StoryPriority(priority_level=level, priority_score=story.priority_score, signal_count=0)


def calculate_story_priority(
    story_id: str,
    workspace_id: str,
    project_id: str,
    enabled: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> StoryPriority:
    """Aggregate priority for one story from its project's active signals."""
    if not resolve_enabled(enabled, workspace_id):
        return stored_story_priority(story_id)

    signals = crud.find_active_signals(
        workspace_id, project_id=project_id, story_id=story_id, now=now
    )
    return aggregate_signals(signals, now)


def update_story_priority(
    story_id: str,
    workspace_id: str,
    project_id: str,
    enabled: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> StoryPriority:
    """
    Recompute a story's priority and write it back.

    No lock or version check: concurrent updates are last-writer-wins, and
    running the update again converges on the current signals.
    """
    if crud.get_story(story_id) is None:
        raise StoryNotFoundError(story_id)

    if not resolve_enabled(enabled, workspace_id):
        logger.debug(f"Priority system disabled, keeping stored priority for {story_id}")
        return stored_story_priority(story_id)

    priority = calculate_story_priority(story_id, workspace_id, project_id, enabled=True, now=now)
    crud.update_story_priority(story_id, priority.priority_level, priority.priority_score)

    logger.info(
        f"Story {story_id} priority updated to {priority.priority_level.value} "
        f"({priority.priority_score}) from {priority.signal_count} signals"
    )
    return priority


def refresh_project_priorities(
    project_id: str,
    workspace_id: str,
    enabled: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> int:
    """Update every open story of a project. Returns the number of stories."""
    stories = crud.list_open_stories(project_id, limit=-1)
    for story in stories:
        update_story_priority(story.id, workspace_id, project_id, enabled=enabled, now=now)
    return len(stories)
