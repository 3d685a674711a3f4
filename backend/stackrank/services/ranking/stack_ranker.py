"""
Stack ranking of open stories.

Each story gets five factors (aggregated signal priority, launch impact,
inverted effort, age boost and recent user focus) which are blended into a
composite score with fixed weights. Stories are then sorted by that score,
the earlier-created (then earlier-inserted) story first on exact ties.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from stackrank.core.logging import get_logger
from stackrank.db import crud
from stackrank.models.schemas import (
    PriorityLevel, Project, RankedStory, RankingFactors, Story, StoryPriority
)
from stackrank.services.feature_flags import resolve_enabled
from stackrank.services.ranking.aggregator import calculate_story_priority
from stackrank.services.ranking.launch_impact import launch_impact
from stackrank.services.ranking.scoring import NEUTRAL_SCORE, days_since, round_half_up

logger = get_logger(__name__)


@dataclass(frozen=True)
class RankingWeights:
    """Composite score weights. Must sum to exactly 1."""
    priority_signal: float = 0.40
    launch_impact: float = 0.25
    effort: float = 0.15
    age: float = 0.10
    user_focus: float = 0.10

    def __post_init__(self):
        total = sum(Decimal(str(weight)) for weight in self.as_dict().values())
        if total != Decimal("1"):
            raise ValueError(f"Ranking weights must sum to 1.0, got {total}")

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


DEFAULT_WEIGHTS = RankingWeights()

# Lower effort ranks higher
EFFORT_SCORES: Mapping[str, int] = MappingProxyType({
    "low": 100,
    "medium": 70,
    "high": 40,
    "unknown": 50,
})

# (age in days below which the boost applies, boost)
AGE_BUCKETS: Tuple[Tuple[float, int], ...] = (
    (1, 0),
    (7, 10),
    (14, 20),
    (30, 30),
)
MAX_AGE_BOOST = 40

# (minimum signals in the focus window, score), highest first
FOCUS_SCORES: Tuple[Tuple[int, int], ...] = (
    (3, 100),
    (2, 75),
    (1, 50),
)
FOCUS_WINDOW_HOURS = 24

# Factors used when the priority system is disabled
FALLBACK_LAUNCH_IMPACT = 50
FALLBACK_EFFORT = 50


def effort_score(effort: Optional[str], table: Mapping[str, int] = EFFORT_SCORES) -> int:
    """Inverted effort estimate; anything unrecognised counts as unknown."""
    if not effort:
        return table["unknown"]
    return table.get(effort.strip().lower(), table["unknown"])


def age_score(
    created_at: datetime,
    now: Optional[datetime] = None,
    buckets: Sequence[Tuple[float, int]] = AGE_BUCKETS,
    max_boost: int = MAX_AGE_BOOST,
) -> int:
    """Small boost for older stories so nothing languishes forever."""
    age_days = days_since(created_at, now)
    for below_days, boost in buckets:
        if age_days < below_days:
            return boost
    return max_boost


def user_focus_score(recent_signals: int, table: Sequence[Tuple[int, int]] = FOCUS_SCORES) -> int:
    for minimum, score in table:
        if recent_signals >= minimum:
            return score
    return 0


def compute_composite_score(factors: RankingFactors, weights: RankingWeights = DEFAULT_WEIGHTS) -> int:
    return round_half_up(
        factors.priority_signal * weights.priority_signal
        + factors.launch_impact * weights.launch_impact
        + factors.effort * weights.effort
        + factors.age * weights.age
        + factors.user_focus * weights.user_focus
    )


def sort_ranked(stories: Iterable[RankedStory]) -> List[RankedStory]:
    """Composite score descending, earlier-created first on ties, ranks from 1."""
    ordered = sorted(stories, key=lambda s: (-s.composite_score, s.created_at, s.seq or 0))
    return [story.model_copy(update={"rank": i}) for i, story in enumerate(ordered, start=1)]


class StackRanker:
    """Ranks stories per project or across a workspace."""

    def __init__(
        self,
        weights: RankingWeights = DEFAULT_WEIGHTS,
        effort_scores: Mapping[str, int] = EFFORT_SCORES,
        age_buckets: Sequence[Tuple[float, int]] = AGE_BUCKETS,
        max_age_boost: int = MAX_AGE_BOOST,
        focus_scores: Sequence[Tuple[int, int]] = FOCUS_SCORES,
        focus_window_hours: float = FOCUS_WINDOW_HOURS,
    ):
        self.weights = weights
        self.effort_scores = MappingProxyType(dict(effort_scores))
        self.age_buckets = tuple(age_buckets)
        self.max_age_boost = max_age_boost
        self.focus_scores = tuple(focus_scores)
        self.focus_window_hours = focus_window_hours

    def factors_for(
        self,
        story: Story,
        signal_priority: StoryPriority,
        recent_signals: int,
        now: Optional[datetime] = None,
    ) -> RankingFactors:
        return RankingFactors(
            priority_signal=signal_priority.priority_score,
            launch_impact=launch_impact(story.advances_launch_stage, story.story_type),
            effort=effort_score(story.effort, self.effort_scores),
            age=age_score(story.created_at, now, self.age_buckets, self.max_age_boost),
            user_focus=user_focus_score(recent_signals, self.focus_scores),
        )

    def score_story(
        self,
        story: Story,
        project_name: str,
        signal_priority: StoryPriority,
        recent_signals: int,
        now: Optional[datetime] = None,
    ) -> RankedStory:
        factors = self.factors_for(story, signal_priority, recent_signals, now)
        return _ranked(
            story, project_name,
            level=signal_priority.priority_level,
            score=signal_priority.priority_score,
            composite=compute_composite_score(factors, self.weights),
            factors=factors,
        )

    def stored_score_story(self, story: Story, project_name: str) -> RankedStory:
        """Disabled mode: the stored score stands in for everything."""
        stored = story.priority_score if story.priority_score is not None else NEUTRAL_SCORE
        factors = RankingFactors(
            priority_signal=stored,
            launch_impact=FALLBACK_LAUNCH_IMPACT,
            effort=FALLBACK_EFFORT,
            age=0,
            user_focus=0,
        )
        return _ranked(
            story, project_name,
            level=story.priority_level or PriorityLevel.P2,
            score=stored,
            composite=stored,
            factors=factors,
        )

    def rank_project(
        self,
        project_id: str,
        workspace_id: str,
        limit: int = 50,
        enabled: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> List[RankedStory]:
        """Stack-ranked open stories of one project."""
        enabled = resolve_enabled(enabled, workspace_id)
        project = crud.get_project(project_id)
        project_name = project.name if project else ""
        stories = crud.list_open_stories(project_id, limit=limit)

        if not enabled:
            return sort_ranked(self.stored_score_story(story, project_name) for story in stories)

        now = now or datetime.now(timezone.utc)
        recent_signals = crud.count_active_signals(
            workspace_id,
            project_id=project_id,
            since=now - timedelta(hours=self.focus_window_hours),
            now=now,
        )

        ranked = []
        for story in stories:
            signal_priority = calculate_story_priority(
                story.id, workspace_id, project_id, enabled=True, now=now
            )
            ranked.append(self.score_story(story, project_name, signal_priority, recent_signals, now))

        logger.debug(f"Ranked {len(ranked)} stories for project {project_id}")
        return sort_ranked(ranked)

    def rank_global(
        self,
        workspace_id: str,
        limit: int = 100,
        enabled: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> List[RankedStory]:
        """Stack-ranked open stories across every project of a workspace."""
        enabled = resolve_enabled(enabled, workspace_id)
        projects: List[Project] = crud.list_projects(workspace_id)
        if not projects or limit <= 0:
            return []

        # Over-fetch per project so the merged list can still fill `limit`
        per_project = math.ceil(limit / len(projects)) + 10

        merged: List[RankedStory] = []
        for project in projects:
            try:
                merged.extend(self.rank_project(
                    project.id, workspace_id, limit=per_project, enabled=enabled, now=now
                ))
            except Exception as e:
                logger.error(f"Failed to rank project {project.id}: {e}", exc_info=True)

        logger.info(f"Global ranking for {workspace_id}: {len(merged)} stories from {len(projects)} projects")
        return sort_ranked(merged)[:limit]


def _ranked(
    story: Story,
    project_name: str,
    level: PriorityLevel,
    score: int,
    composite: int,
    factors: RankingFactors,
) -> RankedStory:
    return RankedStory(
        id=story.id,
        title=story.title,
        project_id=story.project_id,
        project_name=project_name,
        status=story.status,
        priority_level=level,
        priority_score=score,
        composite_score=composite,
        factors=factors,
        external_task_id=story.external_task_id,
        created_at=story.created_at,
        seq=story.seq,
    )


_default_ranker = StackRanker()


def get_stack_ranked_stories_by_project(
    project_id: str,
    workspace_id: str,
    limit: int = 50,
    enabled: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> List[RankedStory]:
    return _default_ranker.rank_project(project_id, workspace_id, limit, enabled, now)


def get_stack_ranked_stories_global(
    workspace_id: str,
    limit: int = 100,
    enabled: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> List[RankedStory]:
    return _default_ranker.rank_global(workspace_id, limit, enabled, now)
