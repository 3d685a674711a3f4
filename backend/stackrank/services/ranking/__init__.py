# Ranking module - signal aggregation, launch impact and stack ranking
from .scoring import (
    LEVEL_SCORES,
    AGGREGATE_LEVEL_THRESHOLDS,
    decay_weight,
    priority_from_score,
    round_half_up,
)
from .aggregator import (
    StoryNotFoundError,
    aggregate_signals,
    calculate_story_priority,
    update_story_priority,
    refresh_project_priorities,
)
from .launch_impact import (
    LAUNCH_ADVANCING_KEYWORDS,
    LAUNCH_CRITICAL_STORY_TYPES,
    launch_impact,
    compute_advances_launch_stage,
    update_launch_stage_flags,
)
from .stack_ranker import (
    RankingWeights,
    DEFAULT_WEIGHTS,
    StackRanker,
    compute_composite_score,
    get_stack_ranked_stories_by_project,
    get_stack_ranked_stories_global,
)

__all__ = [
    "LEVEL_SCORES",
    "AGGREGATE_LEVEL_THRESHOLDS",
    "decay_weight",
    "priority_from_score",
    "round_half_up",
    "StoryNotFoundError",
    "aggregate_signals",
    "calculate_story_priority",
    "update_story_priority",
    "refresh_project_priorities",
    "LAUNCH_ADVANCING_KEYWORDS",
    "LAUNCH_CRITICAL_STORY_TYPES",
    "launch_impact",
    "compute_advances_launch_stage",
    "update_launch_stage_flags",
    "RankingWeights",
    "DEFAULT_WEIGHTS",
    "StackRanker",
    "compute_composite_score",
    "get_stack_ranked_stories_by_project",
    "get_stack_ranked_stories_global",
]
