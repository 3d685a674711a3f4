"""
Story priority aggregation tests.

Covers the pure decay/average math and the store-backed entry points
(scope filtering, expiry, write-back, disabled mode).
"""

from datetime import timedelta

import pytest

from stackrank.db import crud
from stackrank.models.schemas import PriorityLevel
from stackrank.services.feature_flags import set_priority_system_enabled
from stackrank.services.ranking import (
    StoryNotFoundError,
    aggregate_signals,
    calculate_story_priority,
    decay_weight,
    priority_from_score,
    refresh_project_priorities,
    update_story_priority,
)
from stackrank.services.ranking.scoring import hours_since, round_half_up

from tests.conftest import NOW, WORKSPACE_ID, add_signal, add_story, make_signal

P0, P1, P2, P3 = PriorityLevel.P0, PriorityLevel.P1, PriorityLevel.P2, PriorityLevel.P3


# =============================================================================
# Decay and thresholds
# =============================================================================

class TestDecayWeight:

    def test_fresh_signal_full_weight(self):
        assert decay_weight(0, 1.0) == 1.0
        assert decay_weight(0, 0.9) == 0.9

    def test_half_window(self):
        assert decay_weight(36, 1.0) == pytest.approx(0.5)

    def test_monotonic_and_floored(self):
        weights = [decay_weight(hours, 0.8) for hours in range(0, 400, 4)]

        assert all(a >= b for a, b in zip(weights, weights[1:]))
        assert min(weights) == pytest.approx(0.1 * 0.8)

    def test_old_signal_never_zero(self):
        assert decay_weight(80, 0.9) == pytest.approx(0.09)
        assert decay_weight(10_000, 1.0) == pytest.approx(0.1)

    def test_hours_since_never_negative(self):
        assert hours_since(NOW + timedelta(hours=3), NOW) == 0.0


class TestAggregateThresholds:

    @pytest.mark.parametrize("score,level", [
        (100, P0), (90, P0), (89, P1), (70, P1), (69, P2), (40, P2), (39, P3), (0, P3),
    ])
    def test_priority_from_score(self, score, level):
        assert priority_from_score(score) == level

    def test_round_half_up(self):
        assert round_half_up(72.5) == 73
        assert round_half_up(72.49) == 72
        assert round_half_up(0.5) == 1


# =============================================================================
# Pure aggregation
# =============================================================================

class TestAggregateSignals:

    def test_no_signals_is_neutral(self):
        result = aggregate_signals([], NOW)

        assert result.priority_level == P2
        assert result.priority_score == 50
        assert result.signal_count == 0

    def test_single_signal_uses_level_table(self):
        result = aggregate_signals([make_signal(P0, confidence=0.95)], NOW)

        assert result.priority_score == 95
        assert result.priority_level == P0
        assert result.signal_count == 1

    def test_equal_weights_average(self):
        signals = [make_signal(P0, confidence=0.95), make_signal(P2, confidence=0.95)]

        result = aggregate_signals(signals, NOW)

        # (95 + 50) / 2 = 72.5
        assert result.priority_score == 73
        assert result.priority_level == P1

    def test_signal_older_than_window_still_counts(self):
        fresh_p3 = make_signal(P3, age_hours=0, confidence=1.0)
        stale_p1 = make_signal(P1, age_hours=80, confidence=0.9)

        alone = aggregate_signals([fresh_p3], NOW)
        combined = aggregate_signals([fresh_p3, stale_p1], NOW)

        # (25 * 1.0 + 75 * 0.09) / 1.09
        assert alone.priority_score == 25
        assert combined.priority_score == 29
        assert combined.signal_count == 2

    def test_recent_signal_outweighs_old(self):
        signals = [
            make_signal(P0, age_hours=1, confidence=0.95),
            make_signal(P3, age_hours=60, confidence=0.95),
        ]

        result = aggregate_signals(signals, NOW)

        assert result.priority_score > 80

    def test_unclassified_signal_counts_as_neutral(self):
        result = aggregate_signals([make_signal(None, confidence=0.5)], NOW)
        assert result.priority_score == 50

    def test_zero_confidence_signals_are_neutral(self):
        result = aggregate_signals([make_signal(P0, confidence=0.0)], NOW)

        assert result.priority_score == 50
        assert result.signal_count == 1

    def test_custom_level_table(self):
        result = aggregate_signals(
            [make_signal(P1)], NOW, level_scores={P0: 100, P1: 91, P2: 50, P3: 10}
        )
        assert result.priority_level == P0


# =============================================================================
# Store-backed aggregation
# =============================================================================

class TestCalculateStoryPriority:

    def test_no_signals(self, project):
        story = add_story(project.id)

        result = calculate_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)

        assert (result.priority_level, result.priority_score, result.signal_count) == (P2, 50, 0)

    def test_uses_project_and_workspace_wide_signals(self, project, other_project):
        story = add_story(project.id)
        add_signal(P0, project_id=project.id)
        add_signal(P0, project_id=None)
        add_signal(P3, project_id=other_project.id)
        add_signal(P3, project_id=project.id, workspace_id="ws-other")

        result = calculate_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)

        assert result.signal_count == 2
        assert result.priority_level == P0

    def test_expired_signals_ignored(self, project):
        story = add_story(project.id)
        add_signal(P0, project_id=project.id, age_hours=100, expires_in_hours=72)
        add_signal(P3, project_id=project.id, age_hours=1)

        result = calculate_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)

        assert result.signal_count == 1
        assert result.priority_level == P3

    def test_never_expiring_signal_included(self, project):
        story = add_story(project.id)
        add_signal(P1, project_id=project.id, age_hours=500, expires_in_hours=None)

        result = calculate_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)

        assert result.signal_count == 1
        assert result.priority_score == 75

    def test_signal_pinned_to_other_story_ignored(self, project):
        story = add_story(project.id, "Fix login")
        other = add_story(project.id, "Dark mode")
        add_signal(P0, project_id=project.id, story_id=other.id)

        assert calculate_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW).signal_count == 0
        assert calculate_story_priority(other.id, WORKSPACE_ID, project.id, now=NOW).signal_count == 1

    def test_disabled_returns_stored_priority(self, project):
        story = add_story(project.id, priority_level=P1, priority_score=80)
        add_signal(P3, project_id=project.id)

        result = calculate_story_priority(story.id, WORKSPACE_ID, project.id, enabled=False, now=NOW)

        assert (result.priority_level, result.priority_score, result.signal_count) == (P1, 80, 0)


class TestUpdateStoryPriority:

    def test_writes_recomputed_priority(self, project):
        story = add_story(project.id, priority_level=P3, priority_score=10)
        add_signal(P0, project_id=project.id)

        result = update_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)

        stored = crud.get_story(story.id)
        assert stored.priority_level == result.priority_level == P0
        assert stored.priority_score == result.priority_score == 95

    def test_unknown_story(self, project):
        with pytest.raises(StoryNotFoundError):
            update_story_priority("missing", WORKSPACE_ID, project.id, now=NOW)

    def test_recompute_is_idempotent(self, project):
        story = add_story(project.id)
        add_signal(P1, project_id=project.id)

        first = update_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)
        second = update_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)

        assert first == second

    def test_workspace_toggle_off_leaves_story_untouched(self, project):
        story = add_story(project.id, priority_level=P3, priority_score=20)
        add_signal(P0, project_id=project.id)
        set_priority_system_enabled(WORKSPACE_ID, False)

        update_story_priority(story.id, WORKSPACE_ID, project.id, now=NOW)

        stored = crud.get_story(story.id)
        assert (stored.priority_level, stored.priority_score) == (P3, 20)

    def test_refresh_project_skips_closed_stories(self, project):
        open_story = add_story(project.id, "Open")
        done = add_story(project.id, "Done", status="completed", priority_score=10)
        add_signal(P1, project_id=project.id)

        count = refresh_project_priorities(project.id, WORKSPACE_ID, now=NOW)

        assert count == 1
        assert crud.get_story(open_story.id).priority_score == 75
        assert crud.get_story(done.id).priority_score == 10
