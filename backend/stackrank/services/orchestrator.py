"""
Entry points used by the API layer, the issue-tracker webhook handler and the
chat/scan ingestion paths.

Flow: raw signal -> classifier -> signal store -> aggregator -> stack ranker.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from stackrank.core.config import settings
from stackrank.core.logging import get_logger
from stackrank.db import crud
from stackrank.models.schemas import (
    ClassificationResult, ClassifyResponse, ManualOverrideResponse, PriorityLevel,
    PriorityOverview, PrioritySignal, PrioritySummary, ProcessSignalResponse, SignalInput,
    SignalSource, SignalType
)
from stackrank.services.classification import (
    ExplicitPatternStrategy, SignalClassifier, default_classification, get_classifier
)
from stackrank.services.feature_flags import resolve_enabled
from stackrank.services.ranking import StoryNotFoundError

logger = get_logger(__name__)

OVERVIEW_SIGNAL_LIMIT = 50
OVERVIEW_STORY_LIMIT = 100
MANUAL_OVERRIDE_CONFIDENCE = 1.0


def classify_priority(
    signal: SignalInput,
    classifier: Optional[SignalClassifier] = None,
    enabled: Optional[bool] = None,
) -> ClassificationResult:
    """Classify one signal; the default result when the system is disabled."""
    if not resolve_enabled(enabled, signal.workspace_id or None):
        return default_classification()

    classifier = classifier or get_classifier()
    return classifier.classify(signal.raw_content, signal.source, signal.metadata)


def store_signal(
    signal: SignalInput,
    classification: ClassificationResult,
    now: Optional[datetime] = None,
) -> str:
    """Append a classified signal that expires after the ambient TTL."""
    now = now or datetime.now(timezone.utc)
    record = PrioritySignal(
        workspace_id=signal.workspace_id,
        project_id=signal.project_id,
        source=signal.source,
        signal_type=signal.signal_type,
        raw_text=signal.raw_content,
        priority=classification.priority_level,
        confidence=classification.confidence,
        is_explicit=classification.method == ExplicitPatternStrategy.name,
        expires_at=now + timedelta(hours=settings.signal_ttl_hours),
        created_at=now,
    )
    signal_id = crud.append_signal(record)

    logger.info(
        f"Stored signal {signal_id}: {classification.priority_level.value} "
        f"({classification.priority_score}) via {classification.method}"
    )
    return signal_id


def process_priority_signal(
    signal: SignalInput,
    classifier: Optional[SignalClassifier] = None,
    enabled: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> ProcessSignalResponse:
    """Classify and store a new signal."""
    classification = classify_priority(signal, classifier, enabled)
    signal_id = store_signal(signal, classification, now)
    return ProcessSignalResponse(signal_id=signal_id, classification=classification)


def classify_priority_signal(
    text: str,
    classifier: Optional[SignalClassifier] = None,
    enabled: Optional[bool] = None,
    workspace_id: Optional[str] = None,
) -> ClassifyResponse:
    """Classification only, nothing is stored."""
    signal = SignalInput(
        source=SignalSource.DASHBOARD,
        signal_type=SignalType.LLM_CLASSIFIED,
        raw_content=text,
        workspace_id=workspace_id or "",
    )
    result = classify_priority(signal, classifier, enabled)
    return ClassifyResponse(
        priority_level=result.priority_level,
        priority_score=result.priority_score,
        reasoning=result.reasoning,
    )


def set_manual_priority(
    story_id: str,
    priority_level: PriorityLevel,
    workspace_id: str,
    source: SignalSource = SignalSource.DASHBOARD,
    now: Optional[datetime] = None,
) -> ManualOverrideResponse:
    """
    Dashboard override of one story's priority.

    Writes the level with an in-band score and appends an explicit signal
    pinned to the story, so later recomputation keeps honouring it.
    """
    story = crud.get_story(story_id)
    if story is None:
        raise StoryNotFoundError(story_id)

    level = PriorityLevel(priority_level)
    classification = ExplicitPatternStrategy().match(f"[{level.value}] Manual override")
    if classification is None or classification.priority_level != level:
        raise ValueError(f"Override marker for {level.value} did not match its pattern")

    crud.update_story_priority(story_id, level, classification.priority_score)

    now = now or datetime.now(timezone.utc)
    signal_id = crud.append_signal(PrioritySignal(
        workspace_id=workspace_id,
        project_id=story.project_id,
        story_id=story_id,
        source=source,
        signal_type=SignalType.PRIORITY_SET,
        raw_text=f"Manual priority set to {level.value} for story: {story.title}",
        priority=level,
        confidence=MANUAL_OVERRIDE_CONFIDENCE,
        is_explicit=True,
        expires_at=now + timedelta(days=settings.override_ttl_days),
        created_at=now,
    ))

    logger.info(f"Manual override: story {story_id} set to {level.value} ({classification.priority_score})")
    return ManualOverrideResponse(story=crud.get_story(story_id), signal_id=signal_id)


def get_priority_overview(
    workspace_id: str,
    project_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PriorityOverview:
    """Active signals plus active stories grouped by stored level."""
    signals = crud.find_active_signals(
        workspace_id, project_id=project_id, now=now, limit=OVERVIEW_SIGNAL_LIMIT
    )
    stories = crud.list_active_stories(workspace_id, project_id, limit=OVERVIEW_STORY_LIMIT)

    by_priority = {
        level.value: [s for s in stories if s.priority_level == level]
        for level in PriorityLevel
    }

    return PriorityOverview(
        signals=signals,
        stories=stories,
        by_priority=by_priority,
        summary=PrioritySummary(
            total_signals=len(signals),
            total_stories=len(stories),
            p0_count=len(by_priority["P0"]),
            p1_count=len(by_priority["P1"]),
            p2_count=len(by_priority["P2"]),
            p3_count=len(by_priority["P3"]),
        ),
    )
