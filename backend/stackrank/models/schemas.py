from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum


# ============================================================================
# Enumerations
# ============================================================================

class PriorityLevel(str, Enum):
    """Priority labels for stories and signals. P0 = highest urgency."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class SignalSource(str, Enum):
    """Where a priority signal came from."""
    SLACK = "slack"
    LINEAR = "linear"
    DASHBOARD = "dashboard"
    SCAN = "scan"
    ORCHESTRATOR = "orchestrator"


class SignalType(str, Enum):
    EXPLICIT_PRIORITY = "explicit_priority"
    EMOJI_REACTION = "emoji_reaction"
    LLM_CLASSIFIED = "llm_classified"
    SCAN_FINDING = "scan_finding"
    USER_MENTION = "user_mention"
    PRIORITY_SET = "priority_set"


class StoryStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# Stories in these states never get ranked
CLOSED_STATUSES = frozenset({
    StoryStatus.COMPLETED.value,
    StoryStatus.REJECTED.value,
    StoryStatus.CANCELLED.value,
})

# Stories shown on the priorities overview
ACTIVE_STATUSES = (
    StoryStatus.PENDING.value,
    StoryStatus.APPROVED.value,
    StoryStatus.IN_PROGRESS.value,
)


# ============================================================================
# Signal Models
# ============================================================================

class SignalInput(BaseModel):
    """A raw, not yet classified priority signal."""
    source: SignalSource
    signal_type: SignalType = SignalType.USER_MENTION
    raw_content: str
    workspace_id: str
    project_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ClassificationResult(BaseModel):
    """Outcome of classifying one raw signal."""
    model_config = ConfigDict(frozen=True)

    priority_level: PriorityLevel
    priority_score: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    method: str = "default"


class PrioritySignal(BaseModel):
    """A classified, timestamped observation about priority. Never mutated."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    workspace_id: str
    project_id: Optional[str] = None
    story_id: Optional[str] = None
    source: SignalSource
    signal_type: SignalType
    raw_text: Optional[str] = None
    priority: Optional[PriorityLevel] = None
    confidence: float = Field(ge=0.0, le=1.0)
    is_explicit: bool = False
    expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# Story Models
# ============================================================================

class Project(BaseModel):
    id: str
    workspace_id: str
    name: str


class Story(BaseModel):
    """A trackable unit of work belonging to one project."""
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    status: str = StoryStatus.PENDING.value
    priority_level: Optional[PriorityLevel] = None
    priority_score: Optional[int] = None
    advances_launch_stage: Optional[bool] = None
    effort: Optional[str] = None
    story_type: Optional[str] = None
    external_task_id: Optional[str] = None
    created_at: datetime
    # Store insertion order; breaks ties between equal created_at values
    seq: Optional[int] = Field(default=None, exclude=True)


class StoryPriority(BaseModel):
    """Aggregate priority computed from a project's active signals."""
    priority_level: PriorityLevel
    priority_score: int
    signal_count: int


# ============================================================================
# Ranking Models
# ============================================================================

class RankingFactors(BaseModel):
    """The five named inputs to the composite score."""
    priority_signal: int
    launch_impact: int
    effort: int
    age: int
    user_focus: int


class RankedStory(BaseModel):
    """A story enriched with ranking factors. Built per call, never stored."""
    id: str
    title: str
    project_id: str
    project_name: str
    status: str
    priority_level: PriorityLevel
    priority_score: int
    composite_score: int
    factors: RankingFactors
    external_task_id: Optional[str] = None
    created_at: datetime
    seq: Optional[int] = Field(default=None, exclude=True)
    rank: int = 0


# ============================================================================
# API Request/Response Models
# ============================================================================

class ProcessSignalResponse(BaseModel):
    signal_id: str
    classification: ClassificationResult


class ClassifyRequest(BaseModel):
    text: str


class ClassifyResponse(BaseModel):
    priority_level: PriorityLevel
    priority_score: int
    reasoning: str


class PriorityUpdateRequest(BaseModel):
    """Body of POST /api/priorities: a story override or a new signal."""
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    story_id: Optional[str] = None
    priority_level: Optional[PriorityLevel] = None
    source: SignalSource = SignalSource.DASHBOARD
    signal_type: SignalType = SignalType.PRIORITY_SET
    raw_content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ManualOverrideResponse(BaseModel):
    success: bool = True
    story: Story
    signal_id: str


class PrioritySummary(BaseModel):
    total_signals: int
    total_stories: int
    p0_count: int
    p1_count: int
    p2_count: int
    p3_count: int


class PriorityOverview(BaseModel):
    """Response from GET /api/priorities."""
    signals: List[PrioritySignal]
    stories: List[Story]
    by_priority: Dict[str, List[Story]]
    summary: PrioritySummary


class StoryPriorityResponse(BaseModel):
    story_id: str
    priority_level: PriorityLevel
    priority_score: int
    signal_count: int


class StackRankResponse(BaseModel):
    workspace_id: str
    project_id: Optional[str] = None
    priority_system_enabled: bool
    stories: List[RankedStory]


class LaunchFlagsResponse(BaseModel):
    project_id: str
    updated: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    request_id: Optional[str] = None
