import uuid
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from stackrank.db.database import get_db_connection
from stackrank.core.logging import get_logger
from stackrank.models.schemas import (
    Project, Story, PrioritySignal, PriorityLevel, CLOSED_STATUSES, ACTIVE_STATUSES
)

logger = get_logger(__name__)


def _iso(dt: datetime) -> str:
    """Normalize to a UTC ISO string so stored timestamps compare as text."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _now(now: Optional[datetime] = None) -> datetime:
    return now or datetime.now(timezone.utc)


# ============================================================================
# Projects
# ============================================================================

def create_project(
    workspace_id: str,
    name: str,
    project_id: Optional[str] = None
) -> Project:
    """Create a project record."""
    project = Project(id=project_id or str(uuid.uuid4()), workspace_id=workspace_id, name=name)
    with get_db_connection() as conn:
        conn.execute(
            "INSERT INTO projects (id, workspace_id, name, created_at) VALUES (?, ?, ?, ?)",
            (project.id, workspace_id, name, _iso(_now()))
        )
        conn.commit()
    logger.info(f"Created project {project.id} ({name})")
    return project


def get_project(project_id: str) -> Optional[Project]:
    with get_db_connection() as conn:
        row = conn.execute(
            "SELECT id, workspace_id, name FROM projects WHERE id = ?",
            (project_id,)
        ).fetchone()
    return Project(**dict(row)) if row else None


def list_projects(workspace_id: str) -> List[Project]:
    """List a workspace's projects, oldest first."""
    with get_db_connection() as conn:
        rows = conn.execute(
            """
            SELECT id, workspace_id, name FROM projects
            WHERE workspace_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (workspace_id,)
        ).fetchall()
    return [Project(**dict(row)) for row in rows]


# ============================================================================
# Stories
# ============================================================================

def _row_to_story(row) -> Story:
    data: Dict[str, Any] = dict(row)
    flag = data.get("advances_launch_stage")
    data["advances_launch_stage"] = None if flag is None else bool(flag)
    data["created_at"] = _parse_dt(data["created_at"])
    return Story(**data)


def create_story(
    project_id: str,
    title: str,
    description: Optional[str] = None,
    status: str = "pending",
    priority_level: Optional[PriorityLevel] = None,
    priority_score: Optional[int] = None,
    advances_launch_stage: Optional[bool] = None,
    effort: Optional[str] = None,
    story_type: Optional[str] = None,
    external_task_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
    story_id: Optional[str] = None
) -> Story:
    """Create a story record."""
    story = Story(
        id=story_id or str(uuid.uuid4()),
        project_id=project_id,
        title=title,
        description=description,
        status=status,
        priority_level=priority_level,
        priority_score=priority_score,
        advances_launch_stage=advances_launch_stage,
        effort=effort,
        story_type=story_type,
        external_task_id=external_task_id,
        created_at=_now(created_at),
    )
    with get_db_connection() as conn:
        cursor = conn.execute(
            """
            INSERT INTO stories (
                id, project_id, title, description, status, priority_level,
                priority_score, advances_launch_stage, effort, story_type,
                external_task_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                story.id, project_id, title, description, status,
                story.priority_level.value if story.priority_level else None,
                priority_score,
                None if advances_launch_stage is None else int(advances_launch_stage),
                effort, story_type, external_task_id, _iso(story.created_at)
            )
        )
        conn.commit()
    story.seq = cursor.lastrowid
    logger.debug(f"Created story {story.id} in project {project_id}")
    return story


def get_story(story_id: str) -> Optional[Story]:
    """Retrieve a story by ID."""
    with get_db_connection() as conn:
        row = conn.execute(
            "SELECT rowid AS seq, * FROM stories WHERE id = ?",
            (story_id,)
        ).fetchone()
    return _row_to_story(row) if row else None


def list_open_stories(project_id: str, limit: int = 50) -> List[Story]:
    """The most recently created stories of a project that are not closed."""
    placeholders = ", ".join("?" for _ in CLOSED_STATUSES)
    with get_db_connection() as conn:
        rows = conn.execute(
            f"""
            SELECT rowid AS seq, * FROM stories
            WHERE project_id = ? AND status NOT IN ({placeholders})
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (project_id, *sorted(CLOSED_STATUSES), limit)
        ).fetchall()
    return [_row_to_story(row) for row in rows]


def list_project_stories(project_id: str) -> List[Story]:
    """All stories of a project regardless of status."""
    with get_db_connection() as conn:
        rows = conn.execute(
            "SELECT rowid AS seq, * FROM stories WHERE project_id = ? ORDER BY created_at ASC, rowid ASC",
            (project_id,)
        ).fetchall()
    return [_row_to_story(row) for row in rows]


def list_active_stories(
    workspace_id: str,
    project_id: Optional[str] = None,
    limit: int = 100
) -> List[Story]:
    """Active stories ordered by stored priority score, oldest first on ties."""
    placeholders = ", ".join("?" for _ in ACTIVE_STATUSES)
    params: List[Any] = [workspace_id, *ACTIVE_STATUSES]
    project_clause = ""
    if project_id:
        project_clause = "AND s.project_id = ?"
        params.append(project_id)
    params.append(limit)

    with get_db_connection() as conn:
        rows = conn.execute(
            f"""
            SELECT s.rowid AS seq, s.* FROM stories s
            JOIN projects p ON p.id = s.project_id
            WHERE p.workspace_id = ? AND s.status IN ({placeholders}) {project_clause}
            ORDER BY s.priority_score DESC, s.created_at ASC, s.rowid ASC
            LIMIT ?
            """,
            params
        ).fetchall()
    return [_row_to_story(row) for row in rows]


def update_story_priority(story_id: str, level: PriorityLevel, score: int) -> None:
    """Write a story's priority fields. Last writer wins."""
    with get_db_connection() as conn:
        conn.execute(
            "UPDATE stories SET priority_level = ?, priority_score = ? WHERE id = ?",
            (PriorityLevel(level).value, score, story_id)
        )
        conn.commit()
    logger.debug(f"Story {story_id} priority set to {PriorityLevel(level).value} ({score})")


def update_story_launch_flag(story_id: str, advances: bool) -> None:
    with get_db_connection() as conn:
        conn.execute(
            "UPDATE stories SET advances_launch_stage = ? WHERE id = ?",
            (int(advances), story_id)
        )
        conn.commit()


# ============================================================================
# Priority Signals
# ============================================================================

def _row_to_signal(row) -> PrioritySignal:
    data: Dict[str, Any] = dict(row)
    data["is_explicit"] = bool(data["is_explicit"])
    data["expires_at"] = _parse_dt(data.get("expires_at"))
    data["created_at"] = _parse_dt(data["created_at"])
    return PrioritySignal(**data)


def append_signal(signal: PrioritySignal) -> str:
    """Append a classified signal and return its ID."""
    signal_id = signal.id or str(uuid.uuid4())
    with get_db_connection() as conn:
        conn.execute(
            """
            INSERT INTO priority_signals (
                id, workspace_id, project_id, story_id, source, signal_type,
                priority, raw_text, confidence, is_explicit, expires_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                signal_id, signal.workspace_id, signal.project_id, signal.story_id,
                signal.source.value, signal.signal_type.value,
                signal.priority.value if signal.priority else None,
                signal.raw_text, signal.confidence, 1 if signal.is_explicit else 0,
                _iso(signal.expires_at) if signal.expires_at else None,
                _iso(signal.created_at)
            )
        )
        conn.commit()
    logger.debug(f"Appended signal {signal_id} for workspace {signal.workspace_id}")
    return signal_id


def _active_signal_filter(
    workspace_id: str,
    project_id: Optional[str],
    story_id: Optional[str],
    since: Optional[datetime],
    now: Optional[datetime]
):
    """
    Build the WHERE clause for active signals.

    project_id matches project-scoped and workspace-wide signals; story_id
    drops signals pinned to a different story.
    """
    clauses = ["workspace_id = ?", "(expires_at IS NULL OR expires_at >= ?)"]
    params: List[Any] = [workspace_id, _iso(_now(now))]

    if project_id:
        clauses.append("(project_id = ? OR project_id IS NULL)")
        params.append(project_id)
    if story_id:
        clauses.append("(story_id IS NULL OR story_id = ?)")
        params.append(story_id)
    if since:
        clauses.append("created_at >= ?")
        params.append(_iso(since))

    return " AND ".join(clauses), params


def find_active_signals(
    workspace_id: str,
    project_id: Optional[str] = None,
    story_id: Optional[str] = None,
    since: Optional[datetime] = None,
    now: Optional[datetime] = None,
    limit: Optional[int] = None
) -> List[PrioritySignal]:
    """Non-expired signals visible to the given scope, newest first."""
    where, params = _active_signal_filter(workspace_id, project_id, story_id, since, now)
    sql = f"SELECT * FROM priority_signals WHERE {where} ORDER BY created_at DESC, rowid DESC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)

    with get_db_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_signal(row) for row in rows]


def count_active_signals(
    workspace_id: str,
    project_id: Optional[str] = None,
    since: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> int:
    where, params = _active_signal_filter(workspace_id, project_id, None, since, now)
    with get_db_connection() as conn:
        row = conn.execute(
            f"SELECT COUNT(*) AS n FROM priority_signals WHERE {where}",
            params
        ).fetchone()
    return int(row["n"])


# ============================================================================
# Workspace Settings
# ============================================================================

def get_workspace_priority_enabled(workspace_id: str) -> Optional[bool]:
    """Stored toggle for a workspace, or None when never set."""
    with get_db_connection() as conn:
        row = conn.execute(
            "SELECT priority_system_enabled FROM workspace_settings WHERE workspace_id = ?",
            (workspace_id,)
        ).fetchone()
    return None if row is None else bool(row["priority_system_enabled"])


def set_workspace_priority_enabled(workspace_id: str, enabled: bool) -> None:
    with get_db_connection() as conn:
        conn.execute(
            """
            INSERT INTO workspace_settings (workspace_id, priority_system_enabled, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT (workspace_id) DO UPDATE SET
                priority_system_enabled = excluded.priority_system_enabled,
                updated_at = excluded.updated_at
            """,
            (workspace_id, int(enabled), _iso(_now()))
        )
        conn.commit()
    logger.info(f"Priority system {'enabled' if enabled else 'disabled'} for workspace {workspace_id}")
