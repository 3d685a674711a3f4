from fastapi import APIRouter, HTTPException, Query
from typing import Optional, Union
from stackrank.core.config import settings
from stackrank.models.schemas import (
    ClassifyRequest, ClassifyResponse, ErrorResponse, HealthResponse,
    LaunchFlagsResponse, ManualOverrideResponse, PriorityOverview,
    PriorityUpdateRequest, ProcessSignalResponse, SignalInput,
    StackRankResponse, StoryPriorityResponse
)
from stackrank.services.feature_flags import is_priority_system_enabled
from stackrank.services.orchestrator import (
    classify_priority_signal, get_priority_overview, process_priority_signal,
    set_manual_priority
)
from stackrank.services.ranking import (
    StoryNotFoundError, get_stack_ranked_stories_by_project,
    get_stack_ranked_stories_global, update_launch_stage_flags, update_story_priority
)
from stackrank.db.crud import get_story
from stackrank.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


@router.get(
    "/priorities",
    response_model=PriorityOverview,
    responses={
        500: {"model": ErrorResponse, "description": "Database error"}
    }
)
async def get_priorities(
    workspace_id: Optional[str] = None,
    project_id: Optional[str] = None
):
    """
    Current priority signals and active stories.

    Stories are ordered by stored priority score and grouped by level.
    """
    workspace_id = workspace_id or settings.default_workspace_id
    try:
        return get_priority_overview(workspace_id, project_id)
    except Exception as e:
        logger.error(f"Failed to fetch priorities: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to fetch priorities: {str(e)}")


@router.post(
    "/priorities",
    response_model=Union[ManualOverrideResponse, ProcessSignalResponse],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        404: {"model": ErrorResponse, "description": "Story not found"},
        500: {"model": ErrorResponse, "description": "Processing error"}
    }
)
async def post_priority(body: PriorityUpdateRequest):
    """
    Manual priority override from the dashboard, or a new priority signal.

    With story_id the story's level is set directly; otherwise raw_content is
    classified and stored as a signal.
    """
    workspace_id = body.workspace_id or settings.default_workspace_id

    try:
        if body.story_id:
            if body.priority_level is None:
                raise HTTPException(
                    status_code=400, detail="priority_level is required when updating a story")
            return set_manual_priority(
                body.story_id, body.priority_level, workspace_id, source=body.source)

        if not body.raw_content:
            raise HTTPException(
                status_code=400, detail="raw_content is required when not updating a story")

        signal = SignalInput(
            source=body.source,
            signal_type=body.signal_type,
            raw_content=body.raw_content,
            workspace_id=workspace_id,
            project_id=body.project_id,
            metadata=body.metadata
        )
        return process_priority_signal(signal)

    except HTTPException:
        raise
    except StoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Priority update failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Priority update failed: {str(e)}")


@router.post("/priorities/classify", response_model=ClassifyResponse)
async def classify(body: ClassifyRequest, workspace_id: Optional[str] = None):
    """Classify text without storing anything."""
    workspace_id = workspace_id or settings.default_workspace_id
    return classify_priority_signal(body.text, workspace_id=workspace_id)


@router.get(
    "/projects/{project_id}/stack-rank",
    response_model=StackRankResponse,
    responses={
        500: {"model": ErrorResponse, "description": "Ranking error"}
    }
)
async def get_project_stack_rank(
    project_id: str,
    workspace_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500)
):
    """Stack-ranked open stories for one project."""
    workspace_id = workspace_id or settings.default_workspace_id
    try:
        enabled = is_priority_system_enabled(workspace_id)
        stories = get_stack_ranked_stories_by_project(
            project_id, workspace_id, limit=limit, enabled=enabled)
        return StackRankResponse(
            workspace_id=workspace_id,
            project_id=project_id,
            priority_system_enabled=enabled,
            stories=stories
        )
    except Exception as e:
        logger.error(f"Failed to rank project {project_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to rank project: {str(e)}")


@router.get(
    "/stack-rank",
    response_model=StackRankResponse,
    responses={
        500: {"model": ErrorResponse, "description": "Ranking error"}
    }
)
async def get_global_stack_rank(
    workspace_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000)
):
    """Stack-ranked open stories across every project in the workspace."""
    workspace_id = workspace_id or settings.default_workspace_id
    try:
        enabled = is_priority_system_enabled(workspace_id)
        stories = get_stack_ranked_stories_global(
            workspace_id, limit=limit, enabled=enabled)
        return StackRankResponse(
            workspace_id=workspace_id,
            priority_system_enabled=enabled,
            stories=stories
        )
    except Exception as e:
        logger.error(f"Failed to rank workspace {workspace_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to rank workspace: {str(e)}")


@router.post(
    "/stories/{story_id}/priority/refresh",
    response_model=StoryPriorityResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Story not found"},
        500: {"model": ErrorResponse, "description": "Database error"}
    }
)
async def refresh_story_priority(story_id: str, workspace_id: Optional[str] = None):
    """Recompute one story's priority from its project's active signals."""
    workspace_id = workspace_id or settings.default_workspace_id
    try:
        story = get_story(story_id)
        if not story:
            raise HTTPException(
                status_code=404, detail=f"Story not found: {story_id}")

        priority = update_story_priority(story_id, workspace_id, story.project_id)
        return StoryPriorityResponse(
            story_id=story_id,
            priority_level=priority.priority_level,
            priority_score=priority.priority_score,
            signal_count=priority.signal_count
        )
    except HTTPException:
        raise
    except StoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to refresh story {story_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to refresh story priority: {str(e)}")


@router.post(
    "/projects/{project_id}/launch-flags",
    response_model=LaunchFlagsResponse,
    responses={
        500: {"model": ErrorResponse, "description": "Database error"}
    }
)
async def refresh_launch_flags(project_id: str):
    """Re-derive advances_launch_stage for every story in the project."""
    try:
        updated = update_launch_stage_flags(project_id)
        return LaunchFlagsResponse(project_id=project_id, updated=updated)
    except Exception as e:
        logger.error(f"Failed to update launch flags for {project_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to update launch flags: {str(e)}")


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()
