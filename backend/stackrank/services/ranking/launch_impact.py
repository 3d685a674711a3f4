from typing import Iterable, Optional, Tuple

from stackrank.core.logging import get_logger
from stackrank.db import crud

logger = get_logger(__name__)

# Terms whose presence suggests a story moves the project toward a shippable product
LAUNCH_ADVANCING_KEYWORDS: Tuple[str, ...] = (
    # Core launch requirements
    "deploy", "deployment", "production", "release",
    "domain", "dns", "ssl", "certificate", "https",
    "authentication", "auth", "login", "signup", "signin",

    # Quality gates
    "security", "vulnerability", "xss", "csrf", "injection",
    "performance", "speed", "optimization", "lighthouse",
    "seo", "meta", "sitemap", "robots",
    "monitoring", "logging", "error tracking", "sentry",

    # Growth requirements
    "analytics", "tracking", "posthog", "google analytics",
    "payment", "stripe", "billing", "subscription", "pricing",
    "onboarding", "welcome", "tutorial",
)

# story_type values that mark launch-critical work even without the flag
LAUNCH_CRITICAL_STORY_TYPES: Tuple[str, ...] = (
    "deployment",
    "security",
    "authentication",
    "payment",
    "analytics",
)

ADVANCES_LAUNCH_SCORE = 100
LAUNCH_CRITICAL_TYPE_SCORE = 80
NEUTRAL_LAUNCH_SCORE = 50


def _mentions_keyword(text: str, keywords: Iterable[str]) -> bool:
    text = text.lower()
    return any(keyword in text for keyword in keywords)


def launch_impact(
    advances_launch_stage: Optional[bool],
    story_type: Optional[str] = None,
    critical_types: Iterable[str] = LAUNCH_CRITICAL_STORY_TYPES,
) -> int:
    """How much a story moves its project toward launch, 0-100."""
    if advances_launch_stage is True:
        return ADVANCES_LAUNCH_SCORE

    if story_type and _mentions_keyword(story_type, critical_types):
        return LAUNCH_CRITICAL_TYPE_SCORE

    return NEUTRAL_LAUNCH_SCORE


def compute_advances_launch_stage(
    title: str,
    description: Optional[str] = None,
    keywords: Iterable[str] = LAUNCH_ADVANCING_KEYWORDS,
) -> bool:
    """True when the title or description mentions a launch-critical keyword."""
    return _mentions_keyword(f"{title or ''} {description or ''}", keywords)


def update_launch_stage_flags(project_id: str) -> int:
    """Re-derive advances_launch_stage for every story in a project."""
    stories = crud.list_project_stories(project_id)
    for story in stories:
        crud.update_story_launch_flag(
            story.id, compute_advances_launch_stage(story.title, story.description)
        )

    logger.info(f"Updated launch stage flags for {len(stories)} stories in project {project_id}")
    return len(stories)
