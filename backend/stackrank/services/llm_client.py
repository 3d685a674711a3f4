import json
from typing import Optional, Dict, Any
from openai import OpenAI
from stackrank.core.config import settings
from stackrank.core.logging import get_logger

logger = get_logger(__name__)

# JSON schema for LLM response validation
CLASSIFICATION_SCHEMA = {
    "type": "object",
    "required": ["priorityLevel", "confidence", "reasoning"],
    "properties": {
        "priorityLevel": {"type": "string", "enum": ["P0", "P1", "P2", "P3"]},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "reasoning": {"type": "string", "description": "Brief explanation"}
    }
}

SYSTEM_PROMPT = """You are a precise priority classifier for a software team's work queue.
Return only valid JSON matching this schema, with no text outside the JSON:
{schema}"""

USER_PROMPT_TEMPLATE = """Classify the priority level of this message/request:

"{text}"

Priority Levels:
- P0: Critical/urgent - production down, security issue, blocking users
- P1: Important - significant bug, customer-facing issue, business impact
- P2: Normal - standard feature or bug, no immediate urgency
- P3: Low - nice-to-have, cosmetic, backlog item

Respond with ONLY a JSON object: {{"priorityLevel": ..., "confidence": ..., "reasoning": ...}}"""


def get_llm_client() -> Optional[OpenAI]:
    """Get configured OpenAI client for OpenRouter."""
    if not settings.has_llm_key:
        return None

    return OpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.llm_timeout_seconds,
        max_retries=0
    )


def classify_text(text: str) -> Optional[Dict[str, Any]]:
    """
    Ask the LLM for a priority level, confidence and rationale.

    Returns raw dict for validation, or None if LLM unavailable/fails.
    """
    client = get_llm_client()
    if not client:
        logger.info("LLM client not available - no API key configured")
        return None

    try:
        response = client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT.format(
                    schema=json.dumps(CLASSIFICATION_SCHEMA, indent=2))},
                {"role": "user", "content": USER_PROMPT_TEMPLATE.format(text=text)}
            ],
            temperature=0,
            max_tokens=256
        )

        content = response.choices[0].message.content
        if not content:
            logger.warning("LLM returned empty response")
            return None

        result = _extract_json(content)
        if result is None:
            logger.warning(
                f"Failed to parse LLM response as JSON: {content[:200]}")

        return result

    except Exception as e:
        logger.error(f"LLM classification call failed: {e}")
        return None


def _extract_json(text: str) -> Optional[Dict[str, Any]]:
    """Extract a JSON object from LLM response text."""
    # Try direct parse first
    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    text = text.strip()

    # Remove markdown code blocks if present
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.startswith("```")]
        text = "\n".join(lines)

    # Find JSON object boundaries
    start = text.find("{")
    end = text.rfind("}") + 1

    if start != -1 and end > start:
        try:
            parsed = json.loads(text[start:end])
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass

    return None
