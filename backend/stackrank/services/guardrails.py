import math
from typing import Tuple, List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from stackrank.models.schemas import PriorityLevel
from stackrank.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LLM_CONFIDENCE = 0.7
DEFAULT_LLM_REASONING = "LLM classification"


class LLMClassification(BaseModel):
    """Validated shape of a language-model classification reply."""
    model_config = ConfigDict(populate_by_name=True)

    priority_level: PriorityLevel = Field(alias="priorityLevel")
    confidence: float = DEFAULT_LLM_CONFIDENCE
    reasoning: str = DEFAULT_LLM_REASONING

    @field_validator("priority_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        if value is None:
            return DEFAULT_LLM_CONFIDENCE
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"confidence is not a number: {value!r}")
        if math.isnan(number):
            raise ValueError("confidence is NaN")
        return max(0.0, min(1.0, number))

    @field_validator("reasoning", mode="before")
    @classmethod
    def _default_reasoning(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_LLM_REASONING
        return str(value).strip()


def validate_classification(
    raw: Optional[Dict[str, Any]]
) -> Tuple[Optional[LLMClassification], List[str]]:
    """
    Validate a raw LLM reply.

    Returns:
        Tuple of (validated classification or None, list of error messages)
    """
    if raw is None:
        return None, ["LLM not available"]

    if not isinstance(raw, dict):
        return None, [f"LLM reply is not an object: {type(raw).__name__}"]

    if "priorityLevel" not in raw and "priority_level" not in raw:
        return None, ["Missing required field: priorityLevel"]

    try:
        return LLMClassification.model_validate(raw), []
    except ValidationError as e:
        errors = [
            f"Pydantic validation: {error['loc']} - {error['msg']}"
            for error in e.errors()
        ]
        logger.warning(f"LLM classification failed validation: {errors}")
        return None, errors
