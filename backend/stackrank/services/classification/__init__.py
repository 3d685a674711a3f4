# Classification module - raw text to P0-P3 level and score
from .patterns import (
    PRIORITY_SCORE_BANDS,
    EXPLICIT_PRIORITY_PATTERNS,
    EMOJI_PRIORITIES,
    SCAN_SEVERITY_PRIORITY,
    ClassificationStrategy,
    ExplicitPatternStrategy,
    EmojiStrategy,
    ScanSeverityStrategy,
    score_for_level,
)
from .classifier import (
    LLMStrategy,
    SignalClassifier,
    build_classifier,
    default_classification,
    get_classifier,
)

__all__ = [
    "PRIORITY_SCORE_BANDS",
    "EXPLICIT_PRIORITY_PATTERNS",
    "EMOJI_PRIORITIES",
    "SCAN_SEVERITY_PRIORITY",
    "ClassificationStrategy",
    "ExplicitPatternStrategy",
    "EmojiStrategy",
    "ScanSeverityStrategy",
    "score_for_level",
    "LLMStrategy",
    "SignalClassifier",
    "build_classifier",
    "default_classification",
    "get_classifier",
]
