from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from stackrank.core.config import settings
from stackrank.core.logging import get_logger
from stackrank.models.schemas import ClassificationResult, PriorityLevel, SignalSource
from stackrank.services.classification.patterns import (
    PRIORITY_SCORE_BANDS,
    ClassificationStrategy,
    EmojiStrategy,
    ExplicitPatternStrategy,
    ScanSeverityStrategy,
)
from stackrank.services.guardrails import validate_classification
from stackrank.services.llm_client import classify_text

logger = get_logger(__name__)

DEFAULT_REASONING = "default — no clear priority indicators."

ClassifyTextFn = Callable[[str], Optional[Dict[str, Any]]]


def default_classification() -> ClassificationResult:
    """Neutral result used whenever nothing else produces an answer."""
    return ClassificationResult(
        priority_level=PriorityLevel.P2,
        priority_score=50,
        confidence=0.5,
        reasoning=DEFAULT_REASONING,
        method="default",
    )


class LLMStrategy(ClassificationStrategy):
    """
    Last resort: ask a language model.

    The call runs in a worker thread bounded by `timeout`; errors, timeouts
    and invalid replies all come back as None so the chain falls through to
    the default classification.
    """

    name = "llm"

    def __init__(
        self,
        classify_fn: ClassifyTextFn = classify_text,
        timeout: Optional[float] = None,
        bands: Mapping[PriorityLevel, Tuple[int, int]] = PRIORITY_SCORE_BANDS,
    ):
        super().__init__(bands)
        self.classify_fn = classify_fn
        self.timeout = settings.llm_timeout_seconds if timeout is None else timeout

    def match(self, text, source=None, metadata=None):
        raw = self._call(text)
        if raw is None:
            return None

        validated, errors = validate_classification(raw)
        if validated is None:
            logger.warning(f"Discarding LLM classification: {errors}")
            return None

        return self._result(validated.priority_level, validated.confidence, validated.reasoning)

    def _call(self, text: str) -> Optional[Dict[str, Any]]:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="llm-classify")
        future = executor.submit(self.classify_fn, text)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            logger.warning(f"LLM classification timed out after {self.timeout}s")
            return None
        except Exception as e:
            logger.error(f"LLM classification failed: {e}")
            return None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


class SignalClassifier:
    """Runs the strategies in order; the first match wins."""

    def __init__(self, strategies: Sequence[ClassificationStrategy]):
        self.strategies = tuple(strategies)

    def classify(
        self,
        text: str,
        source: Optional[SignalSource] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ClassificationResult:
        text = text or ""
        for strategy in self.strategies:
            result = strategy.match(text, source, metadata)
            if result is not None:
                logger.debug(
                    f"Classified via {result.method}: {result.priority_level.value} "
                    f"({result.priority_score})"
                )
                return result

        logger.info("No classifier matched, using default classification")
        return default_classification()


def build_classifier(
    classify_fn: ClassifyTextFn = classify_text,
    timeout: Optional[float] = None,
) -> SignalClassifier:
    """The standard chain: explicit pattern, emoji, scan severity, then LLM."""
    return SignalClassifier([
        ExplicitPatternStrategy(),
        EmojiStrategy(),
        ScanSeverityStrategy(),
        LLMStrategy(classify_fn=classify_fn, timeout=timeout),
    ])


@lru_cache(maxsize=1)
def get_classifier() -> SignalClassifier:
    return build_classifier()
