"""
Lookup tables and pure matching strategies for priority classification.

Each strategy answers with a ClassificationResult or None. Tables are passed
in at construction; the module-level defaults are read-only.
"""
from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Pattern, Sequence, Tuple

from stackrank.models.schemas import ClassificationResult, PriorityLevel, SignalSource
from stackrank.services.ranking.scoring import round_half_up

P0, P1, P2, P3 = PriorityLevel.P0, PriorityLevel.P1, PriorityLevel.P2, PriorityLevel.P3

EXPLICIT_CONFIDENCE = 0.95
EMOJI_CONFIDENCE = 0.9
SCAN_CONFIDENCE = 0.9

# Inclusive score band owned by each level
PRIORITY_SCORE_BANDS: Mapping[PriorityLevel, Tuple[int, int]] = MappingProxyType({
    P0: (90, 100),
    P1: (70, 89),
    P2: (40, 69),
    P3: (0, 39),
})

# Checked in order, P0 first; the first level with a hit wins
EXPLICIT_PRIORITY_PATTERNS: Tuple[Tuple[PriorityLevel, Tuple[Pattern[str], ...]], ...] = (
    (P0, (
        re.compile(r"\bP0\b", re.IGNORECASE),
        re.compile(r"\b(critical|urgent|asap|emergency|blocker|showstopper|fire)\b", re.IGNORECASE),
        re.compile(r"🚨|🔥|‼️|⚠️"),
        re.compile(r"\bdrop everything\b", re.IGNORECASE),
        re.compile(r"\bfix this now\b", re.IGNORECASE),
    )),
    (P1, (
        re.compile(r"\bP1\b", re.IGNORECASE),
        re.compile(r"\b(important|high priority|priority|soon|needed|must have)\b", re.IGNORECASE),
        re.compile(r"❗|❕|⚡"),
        re.compile(r"\bthis week\b", re.IGNORECASE),
        re.compile(r"\bplease prioritize\b", re.IGNORECASE),
    )),
    (P2, (
        re.compile(r"\bP2\b", re.IGNORECASE),
        re.compile(r"\b(normal|standard|regular|when possible)\b", re.IGNORECASE),
        re.compile(r"\bnext sprint\b", re.IGNORECASE),
    )),
    (P3, (
        re.compile(r"\bP3\b", re.IGNORECASE),
        re.compile(r"\b(low|minor|nice to have|whenever|backlog|someday)\b", re.IGNORECASE),
        re.compile(r"\bno rush\b", re.IGNORECASE),
        re.compile(r"\bif you have time\b", re.IGNORECASE),
    )),
)

EMOJI_PRIORITIES: Mapping[str, PriorityLevel] = MappingProxyType({
    "🔴": P0,
    "🚨": P0,
    "🔥": P0,
    "‼️": P0,
    "⚠️": P0,
    "🟠": P1,
    "❗": P1,
    "⚡": P1,
    "🟡": P2,
    "📝": P2,
    "🟢": P3,
    "📋": P3,
})

SCAN_SEVERITY_PRIORITY: Mapping[str, PriorityLevel] = MappingProxyType({
    "critical": P0,
    "high": P1,
    "medium": P2,
    "low": P3,
})

# Level used for a severity string missing from the table
UNKNOWN_SEVERITY_LEVEL = P2


def score_for_level(
    level: PriorityLevel,
    confidence: float,
    bands: Mapping[PriorityLevel, Tuple[int, int]] = PRIORITY_SCORE_BANDS,
) -> int:
    """Place a score inside the level's band; higher confidence sits higher."""
    low, high = bands[PriorityLevel(level)]
    return round_half_up(low + (high - low) * confidence)


class ClassificationStrategy:
    """One step of the classification chain."""

    name = "strategy"

    def __init__(self, bands: Mapping[PriorityLevel, Tuple[int, int]] = PRIORITY_SCORE_BANDS):
        self.bands = bands

    def match(
        self,
        text: str,
        source: Optional[SignalSource] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[ClassificationResult]:
        raise NotImplementedError

    def _result(self, level: PriorityLevel, confidence: float, reasoning: str) -> ClassificationResult:
        return ClassificationResult(
            priority_level=level,
            priority_score=score_for_level(level, confidence, self.bands),
            confidence=confidence,
            reasoning=reasoning,
            method=self.name,
        )


class ExplicitPatternStrategy(ClassificationStrategy):
    """Hard keyword/regex indicators such as "P0", "urgent" or "no rush"."""

    name = "explicit_pattern"

    def __init__(
        self,
        patterns: Sequence[Tuple[PriorityLevel, Sequence[Pattern[str]]]] = EXPLICIT_PRIORITY_PATTERNS,
        confidence: float = EXPLICIT_CONFIDENCE,
        bands: Mapping[PriorityLevel, Tuple[int, int]] = PRIORITY_SCORE_BANDS,
    ):
        super().__init__(bands)
        self.patterns = tuple((PriorityLevel(level), tuple(regexes)) for level, regexes in patterns)
        self.confidence = confidence

    def match(self, text, source=None, metadata=None):
        for level, regexes in self.patterns:
            for regex in regexes:
                hit = regex.search(text)
                if hit:
                    return self._result(
                        level, self.confidence,
                        f"Explicit priority indicator found: '{hit.group(0)}'"
                    )
        return None


class EmojiStrategy(ClassificationStrategy):
    name = "emoji"

    def __init__(
        self,
        emoji_map: Mapping[str, PriorityLevel] = EMOJI_PRIORITIES,
        confidence: float = EMOJI_CONFIDENCE,
        bands: Mapping[PriorityLevel, Tuple[int, int]] = PRIORITY_SCORE_BANDS,
    ):
        super().__init__(bands)
        self.emoji_map = MappingProxyType(dict(emoji_map))
        self.confidence = confidence

    def match(self, text, source=None, metadata=None):
        for emoji, level in self.emoji_map.items():
            if emoji in text:
                return self._result(
                    PriorityLevel(level), self.confidence,
                    f"Emoji priority shortcut detected: {emoji}"
                )
        return None


class ScanSeverityStrategy(ClassificationStrategy):
    """Maps a scan finding's severity; ignores every other source."""

    name = "scan_severity"

    def __init__(
        self,
        severity_map: Mapping[str, PriorityLevel] = SCAN_SEVERITY_PRIORITY,
        confidence: float = SCAN_CONFIDENCE,
        unknown_level: PriorityLevel = UNKNOWN_SEVERITY_LEVEL,
        bands: Mapping[PriorityLevel, Tuple[int, int]] = PRIORITY_SCORE_BANDS,
    ):
        super().__init__(bands)
        self.severity_map = MappingProxyType({k.lower(): v for k, v in severity_map.items()})
        self.confidence = confidence
        self.unknown_level = unknown_level

    def match(self, text, source=None, metadata=None):
        if source is None or SignalSource(source) != SignalSource.SCAN:
            return None
        severity = (metadata or {}).get("severity")
        if not severity:
            return None

        level = self.severity_map.get(str(severity).strip().lower(), self.unknown_level)
        return self._result(
            PriorityLevel(level), self.confidence,
            f"Scan finding with {severity} severity"
        )
