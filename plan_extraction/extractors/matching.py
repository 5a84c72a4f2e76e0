from __future__ import annotations

import re
from dataclasses import dataclass

from plan_extraction.models.contracts import Evidence, PageText, Signal, SourceType, UnitCountMention
from plan_extraction.normalizers.numeric import parse_group_number

LEADING_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?|\.\d+")


@dataclass(frozen=True)
class PageScope:
    """Pages an extractor searches, and the confidence it assigns to what it finds there."""

    pages: list[PageText]
    confidence: float


def scope_pages(pages: list[PageText], preferred: list[PageText], preferred_confidence: float, fallback_confidence: float) -> PageScope:
    if preferred:
        return PageScope(pages=preferred, confidence=preferred_confidence)
    return PageScope(pages=pages, confidence=fallback_confidence)


def snippet_around(text: str, match: re.Match[str], radius: int = 30) -> str:
    start = max(0, match.start() - radius)
    end = min(len(text), match.end() + radius)
    return text[start:end].replace("\n", " ").strip()


def leading_number(raw: str) -> float | None:
    match = LEADING_NUMBER_RE.match(raw.strip())
    if not match:
        return None
    return parse_group_number(match.group(0))


def first_numeric_signal(
    scope: PageScope,
    patterns: list[re.Pattern[str]],
    source_type: SourceType,
    radius: int = 30,
) -> Signal[float] | None:
    """First positive match, trying every page for a pattern before moving on to the next pattern."""
    for pattern in patterns:
        for page in scope.pages:
            match = pattern.search(page.text)
            if not match:
                continue
            value = leading_number(match.group(1))
            if value is None or value <= 0:
                continue
            evidence = Evidence(
                page=page.page_index,
                snippet=snippet_around(page.text, match, radius),
                source_type=source_type,
                confidence=scope.confidence,
            )
            return Signal(value=value, confidence=scope.confidence, evidence=(evidence,))
    return None


def first_string_signal(
    scope: PageScope,
    patterns: list[re.Pattern[str]],
    source_type: SourceType,
    radius: int = 30,
) -> Signal[str] | None:
    for pattern in patterns:
        for page in scope.pages:
            match = pattern.search(page.text)
            if not match or not match.group(1):
                continue
            evidence = Evidence(
                page=page.page_index,
                snippet=snippet_around(page.text, match, radius),
                source_type=source_type,
                confidence=scope.confidence,
            )
            return Signal(value=match.group(1).strip(), confidence=scope.confidence, evidence=(evidence,))
    return None


def as_int_signal(signal: Signal[float] | None, low: int, high: int) -> Signal[int] | None:
    if signal is None or not low <= signal.value <= high:
        return None
    return Signal(value=int(signal.value), confidence=signal.confidence, evidence=signal.evidence)


def in_range(signal: Signal[float] | None, low: float, high: float) -> Signal[float] | None:
    if signal is None or not low <= signal.value <= high:
        return None
    return signal


def collect_mentions(
    scope: PageScope,
    patterns: list[re.Pattern[str]],
    source_type: SourceType,
    max_value: int = 500,
    radius: int = 30,
) -> list[UnitCountMention]:
    """Every in-range unit count stated on the scoped pages, one per (page, value)."""
    mentions: list[UnitCountMention] = []
    seen: set[tuple[int, int]] = set()
    for pattern in patterns:
        for page in scope.pages:
            for match in pattern.finditer(page.text):
                raw = (match.group(1) or "").replace(",", "")
                if not raw.isdigit():
                    continue
                value = int(raw)
                key = (page.page_index, value)
                if not 1 <= value <= max_value or key in seen:
                    continue
                seen.add(key)
                mentions.append(
                    UnitCountMention(
                        value=value,
                        page=page.page_index,
                        source_type=source_type,
                        snippet=snippet_around(page.text, match, radius),
                        confidence=scope.confidence,
                    )
                )
    return mentions
