from __future__ import annotations

import re
from dataclasses import dataclass

from plan_extraction.models.contracts import PageCategory, PageRelevance, PageText
from plan_extraction.policy import RELEVANCE_POLICY, RelevancePolicy


@dataclass(frozen=True)
class ScoringRule:
    pattern: re.Pattern[str]
    weight: int
    category: PageCategory


def _rule(pattern: str, weight: int, category: PageCategory) -> ScoringRule:
    return ScoringRule(pattern=re.compile(pattern, re.IGNORECASE), weight=weight, category=category)


SCORING_RULES = [
    _rule(r"(APARTMENT|DWELLING|RESIDENTIAL)\s+(UNIT|APT)\s+(SCHEDULE|MIX)", 5, "UNIT_SCHEDULE"),
    _rule(r"(UNIT\s+MIX|UNIT\s+COUNT|UNIT\s+SCHEDULE|SCHEDULE\s+OF\s+UNITS)", 4, "UNIT_SCHEDULE"),
    _rule(r"OCCUPANT\s+LOAD", 4, "UNIT_SCHEDULE"),
    _rule(r"BC\s*1004", 3, "UNIT_SCHEDULE"),
    _rule(r"AREA\s+PER\s+OCCUPANT", 3, "UNIT_SCHEDULE"),
    _rule(r"(NO\.?\s+OF\s+UNITS|NUMBER\s+OF\s+UNITS|TOTAL\s+UNITS)", 3, "UNIT_SCHEDULE"),
    _rule(r"(FAR|ZFA|ZONING\s+FLOOR\s+AREA|LOT\s+AREA)", 3, "ZONING_ANALYSIS"),
    _rule(r"FLOOR\s+AREA\s+RATIO", 3, "ZONING_ANALYSIS"),
    _rule(r"ZONING\s+(ANALYSIS|COMPLIANCE|SUMMARY|DIAGRAM)", 4, "ZONING_ANALYSIS"),
    _rule(r"USE\s+GROUP", 2, "ZONING_ANALYSIS"),
    _rule(r"(PERMITTED|PROPOSED)\s+(FAR|FLOOR\s+AREA)", 3, "ZONING_ANALYSIS"),
    _rule(r"(COVER\s+SHEET|PROJECT\s+INFORMATION|TITLE\s+SHEET)", 5, "COVER_SHEET"),
    _rule(r"(PROJECT\s+SUMMARY|PROJECT\s+DATA)", 4, "COVER_SHEET"),
    _rule(r"SCOPE\s+OF\s+WORK", 3, "COVER_SHEET"),
    _rule(r"PROPOSED\s+\d+\s*[-]?\s*(?:UNIT|DWELLING|STORY)", 3, "COVER_SHEET"),
    _rule(r"(AFFORDABLE|MIH|INCLUSIONARY|UAP|RESTRICTED)", 3, "AFFORDABLE_HOUSING"),
    _rule(r"AMI\s*(?:BAND|LEVEL|%)", 3, "AFFORDABLE_HOUSING"),
    _rule(r"INCOME\s+(?:BAND|LEVEL|RESTRICT)", 3, "AFFORDABLE_HOUSING"),
    _rule(r"RENT\s+STABIL", 2, "AFFORDABLE_HOUSING"),
    _rule(r"(NET|GROSS)\s*(SF|SQ\.?\s*FT|AREA)", 2, "UNIT_SCHEDULE"),
    _rule(r"FLOOR\s+PLAN", 2, "FLOOR_PLAN"),
    _rule(r"TYPICAL\s+FLOOR", 2, "FLOOR_PLAN"),
]

GUARANTEED_CATEGORIES: list[PageCategory] = ["COVER_SHEET", "ZONING_ANALYSIS", "UNIT_SCHEDULE"]

LLM_PAGE_TYPES = {
    "COVER_SHEET": "COVER_SHEET",
    "ZONING_ANALYSIS": "ZONING",
    "UNIT_SCHEDULE": "OCCUPANT_LOAD",
    "FLOOR_PLAN": "FLOOR_PLAN",
}


def score_page(text: str) -> tuple[int, dict[PageCategory, int]]:
    """Total rule weight for a page, and the weight per category in first-hit order."""
    score = 0
    categories: dict[PageCategory, int] = {}
    for rule in SCORING_RULES:
        if rule.pattern.search(text):
            score += rule.weight
            categories[rule.category] = categories.get(rule.category, 0) + rule.weight
    return score, categories


def primary_category(categories: dict[PageCategory, int]) -> PageCategory:
    best: PageCategory = "IRRELEVANT"
    best_score = 0
    for category, score in categories.items():
        if score > best_score:
            best, best_score = category, score
    return best


def classify_pages(pages: list[PageText], policy: RelevancePolicy = RELEVANCE_POLICY) -> list[PageRelevance]:
    scored: list[tuple[PageText, int, dict[PageCategory, int], PageCategory]] = []
    for page in pages:
        score, categories = score_page(page.text)
        category = primary_category(categories) if score >= policy.threshold else "IRRELEVANT"
        scored.append((page, score, categories, category))

    relevant = sorted(
        (item for item in scored if item[1] >= policy.threshold),
        key=lambda item: item[1],
        reverse=True,
    )
    selected: list[int] = [item[0].page_index for item in relevant[: policy.max_selected_pages]]
    selected_categories = {item[3] for item in scored if item[0].page_index in selected}

    for category in GUARANTEED_CATEGORIES:
        if category in selected_categories:
            continue
        candidates = [item for item in scored if item[2].get(category, 0) > 0 and item[0].page_index not in selected]
        if not candidates:
            continue
        best = max(candidates, key=lambda item: item[2][category])
        selected.append(best[0].page_index)
        selected_categories.add(category)

    chosen = set(selected)
    return [
        PageRelevance(
            page_index=page.page_index,
            score=score,
            category=category,
            selected_for_llm=page.page_index in chosen,
        )
        for page, score, _categories, category in scored
    ]


def pages_for_llm(pages: list[PageText], relevance: list[PageRelevance]) -> list[PageText]:
    chosen = {item.page_index for item in relevance if item.selected_for_llm}
    return sorted((page for page in pages if page.page_index in chosen), key=lambda page: page.page_index)


def llm_page_type(category: PageCategory) -> str:
    return LLM_PAGE_TYPES.get(category, "GENERAL")
