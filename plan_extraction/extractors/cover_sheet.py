from __future__ import annotations

import re

from plan_extraction.extractors.matching import (
    PageScope,
    as_int_signal,
    collect_mentions,
    first_numeric_signal,
    first_string_signal,
    in_range,
    scope_pages,
)
from plan_extraction.models.contracts import CoverSheetSignals, PageText, SourceType, UnitCountMention
from plan_extraction.policy import EXTRACTOR_POLICY, ExtractorPolicy

COVER_KEYWORDS = ["COVER SHEET", "PROJECT INFORMATION", "TITLE SHEET", "PROJECT SUMMARY", "PROJECT DATA"]

DECLARED_UNIT_PATTERNS = [
    re.compile(r"PROPOSED\s+(\d{1,4})\s+(?:NEW\s+)?(?:RESIDENTIAL\s+)?(?:DWELLING\s+)?UNITS?\b", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s+PROPOSED\s+(?:DWELLING\s+)?UNITS?\b", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s*[-]?\s*UNIT\s+(?:APARTMENT|RESIDENTIAL|DWELLING)\s+(?:BUILDING|PROJECT)", re.IGNORECASE),
    re.compile(r"TOTAL\s+(?:NUMBER\s+OF\s+)?(?:RESIDENTIAL\s+)?(?:DWELLING\s+)?UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s+(?:NEW\s+)?(?:RESIDENTIAL\s+)?DWELLING\s+UNITS", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s+(?:NEW\s+)?RESIDENTIAL\s+UNITS", re.IGNORECASE),
    re.compile(r"#?\s*(?:OF\s+)?UNITS[:\s]+(\d{1,4})", re.IGNORECASE),
    re.compile(r"NUMBER\s+OF\s+UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"(?:CONTAINS|CONSISTING\s+OF|COMPRISING)\s+(\d{1,4})\s+(?:DWELLING\s+)?UNITS", re.IGNORECASE),
    re.compile(r"DU[:\s]+(\d{1,4})", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s+DUs?\b", re.IGNORECASE),
]

FLOORS_PATTERNS = [
    re.compile(r"(\d{1,3})\s*(?:STORIES|STORY|FLOORS?)\s+(?:ABOVE|PLUS)", re.IGNORECASE),
    re.compile(r"(?:STORIES|FLOORS?)[:\s]*(\d{1,3})", re.IGNORECASE),
    re.compile(r"(\d{1,3})\s*[-]?\s*STORY", re.IGNORECASE),
]

ZONE_PATTERNS = [
    re.compile(r"ZONING\s*(?:DISTRICT)?[:\s]*((?:R|C|M)\d[\w-]*)", re.IGNORECASE),
    re.compile(r"ZONE[:\s]*((?:R|C|M)\d[\w-]*)", re.IGNORECASE),
]

LOT_AREA_PATTERNS = [
    re.compile(r"(?:LOT|SITE|LAND)\s+(?:AREA|SIZE)[:\s]*([\d,]+)\s*(?:SF|SQ\.?\s*(?:FT)?|SQUARE\s+FEET)", re.IGNORECASE),
    re.compile(r"(?:TAX\s+)?LOT\s+(?:AREA|SIZE)\s*(?:\(SF\))?[:\s]*([\d,]+)", re.IGNORECASE),
    re.compile(r"LOT\s+AREA[:\s]*([\d,]+)", re.IGNORECASE),
]

BUILDING_AREA_PATTERNS = [
    re.compile(r"(?:BUILDING|BLDG)\s+AREA[:\s]*([\d,]+)\s*(?:SF|SQ|SQFT)", re.IGNORECASE),
    re.compile(r"GROSS\s+(?:FLOOR|BUILDING)\s+AREA[:\s]*([\d,]+)", re.IGNORECASE),
]

FAR_PATTERNS = [
    re.compile(r"(?:PROPOSED\s+)?(?:RESIDENTIAL\s+)?(?:FAR|FLOOR\s+AREA\s+RATIO)[:\s]*([\d.]+)", re.IGNORECASE),
    re.compile(r"(?:MAX|MAXIMUM)\s+(?:ALLOWABLE\s+)?FAR[:\s]*([\d.]+)", re.IGNORECASE),
    re.compile(r"FAR\s*=\s*([\d.]+)", re.IGNORECASE),
    re.compile(r"BULK\s+(?:FAR|FLOOR\s+AREA\s+RATIO)[:\s]*([\d.]+)", re.IGNORECASE),
]


def is_cover_page(text: str) -> bool:
    upper = text.upper()
    return any(keyword in upper for keyword in COVER_KEYWORDS)


def _cover_scope(pages: list[PageText], policy: ExtractorPolicy) -> PageScope:
    cover_pages = [page for page in pages if is_cover_page(page.text)]
    return scope_pages(pages, cover_pages, policy.cover_page_confidence, policy.cover_fallback_confidence)


def collect_cover_unit_mentions(
    pages: list[PageText],
    source_type: SourceType = "cover_sheet",
    policy: ExtractorPolicy = EXTRACTOR_POLICY,
) -> list[UnitCountMention]:
    return collect_mentions(
        _cover_scope(pages, policy),
        DECLARED_UNIT_PATTERNS,
        source_type,
        max_value=policy.max_units,
        radius=policy.snippet_radius,
    )


def extract_cover_sheet_signals(pages: list[PageText], policy: ExtractorPolicy = EXTRACTOR_POLICY) -> CoverSheetSignals:
    """Project facts declared on the cover sheet. Whole-document fallback when no cover page is found."""
    scope = _cover_scope(pages, policy)
    radius = policy.snippet_radius

    def numeric(patterns: list[re.Pattern[str]]):
        return first_numeric_signal(scope, patterns, "cover_sheet", radius)

    return CoverSheetSignals(
        total_units=as_int_signal(numeric(DECLARED_UNIT_PATTERNS), 1, policy.max_units),
        floors=as_int_signal(numeric(FLOORS_PATTERNS), 1, 999),
        zone=first_string_signal(scope, ZONE_PATTERNS, "cover_sheet", radius),
        lot_area=numeric(LOT_AREA_PATTERNS),
        building_area=numeric(BUILDING_AREA_PATTERNS),
        far=in_range(numeric(FAR_PATTERNS), policy.min_far, policy.max_far),
    )
