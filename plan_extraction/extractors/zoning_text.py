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
from plan_extraction.models.contracts import PageText, UnitCountMention, ZoningSignals
from plan_extraction.policy import EXTRACTOR_POLICY, ExtractorPolicy

ZONING_GATE_KEYWORDS = [
    "FAR",
    "LOT AREA",
    "ZONING",
    "FLOOR AREA RATIO",
    "ZFA",
    "USE GROUP",
    "ZONING FLOOR AREA",
    "PERMITTED",
    "PROPOSED",
]

DWELLING_UNIT_PATTERNS = [
    re.compile(r"TOTAL\s+DWELLING\s+UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"DU[:\s]+(\d{1,4})", re.IGNORECASE),
    re.compile(r"DWELLING\s+UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"(?:TOTAL\s+)?(?:NO\.?\s+OF\s+)?UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"RESIDENTIAL\s+UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s+DUs?\b", re.IGNORECASE),
    re.compile(r"(?:TOTAL|MAX(?:IMUM)?)\s+(?:ALLOWABLE\s+)?UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"PROPOSED\s+(\d{1,4})\s+(?:DWELLING\s+)?UNITS", re.IGNORECASE),
]

LOT_AREA_PATTERNS = [
    re.compile(r"(?:LOT|SITE|LAND)\s+(?:AREA|SIZE)[:\s]*([\d,]+)\s*(?:SF|SQ\.?\s*(?:FT)?|SQUARE\s+FEET)?", re.IGNORECASE),
    re.compile(r"(?:TAX\s+)?LOT\s+(?:AREA|SIZE)\s*(?:\(SF\))?[:\s]*([\d,]+)", re.IGNORECASE),
    re.compile(r"SITE\s+AREA[:\s]*([\d,]+)", re.IGNORECASE),
]

FAR_PATTERNS = [
    re.compile(r"(?:PROPOSED\s+)?(?:RESIDENTIAL\s+)?(?:FAR|FLOOR\s+AREA\s+RATIO)[:\s]*([\d.]+)", re.IGNORECASE),
    re.compile(r"(?:RESID(?:ENTIAL)?\.?\s+)?FAR[:\s]*([\d.]+)", re.IGNORECASE),
    re.compile(r"(?:MAX|MAXIMUM)\s+(?:ALLOWABLE\s+)?FAR[:\s]*([\d.]+)", re.IGNORECASE),
    re.compile(r"FAR\s*=\s*([\d.]+)", re.IGNORECASE),
    re.compile(r"BULK\s+(?:FAR|FLOOR\s+AREA\s+RATIO)[:\s]*([\d.]+)", re.IGNORECASE),
]

ZFA_PATTERNS = [
    re.compile(r"(?:ZONING\s+)?FLOOR\s+AREA[:\s]*([\d,]+)\s*(?:SF|SQ|SQFT)?", re.IGNORECASE),
    re.compile(r"ZFA[:\s]*([\d,]+)", re.IGNORECASE),
    re.compile(r"TOTAL\s+(?:ZONING\s+)?FLOOR\s+AREA[:\s]*([\d,]+)", re.IGNORECASE),
]

ZONE_PATTERNS = [
    re.compile(r"ZONING\s*(?:DISTRICT)?[:\s]*((?:R|C|M)\d[\w/-]*)", re.IGNORECASE),
    re.compile(r"(?:^|\s)ZONE[:\s]*((?:R|C|M)\d[\w/-]*)", re.IGNORECASE),
]


def is_zoning_page(text: str, min_hits: int = EXTRACTOR_POLICY.zoning_page_min_hits) -> bool:
    upper = text.upper()
    return sum(1 for keyword in ZONING_GATE_KEYWORDS if keyword in upper) >= min_hits


def _zoning_scope(pages: list[PageText], policy: ExtractorPolicy) -> PageScope:
    zoning_pages = [page for page in pages if is_zoning_page(page.text, policy.zoning_page_min_hits)]
    return scope_pages(pages, zoning_pages, policy.zoning_page_confidence, policy.zoning_fallback_confidence)


def collect_zoning_unit_mentions(pages: list[PageText], policy: ExtractorPolicy = EXTRACTOR_POLICY) -> list[UnitCountMention]:
    zoning_pages = [page for page in pages if is_zoning_page(page.text, policy.zoning_page_min_hits)]
    if not zoning_pages:
        return []
    scope = PageScope(pages=zoning_pages, confidence=policy.zoning_page_confidence)
    return collect_mentions(scope, DWELLING_UNIT_PATTERNS, "zoning_text", policy.max_units, policy.snippet_radius)


def extract_zoning_signals(pages: list[PageText], policy: ExtractorPolicy = EXTRACTOR_POLICY) -> ZoningSignals:
    scope = _zoning_scope(pages, policy)
    radius = policy.snippet_radius
    return ZoningSignals(
        total_dwelling_units=as_int_signal(
            first_numeric_signal(scope, DWELLING_UNIT_PATTERNS, "zoning_text", radius), 1, policy.max_units
        ),
        lot_area=first_numeric_signal(scope, LOT_AREA_PATTERNS, "zoning_text", radius),
        far=in_range(
            first_numeric_signal(scope, FAR_PATTERNS, "zoning_text", radius), policy.min_far, policy.max_far
        ),
        zoning_floor_area=first_numeric_signal(scope, ZFA_PATTERNS, "zoning_text", radius),
        zone=first_string_signal(scope, ZONE_PATTERNS, "zoning_text", radius),
    )
