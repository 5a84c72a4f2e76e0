from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class ParsedNumber:
    raw: str
    value: float | None
    parse_status: str
    parse_warnings: list[str]


UNIT_SUFFIX_RE = re.compile(r"\s*(?:SQ\.?\s*FT\.?|SQFT|SF|NSF|GSF|SQUARE\s+FEET)\s*$", re.IGNORECASE)
FOOTNOTE_RE = re.compile(r"[*#]+$")
LEADING_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def parse_number(raw: str) -> ParsedNumber:
    text = raw.strip()
    if text in ("", "-", "N/A"):
        return ParsedNumber(raw=raw, value=None, parse_status="blank", parse_warnings=[])

    warnings: list[str] = []
    cleaned = FOOTNOTE_RE.sub("", text)
    if cleaned != text:
        warnings.append("FOOTNOTE_MARKER_REMOVED")

    without_unit = UNIT_SUFFIX_RE.sub("", cleaned)
    if without_unit != cleaned:
        warnings.append("AREA_UNIT_REMOVED")
    cleaned = without_unit.replace(",", "").strip()

    try:
        value = float(cleaned)
    except ValueError:
        return ParsedNumber(raw=raw, value=None, parse_status="invalid", parse_warnings=warnings + ["UNPARSABLE"])
    return ParsedNumber(raw=raw, value=value, parse_status="parsed", parse_warnings=warnings)


def parse_area(raw: str) -> float | None:
    """First numeric token in a cell such as "~ 650 SF (net)", or None."""
    parsed = parse_number(raw)
    if parsed.value is not None:
        return parsed.value
    match = LEADING_NUMBER_RE.search(raw)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def parse_group_number(raw: str) -> float | None:
    """Parse a regex capture group like "10,000" or "3.44" into a float."""
    cleaned = raw.replace(",", "").strip().rstrip(".")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None
