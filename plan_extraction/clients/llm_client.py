from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any

from plan_extraction.clients.base import BaseCollaboratorClient, CollaboratorError
from plan_extraction.models.contracts import LlmExtraction, LlmUnitRecord, ReferenceData
from plan_extraction.policy import RECONCILIATION_POLICY, ReconciliationPolicy

logger = logging.getLogger(__name__)

DECLARED_UNIT_PATTERNS = [
    re.compile(r"#?\s*(?:OF\s+)?UNITS[:\s]+(\d{1,4})", re.IGNORECASE),
    re.compile(r"PROPOSED\s+(\d{1,4})\s*[-]?\s*UNIT", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s*[-]?\s*UNIT\s+(?:APARTMENT|RESIDENTIAL|DWELLING)\s+(?:BUILDING|PROJECT)", re.IGNORECASE),
    re.compile(r"TOTAL\s+(?:DWELLING\s+)?UNITS[:\s]*(\d{1,4})", re.IGNORECASE),
    re.compile(r"(\d{1,4})\s+DWELLING\s+UNITS", re.IGNORECASE),
]

NOISE_IDS = {
    "BLOCK", "LOT", "BIN", "DATE", "TOTAL", "BUILDING", "FLOOR", "PROJECT",
    "ZONE", "ZONING", "FAR", "OCCUPANCY", "EGRESS", "CORRIDOR", "STAIRS",
    "STAIR", "HALLWAY", "LOBBY", "MECHANICAL", "STORAGE", "LAUNDRY",
    "CELLAR", "ROOF", "SUSTAINABLE", "COMMON", "COMMUNITY",
}

VALID_BEDROOM_TYPES = {"STUDIO", "1BR", "2BR", "3BR", "4BR_PLUS", "UNKNOWN"}
MIX_KEYS = {"STUDIO": "studio", "1BR": "br1", "2BR": "br2", "3BR": "br3", "4BR_PLUS": "br4plus"}

PENTHOUSE_FLOOR = 9999
UNNUMBERED_FLOOR = 5000
LEADING_DIGITS_RE = re.compile(r"^(\d+)")


def declared_units_from_pages(pages: list[dict[str, Any]]) -> int | None:
    """Unit count stated on cover-sheet pages of an LLM request payload, if any."""
    cover_pages = [page for page in pages if page.get("type") == "COVER_SHEET"]
    search_pages = cover_pages or pages
    for pattern in DECLARED_UNIT_PATTERNS:
        for page in search_pages:
            match = pattern.search(page.get("text", ""))
            if match and 1 <= int(match.group(1)) <= 500:
                return int(match.group(1))
    return None


def derive_floor(unit_id: str) -> int:
    upper = unit_id.strip().upper()
    if upper.startswith("PH"):
        return PENTHOUSE_FLOOR
    match = LEADING_DIGITS_RE.match(upper)
    if match:
        return int(match.group(1))
    return UNNUMBERED_FLOOR


def sanitize_extraction(
    extraction: LlmExtraction, declared_units: int | None, policy: ReconciliationPolicy = RECONCILIATION_POLICY
) -> LlmExtraction:
    """Re-apply the collaborator's sanity rules: dedupe, drop noise, cap records against the declared count."""
    records: list[LlmUnitRecord] = []
    seen: set[str] = set()
    for record in extraction.unit_records:
        key = record.unit_id.strip().upper()
        if key in seen:
            continue
        seen.add(key)
        if not policy.min_record_area_sf <= record.area_sf <= policy.max_record_area_sf:
            continue
        if key in NOISE_IDS:
            continue
        records.append(record)

    records = [
        record if record.bedroom_type in VALID_BEDROOM_TYPES else replace(record, bedroom_type="UNKNOWN")
        for record in records
    ]
    sanitized = replace(extraction, unit_records=records, warnings=list(extraction.warnings))

    if declared_units is None or len(records) <= declared_units * policy.record_excess_factor:
        return sanitized

    before = len(records)
    kept = sorted(records, key=lambda r: (derive_floor(r.unit_id), r.unit_id.strip().upper()))[:declared_units]
    counts = {key: 0 for key in MIX_KEYS.values()}
    for record in kept:
        mix_key = MIX_KEYS.get(record.bedroom_type.upper())
        if mix_key is not None:
            counts[mix_key] += 1
    logger.info(f"LLM returned {before} unit records for {declared_units} declared units; capping")
    return replace(
        sanitized,
        unit_records=kept,
        total_units=declared_units,
        unit_mix={key: (count or None) for key, count in counts.items()},
        overall_confidence=min(sanitized.overall_confidence, policy.llm_confidence_cap),
        warnings=sanitized.warnings
        + [
            f"LLM unitRecords ({before}) exceeded cover-sheet units ({declared_units}); "
            f"capped to {declared_units}. Verify schedule."
        ],
    )


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _count(value: Any) -> int | None:
    number = _number(value)
    return None if number is None else int(number)


def parse_extraction(data: dict[str, Any]) -> LlmExtraction:
    """Map the collaborator's camelCase schema onto LlmExtraction. Missing sections read as nulls."""
    totals = data.get("totals") or {}
    mix = data.get("unitMix") or {}
    zoning = data.get("zoning") or {}
    building = data.get("building") or {}
    confidence = data.get("confidence") or {}

    records: list[LlmUnitRecord] = []
    for raw in data.get("unitRecords") or []:
        area = _number(raw.get("areaSf"))
        if not raw.get("unitId") or area is None:
            continue
        records.append(
            LlmUnitRecord(
                unit_id=str(raw["unitId"]),
                area_sf=area,
                bedroom_type=str(raw.get("bedroomType") or "UNKNOWN"),
                floor=None if raw.get("floor") is None else str(raw["floor"]),
            )
        )

    zone = zoning.get("zone")
    overall = _number(confidence.get("overall"))
    return LlmExtraction(
        total_units=_count(totals.get("totalUnits")),
        affordable_units=_count(totals.get("affordableUnits")),
        market_units=_count(totals.get("marketUnits")),
        unit_mix={key: _count(mix.get(key)) for key in MIX_KEYS.values()},
        unit_records=records,
        lot_area_sf=_number(zoning.get("lotAreaSf")),
        zoning_floor_area_sf=_number(zoning.get("zoningFloorAreaSf")),
        far=_number(zoning.get("far")),
        zone=str(zone).strip() if zone else None,
        max_far=_number(zoning.get("maxFar")),
        floors=_count(building.get("floors")),
        building_area_sf=_number(building.get("buildingAreaSf")),
        overall_confidence=0.5 if overall is None else overall,
        warnings=[str(warning) for warning in confidence.get("warnings") or []],
    )


def build_city_context(reference: ReferenceData | None, zone_district: str | None = None) -> str:
    if reference is None:
        return ""
    lines = [
        "Property records indicate:",
        f"- Lot Area: {reference.lot_area:,.0f} SF",
        f"- Residential FAR: {reference.resid_far}",
        f"- Building Area: {reference.bldg_area:,.0f} SF",
        f"- Max Residential Floor Area: ~{reference.lot_area * reference.resid_far:,.0f} SF",
    ]
    if zone_district:
        lines.append(f"- Zone District: {zone_district}")
    lines.extend(
        [
            "",
            "Verify that your extraction is consistent with these city parameters.",
            "If any extracted value deviates significantly from city data, add a warning explaining the discrepancy.",
        ]
    )
    return "\n".join(lines)


class LlmExtractionClient(BaseCollaboratorClient):
    """Language-model extraction collaborator. One POST per run with the selected page texts."""

    async def extract(
        self,
        pages: list[dict[str, Any]],
        city_context: str = "",
        declared_units: int | None = None,
    ) -> LlmExtraction:
        payload: dict[str, Any] = {"pages": pages}
        if city_context:
            payload["cityContext"] = city_context
        data = await self._request_json("POST", json=payload)
        if not isinstance(data, dict) or not isinstance(data.get("extraction"), dict):
            raise CollaboratorError("LLM extraction reply had no extraction object")
        try:
            extraction = parse_extraction(data["extraction"])
        except (AttributeError, TypeError, ValueError) as exc:
            raise CollaboratorError(f"Malformed LLM extraction: {exc}") from exc
        if declared_units is None:
            declared_units = declared_units_from_pages(pages)
        return sanitize_extraction(extraction, declared_units)
