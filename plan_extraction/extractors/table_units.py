from __future__ import annotations

import re

from plan_extraction.models.contracts import (
    ClassifiedTable,
    Evidence,
    Signal,
    TableUnitSignals,
    UnitCountMention,
    UnitRecord,
)
from plan_extraction.normalizers.numeric import parse_area
from plan_extraction.policy import EXTRACTOR_POLICY, ExtractorPolicy

UNIT_ID_COLUMN_RE = re.compile(r"\b(UNIT|APT|NO\.?|APARTMENT)\b", re.IGNORECASE)
BEDROOM_COLUMN_RE = re.compile(r"\b(TYPE|BEDROOM|BR|BED)\b", re.IGNORECASE)
AREA_COLUMN_RE = re.compile(r"\b(SF|SQ\.?\s*FT|AREA|NSF|GSF)\b", re.IGNORECASE)
ALLOCATION_COLUMN_RE = re.compile(r"\b(ALLOCATION|AFFORDABLE|AFFORDABILITY|MIH|AMI|INCOME|TENURE|MARKET)\b", re.IGNORECASE)
ALL_CAPS_WORD_RE = re.compile(r"^[A-Z]{5,}$")

SKIP_ROW_VALUES = {"TOTAL", "SUBTOTAL", "SUB-TOTAL", "GRAND TOTAL", "", "N/A", "-"}


def find_column(headers: list[str], pattern: re.Pattern[str], exclude: tuple[int, ...] = ()) -> int | None:
    for index, header in enumerate(headers):
        if index in exclude:
            continue
        if pattern.search(header):
            return index
    return None


def is_valid_unit_id(raw: str) -> bool:
    trimmed = raw.strip().upper()
    if not trimmed or len(trimmed) > 20:
        return False
    if trimmed in SKIP_ROW_VALUES:
        return False
    return not ALL_CAPS_WORD_RE.match(trimmed)


def infer_bedroom_type(raw: str) -> str:
    compact = re.sub(r"[- ]", "", raw.upper()).strip()
    if "STUDIO" in compact or compact in ("S", "0BR"):
        return "STUDIO"
    if compact in ("1BR", "1") or "ONEBEDROOM" in compact or "1BDRM" in compact:
        return "1BR"
    if compact in ("2BR", "2") or "TWOBEDROOM" in compact or "2BDRM" in compact:
        return "2BR"
    if compact in ("3BR", "3") or "THREEBEDROOM" in compact or "3BDRM" in compact:
        return "3BR"
    if compact.startswith("4") or "FOURBEDROOM" in compact or "4BDRM" in compact:
        return "4BR_PLUS"
    return "UNKNOWN"


def infer_allocation(raw: str) -> str:
    upper = raw.upper()
    if "MIH" in upper:
        return "MIH_RESTRICTED"
    if "MARKET" in upper:
        return "MARKET"
    if "AFFORDABLE" in upper or "AMI" in upper or "%" in upper or "RESTRICTED" in upper:
        return "AFFORDABLE"
    return "UNKNOWN"


def extract_table_unit_signals(
    tables: list[ClassifiedTable], policy: ExtractorPolicy = EXTRACTOR_POLICY
) -> TableUnitSignals:
    """Distinct unit identifiers across every unit schedule table, with per-unit records and a bedroom mix."""
    unit_tables = [table for table in tables if table.table_type == "unit_schedule"]
    seen_ids: set[str] = set()
    bedroom_counts: dict[str, int] = {}
    records: list[UnitRecord] = []
    evidence: list[Evidence] = []
    has_bedroom_column = False

    for table in unit_tables:
        id_col = find_column(table.headers, UNIT_ID_COLUMN_RE)
        if id_col is None:
            continue
        bedroom_col = find_column(table.headers, BEDROOM_COLUMN_RE, exclude=(id_col,))
        area_col = find_column(table.headers, AREA_COLUMN_RE, exclude=(id_col,))
        taken = tuple(col for col in (id_col, bedroom_col, area_col) if col is not None)
        allocation_col = find_column(table.headers, ALLOCATION_COLUMN_RE, exclude=taken)
        if bedroom_col is not None:
            has_bedroom_column = True

        evidence.append(
            Evidence(
                page=table.page_index,
                snippet=f"Unit schedule table: headers=[{', '.join(table.headers)}], {len(table.rows)} rows",
                source_type="unit_schedule_table",
                confidence=table.confidence,
                table_type="unit_schedule",
                table_index=table.table_index,
            )
        )

        for row in table.rows:
            raw_id = row[id_col].strip() if id_col < len(row) else ""
            if not is_valid_unit_id(raw_id):
                continue
            key = raw_id.upper()
            if key in seen_ids:
                continue
            seen_ids.add(key)

            bedroom_raw = row[bedroom_col] if bedroom_col is not None and bedroom_col < len(row) else ""
            bedroom_type = infer_bedroom_type(bedroom_raw) if bedroom_raw.strip() else "UNKNOWN"
            bedroom_counts[bedroom_type] = bedroom_counts.get(bedroom_type, 0) + 1
            allocation_raw = row[allocation_col] if allocation_col is not None and allocation_col < len(row) else ""
            area_raw = row[area_col] if area_col is not None and area_col < len(row) else ""

            records.append(
                UnitRecord(
                    unit_id=raw_id,
                    bedroom_type=bedroom_type,
                    allocation=infer_allocation(allocation_raw),
                    area_sf=parse_area(area_raw) if area_raw.strip() else None,
                    page=table.page_index,
                )
            )

    if not seen_ids:
        return TableUnitSignals()

    evidence_chain = tuple(evidence)
    return TableUnitSignals(
        total_units=Signal(value=len(seen_ids), confidence=policy.table_total_confidence, evidence=evidence_chain),
        unit_mix=(
            Signal(value=dict(bedroom_counts), confidence=policy.table_mix_confidence, evidence=evidence_chain)
            if has_bedroom_column
            else None
        ),
        unit_records=records,
        records_confidence=(
            policy.record_confidence_with_type if has_bedroom_column else policy.record_confidence_without_type
        ),
    )


def table_unit_mentions(signals: TableUnitSignals) -> list[UnitCountMention]:
    if signals.total_units is None:
        return []
    first = signals.total_units.evidence[0]
    return [
        UnitCountMention(
            value=signals.total_units.value,
            page=first.page,
            source_type="unit_schedule_table",
            snippet=f"Table-derived unit count: {signals.total_units.value}",
            confidence=signals.total_units.confidence,
        )
    ]
