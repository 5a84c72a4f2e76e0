from __future__ import annotations

from plan_extraction.models.contracts import ClassifiedTable, RawTable, TableType
from plan_extraction.policy import TABLE_POLICY, TablePolicy

LIGHT_VENT_KEYWORDS = [
    "NATURAL LIGHT",
    "VENTILATION",
    "ROOM ID",
    "REQ'D",
    "PROVIDED",
    "WINDOW",
    "AIR SHAFT",
    "LIGHT & VENT",
    "LIGHT AND VENT",
    "REQUIRED AREA",
    "PROVIDED AREA",
    "OPENING",
]

UNIT_SCHEDULE_KEYWORDS = [
    "UNIT",
    "APT",
    "BEDROOM",
    "TYPE",
    "STUDIO",
    "1BR",
    "2BR",
    "NO. OF UNITS",
    "UNIT NO",
    "UNIT TYPE",
    "NO OF UNITS",
    "APARTMENT",
    "APT. NO",
    "DWELLING UNIT",
    "DU TYPE",
    "UNIT SIZE",
    "UNIT NO.",
    "INCOME BAND",
    "AMI",
    "AFFORDABLE",
    "MARKET RATE",
    "MIH",
    "RENT STABILIZED",
    "NET SF",
    "GROSS SF",
]

ZONING_KEYWORDS = [
    "FAR",
    "LOT AREA",
    "ZONING",
    "USE GROUP",
    "FLOOR AREA RATIO",
    "ZFA",
    "ZONING FLOOR AREA",
    "PERMITTED",
    "PROPOSED FAR",
]

OCCUPANCY_KEYWORDS = ["OCCUPANT LOAD", "OCCUPANCY", "CAPACITY", "PERSONS", "OCCUPANCY GROUP", "EGRESS"]

AFFORDABILITY_KEYWORDS = ["AFFORDABLE", "AMI", "MIH", "MARKET RATE", "INCOME BAND", "RENT STABILIZED"]

ROOM_NAMES = {
    "BEDROOM",
    "LIVING ROOM",
    "KITCHEN",
    "BATHROOM",
    "DINING",
    "CLOSET",
    "FOYER",
    "HALL",
    "ALCOVE",
    "LIVING/DINING",
    "BATH",
    "W.I.C",
    "WIC",
    "LIVING",
    "DINING ROOM",
}


def count_keyword_hits(text: str, keywords: list[str]) -> int:
    upper = text.upper()
    return sum(1 for keyword in keywords if keyword in upper)


def has_room_name_rows(rows: list[list[str]], policy: TablePolicy = TABLE_POLICY) -> bool:
    hits = 0
    for row in rows[: policy.room_override_rows]:
        if any(cell.strip().upper() in ROOM_NAMES for cell in row):
            hits += 1
    return hits >= policy.room_override_min_rows


def classify_table(
    headers: list[str], sample_rows: list[list[str]], policy: TablePolicy = TABLE_POLICY
) -> tuple[TableType, float]:
    """Semantic type of a table from its header text, overridden by room-name rows."""
    if has_room_name_rows(sample_rows, policy):
        return "light_ventilation_schedule", policy.room_override_confidence

    header_text = " ".join(headers)

    def scored(score: int) -> float:
        return min(policy.max_confidence, policy.base_confidence + score * policy.per_hit_confidence)

    light_vent_score = count_keyword_hits(header_text, LIGHT_VENT_KEYWORDS)
    if light_vent_score >= 2:
        return "light_ventilation_schedule", scored(light_vent_score)

    candidates: list[tuple[TableType, int]] = [
        (
            "unit_schedule",
            count_keyword_hits(header_text, UNIT_SCHEDULE_KEYWORDS)
            + count_keyword_hits(header_text, AFFORDABILITY_KEYWORDS),
        ),
        ("zoning_table", count_keyword_hits(header_text, ZONING_KEYWORDS)),
        ("occupancy_load", count_keyword_hits(header_text, OCCUPANCY_KEYWORDS)),
    ]
    best_type, best_score = max(candidates, key=lambda item: item[1])
    if best_score >= 2:
        return best_type, scored(best_score)
    if best_score == 1:
        return best_type, policy.single_hit_confidence
    return "unknown", policy.unknown_confidence


def classify_tables(tables: list[RawTable], policy: TablePolicy = TABLE_POLICY) -> list[ClassifiedTable]:
    classified: list[ClassifiedTable] = []
    for table in tables:
        table_type, confidence = classify_table(table.headers, table.rows[: policy.room_override_rows], policy)
        classified.append(
            ClassifiedTable(
                table_type=table_type,
                confidence=confidence,
                page_index=table.page_index,
                table_index=table.table_index,
                headers=table.headers,
                rows=table.rows,
                source=table.source,
            )
        )
    return classified
