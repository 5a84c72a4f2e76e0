from plan_extraction.extractors.matching import leading_number
from plan_extraction.extractors.cover_sheet import collect_cover_unit_mentions, extract_cover_sheet_signals
from plan_extraction.extractors.pdf_text import pages_from_texts
from plan_extraction.extractors.table_units import (
    extract_table_unit_signals,
    infer_allocation,
    infer_bedroom_type,
    is_valid_unit_id,
    table_unit_mentions,
)
from plan_extraction.extractors.zoning_text import (
    collect_zoning_unit_mentions,
    extract_zoning_signals,
    is_zoning_page,
)
from plan_extraction.models.contracts import ClassifiedTable

COVER_PAGE = (
    "COVER SHEET\n"
    "PROPOSED 14 UNIT RESIDENTIAL BUILDING\n"
    "6 STORY\n"
    "ZONING DISTRICT: R6A\n"
    "LOT AREA: 5,000 SF\n"
    "BUILDING AREA: 18,000 SF\n"
    "FAR: 3.6"
)

ZONING_PAGE = (
    "ZONING ANALYSIS\n"
    "ZONING DISTRICT: R7A\n"
    "LOT AREA: 5,000 SF\n"
    "FAR: 3.44\n"
    "ZONING FLOOR AREA: 17,200 SF\n"
    "TOTAL DWELLING UNITS: 14"
)


def test_cover_sheet_signals_from_cover_page() -> None:
    pages = pages_from_texts([COVER_PAGE, "GENERAL NOTES\nTOTAL UNITS: 99"])
    signals = extract_cover_sheet_signals(pages)

    assert signals.total_units.value == 14
    assert signals.total_units.confidence == 0.9
    assert signals.total_units.evidence[0].page == 1
    assert signals.total_units.evidence[0].source_type == "cover_sheet"
    assert signals.floors.value == 6
    assert signals.zone.value == "R6A"
    assert signals.lot_area.value == 5000.0
    assert signals.building_area.value == 18000.0
    assert signals.far.value == 3.6


def test_cover_sheet_falls_back_to_whole_document_at_lower_confidence() -> None:
    pages = pages_from_texts(["SHEET A-001\nPROPOSED 20 UNIT APARTMENT BUILDING"])
    signals = extract_cover_sheet_signals(pages)
    assert signals.total_units.value == 20
    assert signals.total_units.confidence == 0.7


def test_implausible_unit_count_is_dropped() -> None:
    pages = pages_from_texts(["COVER SHEET\nPROPOSED 900 UNITS"])
    assert extract_cover_sheet_signals(pages).total_units is None


def test_cover_mentions_are_deduplicated_per_page() -> None:
    mentions = collect_cover_unit_mentions(pages_from_texts([COVER_PAGE]))
    assert [(m.value, m.page, m.source_type) for m in mentions] == [(14, 1, "cover_sheet")]


def test_zoning_signals_from_zoning_page() -> None:
    pages = pages_from_texts(["GENERAL NOTES", ZONING_PAGE])
    signals = extract_zoning_signals(pages)

    assert signals.total_dwelling_units.value == 14
    assert signals.total_dwelling_units.confidence == 0.85
    assert signals.lot_area.value == 5000.0
    assert signals.far.value == 3.44
    assert signals.zoning_floor_area.value == 17200.0
    assert signals.zone.value == "R7A"


def test_zoning_far_out_of_range_is_rejected() -> None:
    pages = pages_from_texts(["ZONING ANALYSIS\nLOT AREA: 5,000\nFAR: 22"])
    assert extract_zoning_signals(pages).far is None


def test_zoning_mentions_need_a_zoning_page() -> None:
    assert is_zoning_page(ZONING_PAGE)
    assert not is_zoning_page("COVER SHEET\nPROPOSED 14 UNIT RESIDENTIAL BUILDING")
    assert collect_zoning_unit_mentions(pages_from_texts(["TOTAL DWELLING UNITS: 14"])) == []

    mentions = collect_zoning_unit_mentions(pages_from_texts([ZONING_PAGE]))
    assert [(m.value, m.source_type) for m in mentions] == [(14, "zoning_text")]


def _unit_table(rows: list[list[str]], headers: list[str] | None = None) -> ClassifiedTable:
    return ClassifiedTable(
        table_type="unit_schedule",
        confidence=0.9,
        page_index=5,
        table_index=1,
        headers=headers or ["UNIT NO", "TYPE", "NET SF", "ALLOCATION"],
        rows=rows,
    )


def test_table_units_count_distinct_ids() -> None:
    table = _unit_table(
        [
            ["2A", "1BR", "650", "MIH 60% AMI"],
            ["2B", "2 BR", "850", "MARKET"],
            ["2a", "STUDIO", "400", ""],
            ["TOTAL", "", "1900", ""],
        ]
    )
    signals = extract_table_unit_signals([table])

    assert signals.total_units.value == 2
    assert signals.total_units.confidence == 0.8
    assert signals.unit_mix.value == {"1BR": 1, "2BR": 1}
    assert signals.records_confidence == 0.75
    assert [(r.unit_id, r.bedroom_type, r.allocation, r.area_sf) for r in signals.unit_records] == [
        ("2A", "1BR", "MIH_RESTRICTED", 650.0),
        ("2B", "2BR", "MARKET", 850.0),
    ]

    mentions = table_unit_mentions(signals)
    assert [(m.value, m.page, m.source_type) for m in mentions] == [(2, 5, "unit_schedule_table")]


def test_table_units_without_type_column_have_no_mix() -> None:
    table = _unit_table([["3A", "700"], ["3B", "720"]], headers=["APT", "AREA"])
    signals = extract_table_unit_signals([table])
    assert signals.total_units.value == 2
    assert signals.unit_mix is None
    assert signals.records_confidence == 0.6
    assert all(record.bedroom_type == "UNKNOWN" for record in signals.unit_records)


def test_non_unit_tables_are_ignored() -> None:
    table = ClassifiedTable("zoning_table", 0.9, 2, 1, ["UNIT", "FAR"], [["1", "3.0"]])
    signals = extract_table_unit_signals([table])
    assert signals.total_units is None
    assert table_unit_mentions(signals) == []


def test_unit_id_and_type_inference() -> None:
    assert is_valid_unit_id("PH-1")
    assert not is_valid_unit_id("KITCHEN")
    assert not is_valid_unit_id("SUBTOTAL")
    assert infer_bedroom_type("Studio") == "STUDIO"
    assert infer_bedroom_type("3 BR") == "3BR"
    assert infer_bedroom_type("4BR+") == "4BR_PLUS"
    assert infer_bedroom_type("duplex") == "UNKNOWN"
    assert infer_allocation("80% AMI") == "AFFORDABLE"
    assert infer_allocation("") == "UNKNOWN"


def test_leading_number_reads_grouped_digits() -> None:
    assert leading_number("1,250") == 1250.0
    assert leading_number("12,500.5 SF") == 12500.5
    assert leading_number("3.44.") == 3.44
    assert leading_number(".75") == 0.75
    assert leading_number("N/A") is None
