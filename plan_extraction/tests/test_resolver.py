from plan_extraction.models.contracts import (
    CoverSheetSignals,
    Evidence,
    Signal,
    TableUnitSignals,
    UnitCountMention,
    ZoningSignals,
)
from plan_extraction.pipelines.resolver import (
    compute_redundancy_score,
    merge_zoning,
    resolve_extraction,
    resolve_unit_count,
)


def _signal(value, confidence: float, source_type: str = "cover_sheet", page: int = 1) -> Signal:
    evidence = Evidence(page=page, snippet=f"{value}", source_type=source_type, confidence=confidence)
    return Signal(value=value, confidence=confidence, evidence=(evidence,))


def _mention(value: int, source_type: str, page: int) -> UnitCountMention:
    return UnitCountMention(value=value, page=page, source_type=source_type, snippet=str(value), confidence=0.9)


def test_agreeing_cover_and_zoning_counts() -> None:
    cover = CoverSheetSignals(total_units=_signal(14, 0.9))
    zoning = ZoningSignals(total_dwelling_units=_signal(14, 0.85, "zoning_text", 2))
    mentions = [_mention(14, "cover_sheet", 1), _mention(14, "zoning_text", 2)]

    result = resolve_extraction(cover, zoning, TableUnitSignals(), [], False, mentions)

    assert result.total_units.value == 14
    assert result.total_units.confidence >= 0.85
    assert result.total_units.evidence[0].source_type == "cover_sheet"
    assert result.redundancy_score == 0.85
    assert result.status == "complete"


def test_small_count_wins_against_outlier() -> None:
    warnings: list[str] = []
    cover = CoverSheetSignals(total_units=_signal(14, 0.7))
    zoning = ZoningSignals(total_dwelling_units=_signal(150, 0.6, "zoning_text", 2))

    resolved = resolve_unit_count(cover, zoning, TableUnitSignals(), [], warnings)

    assert resolved.value == 14
    assert len(warnings) == 1
    assert "cover_sheet says 14" in warnings[0]
    assert "zoning says 150" in warnings[0]


def test_outlier_penalty_overturns_a_more_confident_source() -> None:
    warnings: list[str] = []
    cover = CoverSheetSignals(total_units=_signal(14, 0.5))
    tables = TableUnitSignals(total_units=_signal(150, 0.9, "unit_schedule_table", 4))

    resolved = resolve_unit_count(cover, ZoningSignals(), tables, [], warnings)

    assert resolved.value == 14
    assert resolved.confidence == 0.45
    assert "table says 150" in warnings[0]


def test_single_source_is_capped() -> None:
    resolved = resolve_unit_count(CoverSheetSignals(total_units=_signal(14, 0.9)), ZoningSignals(), TableUnitSignals(), [], [])
    assert resolved.confidence == 0.6


def test_no_candidates_resolve_to_none() -> None:
    assert resolve_unit_count(CoverSheetSignals(), ZoningSignals(), TableUnitSignals(), [], []) is None


def test_three_agreeing_sources_reach_full_confidence() -> None:
    cover = CoverSheetSignals(total_units=_signal(14, 0.9))
    zoning = ZoningSignals(total_dwelling_units=_signal(15, 0.85, "zoning_text", 2))
    tables = TableUnitSignals(total_units=_signal(14, 0.8, "unit_schedule_table", 4))
    mentions = [_mention(14, "cover_sheet", 1), _mention(15, "zoning_text", 2), _mention(14, "unit_schedule_table", 4)]

    resolved = resolve_unit_count(cover, zoning, tables, mentions, [])
    assert resolved.value == 14
    assert resolved.confidence == 1.0


def test_redundancy_score_levels() -> None:
    mentions = [
        _mention(14, "cover_sheet", 1),
        _mention(13, "zoning_text", 2),
        _mention(16, "unit_schedule_table", 4),
        _mention(14, "llm", -1),
    ]
    assert compute_redundancy_score([], 14) == 0.0
    assert compute_redundancy_score(mentions[:1], 14) == 0.6
    assert compute_redundancy_score(mentions[:2], 14) == 0.85
    assert compute_redundancy_score(mentions[:3], 14) == 0.95
    assert compute_redundancy_score(mentions, 14) == 0.95
    assert compute_redundancy_score([_mention(40, "cover_sheet", 1)], 14) == 0.0


def test_repeated_mentions_on_one_page_count_once() -> None:
    mentions = [_mention(14, "cover_sheet", 1), _mention(15, "cover_sheet", 1)]
    assert compute_redundancy_score(mentions, 14) == 0.6


def test_zoning_fields_fall_back_to_cover_sheet() -> None:
    cover = CoverSheetSignals(lot_area=_signal(5000.0, 0.9), far=_signal(3.6, 0.9), zone=_signal("R6A", 0.9))
    zoning = ZoningSignals(far=_signal(3.44, 0.85, "zoning_text", 2))
    merged = merge_zoning(cover, zoning)
    assert merged.lot_area.value == 5000.0
    assert merged.far.value == 3.44
    assert merged.zone.value == "R6A"


def test_missing_schedule_warnings() -> None:
    cover = CoverSheetSignals(total_units=_signal(14, 0.9))
    result = resolve_extraction(cover, ZoningSignals(), TableUnitSignals(), [], False, [])
    assert "Unit mix schedule not found; not inferred from floor plans." in result.warnings
    assert any("No unit schedule table found" in warning for warning in result.warnings)
