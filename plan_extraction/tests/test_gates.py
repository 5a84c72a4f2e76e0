from plan_extraction.models.contracts import (
    Evidence,
    ExtractionResult,
    ReferenceData,
    Signal,
    UnitCountMention,
    ZoningSignals,
)
from plan_extraction.validators.gates import (
    apply_validation_gates,
    far_gate,
    implied_max_units,
    implied_min_units,
    lot_area_gate,
    mention_conflict_gate,
    unit_count_gate,
)

EVIDENCE = (Evidence(page=2, snippet="FAR: 3.0", source_type="zoning_text", confidence=0.85),)
REFERENCE = ReferenceData(lot_area=10000.0, resid_far=2.0)


def _signal(value, confidence: float = 0.85) -> Signal:
    return Signal(value=value, confidence=confidence, evidence=EVIDENCE)


def _mention(value: int, source_type: str, page: int) -> UnitCountMention:
    return UnitCountMention(value=value, page=page, source_type=source_type, snippet=str(value), confidence=0.9)


def test_implied_unit_bounds() -> None:
    assert implied_max_units(REFERENCE) == 20
    assert implied_min_units(REFERENCE) == 15


def test_unit_count_gate_levels() -> None:
    assert unit_count_gate(14, EVIDENCE, REFERENCE).status == "PASS"
    assert unit_count_gate(25, EVIDENCE, REFERENCE).status == "WARN"
    assert unit_count_gate(7, EVIDENCE, REFERENCE).status == "WARN"
    assert unit_count_gate(31, EVIDENCE, REFERENCE).status == "NEEDS_OVERRIDE"
    assert unit_count_gate(2, EVIDENCE, REFERENCE).status == "NEEDS_OVERRIDE"
    assert unit_count_gate(14, EVIDENCE, REFERENCE).expected_range == (3, 30)


def test_far_gate_boundary_at_twenty_percent() -> None:
    reference = ReferenceData(lot_area=10000.0, resid_far=2.5)
    assert far_gate(3.0, EVIDENCE, reference).status == "PASS"
    assert far_gate(3.01, EVIDENCE, reference).status == "WARN"
    assert far_gate(4.0, EVIDENCE, reference).status == "NEEDS_OVERRIDE"


def test_far_gate_uses_zone_ceiling_when_known() -> None:
    reference = ReferenceData(lot_area=10000.0, resid_far=2.5)
    gate = far_gate(4.0, EVIDENCE, reference, zone="R7A", zoning_lookup=lambda zone: 5.0 if zone == "R7A" else None)
    assert gate.status == "WARN"
    assert gate.expected_range == (2.0, 5.0)
    assert "R7A" in gate.city_basis


def test_lot_area_gate_boundaries() -> None:
    assert lot_area_gate(10000.0, EVIDENCE, REFERENCE).status == "PASS"
    assert lot_area_gate(10800.0, EVIDENCE, REFERENCE).status == "PASS"
    assert lot_area_gate(11500.0, EVIDENCE, REFERENCE).status == "WARN"
    assert lot_area_gate(11501.0, EVIDENCE, REFERENCE).status == "NEEDS_OVERRIDE"
    assert lot_area_gate(8500.0, EVIDENCE, REFERENCE).status == "WARN"


def test_mention_conflict_gate_levels() -> None:
    agreeing = ExtractionResult(
        status="complete",
        total_units=_signal(14),
        unit_count_mentions=[_mention(14, "cover_sheet", 1), _mention(14, "zoning_text", 2), _mention(40, "regex", 5)],
    )
    gate = mention_conflict_gate(agreeing)
    assert gate.status == "WARN"
    assert gate.field == "unit_count_redundancy"
    assert gate.expected_range == (14, 40)

    conflicting = ExtractionResult(
        status="complete",
        total_units=_signal(14),
        unit_count_mentions=[_mention(14, "cover_sheet", 1), _mention(40, "zoning_text", 2)],
    )
    assert mention_conflict_gate(conflicting).status == "CONFLICTING"


def test_mention_conflict_gate_silent_when_mentions_agree() -> None:
    result = ExtractionResult(
        status="complete",
        total_units=_signal(14),
        unit_count_mentions=[_mention(14, "cover_sheet", 1), _mention(15, "zoning_text", 2)],
    )
    assert mention_conflict_gate(result) is None


def test_apply_gates_order_and_manual_flags() -> None:
    result = ExtractionResult(
        status="complete",
        total_units=_signal(60),
        zoning=ZoningSignals(lot_area=_signal(10000.0), far=_signal(2.1)),
    )
    gates = apply_validation_gates(result, REFERENCE)
    assert [gate.field for gate in gates] == ["total_units", "far", "lot_area"]
    assert [gate.status for gate in gates] == ["NEEDS_OVERRIDE", "PASS", "PASS"]

    flagged = ExtractionResult(status="complete", validation_gates=gates)
    assert flagged.needs_manual_confirmation
    assert flagged.needs_manual_fields == ["total_units"]


def test_no_reference_means_no_reference_gates() -> None:
    result = ExtractionResult(status="complete", total_units=_signal(14), zoning=ZoningSignals(far=_signal(9.0)))
    assert apply_validation_gates(result, None) == []
