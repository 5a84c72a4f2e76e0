from __future__ import annotations

import math
from typing import Callable

from plan_extraction.models.contracts import (
    Evidence,
    ExtractionResult,
    GateStatus,
    ReferenceData,
    ValidationGate,
)
from plan_extraction.policy import GATE_POLICY, GatePolicy

# Zoning district (e.g. "R7A") -> maximum FAR with the affordable-housing bonus, or None when unknown.
ZoningLookup = Callable[[str], float | None]


def _deviation(value: float, reference: float) -> float:
    return round(abs(value - reference) / reference, 6)


def _usable_floor_area(reference: ReferenceData, policy: GatePolicy) -> float:
    return reference.lot_area * reference.resid_far * policy.efficiency_factor


def implied_max_units(reference: ReferenceData, policy: GatePolicy = GATE_POLICY) -> int:
    return math.ceil(_usable_floor_area(reference, policy) / policy.max_unit_size_sf)


def implied_min_units(reference: ReferenceData, policy: GatePolicy = GATE_POLICY) -> int:
    per_unit = policy.min_unit_size_sf * policy.min_unit_size_multiplier
    return max(1, math.floor(_usable_floor_area(reference, policy) / per_unit))


def unit_count_gate(
    units: int, evidence: tuple[Evidence, ...], reference: ReferenceData, policy: GatePolicy = GATE_POLICY
) -> ValidationGate:
    implied_max = implied_max_units(reference, policy)
    implied_min = implied_min_units(reference, policy)
    ceiling = math.ceil(implied_max * policy.unit_ceiling_factor)
    floor = max(1, math.floor(implied_min * policy.unit_floor_factor))
    basis = f"Lot {reference.lot_area:,.0f} SF, FAR {reference.resid_far}"

    status: GateStatus = "PASS"
    message = f"Unit count {units} is within expected range ({floor}-{ceiling})"
    if units > ceiling:
        status = "NEEDS_OVERRIDE"
        message = f"Extracted unit count ({units}) exceeds 150% of reference-implied maximum ({implied_max}). {basis}"
    elif units < floor:
        status = "NEEDS_OVERRIDE"
        message = f"Extracted unit count ({units}) is below 25% of reference-implied minimum ({implied_min}). {basis}"
    elif units > implied_max * policy.unit_warn_high or units < implied_min * policy.unit_warn_low:
        status = "WARN"
        message = f"Unit count {units} is borderline. Reference data implies {implied_min}-{implied_max} units."

    return ValidationGate(
        field="total_units",
        extracted_value=units,
        expected_range=(floor, ceiling),
        city_basis=f"Reference lot area {reference.lot_area:,.0f} SF, resid FAR {reference.resid_far}",
        status=status,
        evidence=evidence,
        message=message,
    )


def far_gate(
    far: float,
    evidence: tuple[Evidence, ...],
    reference: ReferenceData,
    zone: str | None = None,
    zoning_lookup: ZoningLookup | None = None,
    policy: GatePolicy = GATE_POLICY,
) -> ValidationGate:
    reference_far = reference.resid_far
    deviation = _deviation(far, reference_far)
    zone_max = zoning_lookup(zone) if zone and zoning_lookup is not None else None
    max_legal = zone_max if zone_max is not None else reference_far * policy.far_affordable_fallback_factor

    status: GateStatus = "PASS"
    message = f"Extracted FAR {far:.2f} is within 20% of reference FAR {reference_far:.2f}"
    if deviation > policy.far_pass_deviation:
        if far <= max_legal:
            status = "WARN"
            message = (
                f"Extracted FAR {far:.2f} deviates {deviation * 100:.0f}% from reference FAR {reference_far:.2f}, "
                f"but within affordable bonus FAR ({max_legal:.2f})"
            )
        else:
            status = "NEEDS_OVERRIDE"
            message = (
                f"Extracted FAR {far:.2f} deviates {deviation * 100:.0f}% from reference FAR {reference_far:.2f} "
                f"and exceeds max legal FAR ({max_legal:.2f})"
            )

    basis = f"Reference resid FAR {reference_far:.2f}"
    if zone_max is not None:
        basis += f", zone {zone} max affordable FAR {max_legal:.2f}"
    return ValidationGate(
        field="far",
        extracted_value=far,
        expected_range=(reference_far * policy.far_expected_low_factor, max_legal),
        city_basis=basis,
        status=status,
        evidence=evidence,
        message=message,
    )


def lot_area_gate(
    lot_area: float, evidence: tuple[Evidence, ...], reference: ReferenceData, policy: GatePolicy = GATE_POLICY
) -> ValidationGate:
    deviation = _deviation(lot_area, reference.lot_area)
    status: GateStatus = "PASS"
    message = f"Extracted lot area {lot_area:,.0f} SF matches reference {reference.lot_area:,.0f} SF"
    if deviation > policy.lot_warn_deviation:
        status = "NEEDS_OVERRIDE"
        message = (
            f"Extracted lot area {lot_area:,.0f} SF deviates {deviation * 100:.0f}% "
            f"from reference {reference.lot_area:,.0f} SF"
        )
    elif deviation > policy.lot_pass_deviation:
        status = "WARN"
        message = (
            f"Extracted lot area {lot_area:,.0f} SF differs by {deviation * 100:.0f}% "
            f"from reference {reference.lot_area:,.0f} SF"
        )

    return ValidationGate(
        field="lot_area",
        extracted_value=lot_area,
        expected_range=(
            reference.lot_area * (1 - policy.lot_warn_deviation),
            reference.lot_area * (1 + policy.lot_warn_deviation),
        ),
        city_basis=f"Reference lot area {reference.lot_area:,.0f} SF",
        status=status,
        evidence=evidence,
        message=message,
    )


def mention_conflict_gate(result: ExtractionResult, policy: GatePolicy = GATE_POLICY) -> ValidationGate | None:
    """Flags mentions that disagree with the resolved count. Needs no reference data."""
    mentions = result.unit_count_mentions
    values = [mention.value for mention in mentions]
    unique = list(dict.fromkeys(values))
    if len(unique) < 2:
        return None

    resolved = result.total_units.value if result.total_units is not None else 0
    disagreeing = [mention for mention in mentions if abs(mention.value - resolved) > policy.conflict_window]
    if not disagreeing:
        return None
    agreeing = len(values) - len(disagreeing)
    max_disagree = max(mention.value for mention in disagreeing)
    variance = abs(max_disagree - resolved) / resolved if resolved > 0 else 1.0
    disagreeing_values = ", ".join(str(value) for value in dict.fromkeys(m.value for m in disagreeing))

    status: GateStatus = "WARN"
    message = (
        f"{agreeing}/{len(values)} sources agree on ~{resolved} units; "
        f"{len(disagreeing)} disagree ({disagreeing_values})"
    )
    if variance > policy.conflict_variance and agreeing < policy.conflict_min_agreeing:
        status = "CONFLICTING"
        message = (
            f"Significant conflict: sources report {', '.join(str(value) for value in unique)} units. "
            f"Only {agreeing} source(s) agree on {resolved}."
        )

    return ValidationGate(
        field="unit_count_redundancy",
        extracted_value=resolved,
        expected_range=(min(values), max(values)),
        city_basis=f"{len(values)} mentions found across document ({result.redundancy_score:.2f} redundancy score)",
        status=status,
        evidence=tuple(
            Evidence(page=m.page, snippet=m.snippet, source_type=m.source_type, confidence=m.confidence)
            for m in disagreeing
        ),
        message=message,
    )


def apply_validation_gates(
    result: ExtractionResult,
    reference: ReferenceData | None = None,
    zone_district: str | None = None,
    zoning_lookup: ZoningLookup | None = None,
    policy: GatePolicy = GATE_POLICY,
) -> list[ValidationGate]:
    """Advisory comparisons of resolved values against reference data. Never mutates the signals."""
    gates: list[ValidationGate] = []
    has_lot = reference is not None and reference.has_lot_area
    has_far = reference is not None and reference.has_far

    if result.total_units is not None and has_lot and has_far:
        gates.append(unit_count_gate(result.total_units.value, result.total_units.evidence, reference, policy))

    far = result.zoning.far
    if far is not None and has_far:
        zone = zone_district or (result.zoning.zone.value if result.zoning.zone is not None else None)
        gates.append(far_gate(far.value, far.evidence, reference, zone, zoning_lookup, policy))

    conflict = mention_conflict_gate(result, policy)
    if conflict is not None:
        gates.append(conflict)

    lot_area = result.zoning.lot_area
    if lot_area is not None and has_lot:
        gates.append(lot_area_gate(lot_area.value, lot_area.evidence, reference, policy))
    return gates
