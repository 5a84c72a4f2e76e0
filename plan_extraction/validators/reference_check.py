from __future__ import annotations

import math
from typing import Any

from plan_extraction.models.contracts import ExtractionResult, ReferenceData
from plan_extraction.policy import GATE_POLICY, GatePolicy

UNIT_DIFF_THRESHOLD = 0.4
CONFIDENT_ENOUGH = 0.8
LOT_DIFF_THRESHOLD = 0.1
FAR_EXCESS_FACTOR = 1.05


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def cross_check_reference(
    result: ExtractionResult, reference: ReferenceData | None, policy: GatePolicy = GATE_POLICY
) -> dict[str, Any]:
    """Screening comparison of extracted facts against reference data. Produces warnings, never gates."""
    if reference is None:
        return {"warnings": [], "reference_values": {}}

    warnings: list[str] = []
    values: dict[str, Any] = {
        "lot_area": reference.lot_area,
        "resid_far": reference.resid_far,
        "bldg_area": reference.bldg_area,
    }

    if reference.has_lot_area and reference.has_far:
        usable = reference.lot_area * reference.resid_far * policy.efficiency_factor
        implied_units = _round_half_up(usable / policy.max_unit_size_sf)
        values["implied_max_units"] = implied_units
        total = result.total_units
        if total is not None and total.value > 0 and implied_units > 0:
            diff = abs(total.value - implied_units) / implied_units
            if diff > UNIT_DIFF_THRESHOLD and total.confidence < CONFIDENT_ENOUGH:
                warnings.append(
                    f"Plan total ({total.value} units) differs from reference screening estimate "
                    f"({implied_units} units) by {_round_half_up(diff * 100)}%; verify plan data."
                )

    lot_area = result.zoning.lot_area
    if lot_area is not None and reference.has_lot_area:
        diff = abs(lot_area.value - reference.lot_area) / reference.lot_area
        if diff > LOT_DIFF_THRESHOLD:
            warnings.append(
                f"Document lot area ({lot_area.value:,.0f} SF) differs from reference "
                f"({reference.lot_area:,.0f} SF) by {_round_half_up(diff * 100)}%."
            )

    far = result.zoning.far
    if far is not None and reference.has_far and far.value > reference.resid_far * FAR_EXCESS_FACTOR:
        warnings.append(
            f"Document proposed FAR ({far.value}) exceeds reference residential FAR ({reference.resid_far}); "
            "may require zoning override or bonus."
        )

    return {"warnings": warnings, "reference_values": values}
