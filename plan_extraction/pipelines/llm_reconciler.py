"""Field-by-field comparison of the rule-based result with a language-model extraction.

The language model never re-extracts anything here. Each overlapping
field either agrees (confidence boost), disagrees (rule-based value kept
unless reference data favours the model's value) or exists only on the
model side (accepted at a fixed, lower confidence).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from plan_extraction.models.contracts import (
    Evidence,
    ExtractionResult,
    LlmExtraction,
    LlmReconciliation,
    ReferenceData,
    Signal,
    UnitCountMention,
)
from plan_extraction.pipelines.resolver import compute_redundancy_score
from plan_extraction.policy import RECONCILIATION_POLICY, ReconciliationPolicy

LLM_PAGE = -1


@dataclass(frozen=True)
class FieldComparison:
    field: str
    label: str
    rule_signal: Signal[Any] | None
    rule_value: float | str | None
    llm_value: float | str | None
    kind: str
    reference_value: float | None = None


def _format(value: float | str) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:.2f}"


def values_agree(kind: str, rule_value: float | str, llm_value: float | str, policy: ReconciliationPolicy) -> bool:
    if kind == "text":
        return str(rule_value).strip().upper() == str(llm_value).strip().upper()
    if kind == "count":
        return abs(float(rule_value) - float(llm_value)) <= policy.count_tolerance
    denominator = max(abs(float(rule_value)), policy.relative_floor)
    return abs(float(rule_value) - float(llm_value)) / denominator <= policy.relative_tolerance


def _closer_to_reference(rule_value: float, llm_value: float, reference_value: float) -> float:
    rule_deviation = abs(rule_value - reference_value) / reference_value
    llm_deviation = abs(llm_value - reference_value) / reference_value
    return rule_value if rule_deviation <= llm_deviation else llm_value


def reconcile_field(comparison: FieldComparison, policy: ReconciliationPolicy = RECONCILIATION_POLICY) -> LlmReconciliation | None:
    rule_value = comparison.rule_value
    llm_value = comparison.llm_value
    label = comparison.label
    if llm_value is None or llm_value == "" or (comparison.kind != "text" and llm_value == 0):
        llm_value = None

    if rule_value is not None and llm_value is not None:
        base = comparison.rule_signal.confidence if comparison.rule_signal is not None else 0.5
        if values_agree(comparison.kind, rule_value, llm_value, policy):
            return LlmReconciliation(
                field=comparison.field,
                rule_based_value=rule_value,
                llm_value=llm_value,
                agreement=True,
                final_value=rule_value,
                final_confidence=round(min(1.0, base + policy.agreement_boost), 4),
                note=f"{label} agreement: rule={_format(rule_value)}, LLM={_format(llm_value)}. Confidence boosted.",
            )

        final_value: float | str = rule_value
        note = f"{label} disagreement: rule={_format(rule_value)}, LLM={_format(llm_value)}. Using rule-based value."
        if comparison.reference_value is not None and comparison.reference_value > 0:
            final_value = _closer_to_reference(float(rule_value), float(llm_value), comparison.reference_value)
            note = (
                f"{label} disagreement: rule={_format(rule_value)}, LLM={_format(llm_value)}. "
                f"Using value closer to reference ({_format(comparison.reference_value)})."
            )
        else:
            note += " Manual review recommended."
        return LlmReconciliation(
            field=comparison.field,
            rule_based_value=rule_value,
            llm_value=llm_value,
            agreement=False,
            final_value=final_value,
            final_confidence=round(max(policy.disagreement_floor, base - policy.disagreement_penalty), 4),
            note=note,
        )

    if llm_value is not None:
        return LlmReconciliation(
            field=comparison.field,
            rule_based_value=None,
            llm_value=llm_value,
            agreement=None,
            final_value=llm_value,
            final_confidence=policy.llm_only_confidence,
            note=f"{label}: LLM-only value {_format(llm_value)} (no rule-based value).",
        )
    return None


def _value(signal: Signal[Any] | None) -> Any:
    return None if signal is None else signal.value


def field_comparisons(
    result: ExtractionResult, extraction: LlmExtraction, reference: ReferenceData | None = None
) -> list[FieldComparison]:
    zoning = result.zoning
    cover = result.cover_sheet
    resid_far = reference.resid_far if reference is not None and reference.has_far else None
    lot_area = reference.lot_area if reference is not None and reference.has_lot_area else None

    comparisons = [
        FieldComparison("total_units", "Total units", result.total_units, _value(result.total_units), extraction.total_units, "count"),
        FieldComparison("far", "FAR", zoning.far, _value(zoning.far), extraction.far, "relative", resid_far),
        FieldComparison("lot_area", "Lot area", zoning.lot_area, _value(zoning.lot_area), extraction.lot_area_sf, "relative", lot_area),
        FieldComparison(
            "zoning_floor_area",
            "Zoning floor area",
            zoning.zoning_floor_area,
            _value(zoning.zoning_floor_area),
            extraction.zoning_floor_area_sf,
            "relative",
        ),
        FieldComparison("max_far", "Max FAR", None, None, extraction.max_far, "relative"),
        FieldComparison("zone", "Zone district", zoning.zone, _value(zoning.zone), extraction.zone, "text"),
        FieldComparison("floors", "Floors", cover.floors, _value(cover.floors), extraction.floors, "count"),
        FieldComparison(
            "building_area", "Building area", cover.building_area, _value(cover.building_area), extraction.building_area_sf, "relative"
        ),
    ]

    rule_mix = result.unit_mix.value if result.unit_mix is not None else {}
    for mix_key, llm_key, label in (
        ("STUDIO", "studio", "Studios"),
        ("1BR", "br1", "1-Bedrooms"),
        ("2BR", "br2", "2-Bedrooms"),
        ("3BR", "br3", "3-Bedrooms"),
        ("4BR_PLUS", "br4plus", "4+ Bedrooms"),
    ):
        rule_count = rule_mix.get(mix_key) or None
        comparisons.append(
            FieldComparison(llm_key, label, result.unit_mix if rule_count else None, rule_count, extraction.unit_mix.get(llm_key), "count")
        )

    comparisons.append(FieldComparison("affordable_units", "Affordable units", None, None, extraction.affordable_units, "count"))
    comparisons.append(FieldComparison("market_units", "Market units", None, None, extraction.market_units, "count"))
    return comparisons


def reconcile_llm(
    result: ExtractionResult,
    extraction: LlmExtraction,
    reference: ReferenceData | None = None,
    policy: ReconciliationPolicy = RECONCILIATION_POLICY,
) -> tuple[list[LlmReconciliation], list[UnitCountMention]]:
    """One reconciliation record per field either side reported, plus the mentions with the model's count added."""
    mentions = list(result.unit_count_mentions)
    if extraction.total_units is not None and extraction.total_units >= 1:
        mentions.append(
            UnitCountMention(
                value=extraction.total_units,
                page=LLM_PAGE,
                source_type="llm",
                snippet=f"LLM extracted {extraction.total_units} total units",
                confidence=policy.llm_mention_confidence,
            )
        )

    records: list[LlmReconciliation] = []
    for comparison in field_comparisons(result, extraction, reference):
        record = reconcile_field(comparison, policy)
        if record is not None:
            records.append(record)
    return records, mentions


def _llm_evidence(record: LlmReconciliation) -> Evidence:
    return Evidence(page=LLM_PAGE, snippet=record.note, source_type="llm", confidence=record.final_confidence)


def _reconciled_signal(signal: Signal[Any] | None, record: LlmReconciliation, cast: type) -> Signal[Any]:
    value = cast(record.final_value)
    if signal is None:
        return Signal(value=value, confidence=record.final_confidence, evidence=(_llm_evidence(record),))
    if value != signal.value:
        return Signal(value=value, confidence=record.final_confidence, evidence=(_llm_evidence(record),) + signal.evidence)
    return signal.with_confidence(record.final_confidence)


def apply_reconciliation(
    result: ExtractionResult,
    records: list[LlmReconciliation],
    mentions: list[UnitCountMention],
) -> ExtractionResult:
    """Fold reconciled values back into the signal slots and recompute redundancy.

    A model-only unit count is left in the reconciliation records; it never
    becomes the resolved total on its own.
    """
    by_field = {record.field: record for record in records}
    total_units = result.total_units
    zoning = result.zoning
    cover = result.cover_sheet

    record = by_field.get("total_units")
    if record is not None and total_units is not None:
        total_units = _reconciled_signal(total_units, record, int)

    zoning_updates: dict[str, Signal[Any]] = {}
    for field, slot, cast in (
        ("far", "far", float),
        ("lot_area", "lot_area", float),
        ("zoning_floor_area", "zoning_floor_area", float),
        ("zone", "zone", str),
    ):
        if field in by_field:
            zoning_updates[slot] = _reconciled_signal(getattr(zoning, slot), by_field[field], cast)

    cover_updates: dict[str, Signal[Any]] = {}
    for field, slot, cast in (("floors", "floors", int), ("building_area", "building_area", float)):
        if field in by_field:
            cover_updates[slot] = _reconciled_signal(getattr(cover, slot), by_field[field], cast)

    resolved = total_units.value if total_units is not None else 0
    return replace(
        result,
        total_units=total_units,
        zoning=replace(zoning, **zoning_updates),
        cover_sheet=replace(cover, **cover_updates),
        unit_count_mentions=mentions,
        redundancy_score=compute_redundancy_score(mentions, resolved),
        llm_reconciliation=records,
    )
