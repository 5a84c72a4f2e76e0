from __future__ import annotations

from dataclasses import dataclass

from plan_extraction.models.contracts import (
    ClassifiedTable,
    CoverSheetSignals,
    ExtractionResult,
    Signal,
    TableUnitSignals,
    UnitCountMention,
    ZoningSignals,
)
from plan_extraction.policy import RESOLUTION_POLICY, ResolutionPolicy

REDUNDANCY_BY_SOURCE_COUNT = {0: 0.0, 1: 0.6, 2: 0.85}
REDUNDANCY_CEILING = 0.95


@dataclass
class Candidate:
    source: str
    value: int
    confidence: float
    signal: Signal[int]


def compute_redundancy_score(
    mentions: list[UnitCountMention], resolved_value: int, policy: ResolutionPolicy = RESOLUTION_POLICY
) -> float:
    """Corroboration of a resolved count by distinct (source type, page) pairs within the agreement window."""
    agreeing = {
        (mention.source_type, mention.page)
        for mention in mentions
        if abs(mention.value - resolved_value) <= policy.agreement_window
    }
    return REDUNDANCY_BY_SOURCE_COUNT.get(len(agreeing), REDUNDANCY_CEILING)


def _candidates(
    cover: CoverSheetSignals, zoning: ZoningSignals, tables: TableUnitSignals, policy: ResolutionPolicy
) -> list[Candidate]:
    weighted = [
        ("cover_sheet", cover.total_units, policy.cover_weight),
        ("zoning", zoning.total_dwelling_units, policy.zoning_weight),
        ("table", tables.total_units, policy.table_weight),
    ]
    return [
        Candidate(source=source, value=signal.value, confidence=signal.confidence * weight, signal=signal)
        for source, signal, weight in weighted
        if signal is not None
    ]


def resolve_unit_count(
    cover: CoverSheetSignals,
    zoning: ZoningSignals,
    tables: TableUnitSignals,
    mentions: list[UnitCountMention],
    warnings: list[str],
    policy: ResolutionPolicy = RESOLUTION_POLICY,
) -> Signal[int] | None:
    candidates = _candidates(cover, zoning, tables, policy)
    if not candidates:
        return None
    if len(candidates) == 1:
        only = candidates[0]
        return only.signal.with_confidence(min(only.confidence, policy.single_source_cap))

    for i, first in enumerate(candidates):
        for second in candidates[i + 1 :]:
            if abs(first.value - second.value) <= policy.agreement_window:
                first.confidence = min(1.0, first.confidence + policy.agreement_boost)
                second.confidence = min(1.0, second.confidence + policy.agreement_boost)

    high = max(candidates, key=lambda candidate: candidate.value)
    low = min(candidates, key=lambda candidate: candidate.value)
    if high.value > low.value * policy.outlier_ratio and low.value < policy.outlier_ceiling:
        high.confidence = max(0.0, high.confidence - policy.outlier_penalty)
        warnings.append(
            f"Conflicting unit counts: {low.source} says {low.value}, {high.source} says {high.value}. "
            f"Using {low.source} value."
        )

    best = sorted(candidates, key=lambda candidate: -candidate.confidence)[0]
    redundancy = compute_redundancy_score(mentions, best.value, policy)
    if redundancy >= policy.redundancy_boost_threshold and len(candidates) >= policy.redundancy_boost_min_candidates:
        best.confidence = min(1.0, best.confidence + policy.redundancy_boost)
    return best.signal.with_confidence(best.confidence)


def merge_zoning(cover: CoverSheetSignals, zoning: ZoningSignals) -> ZoningSignals:
    return ZoningSignals(
        total_dwelling_units=zoning.total_dwelling_units,
        lot_area=zoning.lot_area or cover.lot_area,
        far=zoning.far or cover.far,
        zoning_floor_area=zoning.zoning_floor_area,
        zone=zoning.zone or cover.zone,
    )


def resolve_extraction(
    cover: CoverSheetSignals,
    zoning: ZoningSignals,
    table_signals: TableUnitSignals,
    tables: list[ClassifiedTable],
    ocr_used: bool,
    mentions: list[UnitCountMention],
    policy: ResolutionPolicy = RESOLUTION_POLICY,
) -> ExtractionResult:
    """Merge the independent extractor outputs into one value per field, with warnings for gaps and conflicts."""
    warnings: list[str] = []
    total_units = resolve_unit_count(cover, zoning, table_signals, mentions, warnings, policy)
    resolved_value = total_units.value if total_units is not None else 0
    records = list(table_signals.unit_records)

    if table_signals.unit_mix is None:
        warnings.append("Unit mix schedule not found; not inferred from floor plans.")
    if not records and total_units is not None and total_units.value > 0:
        warnings.append("No unit schedule table found. Total unit count is from cover sheet/zoning text only.")
    if total_units is not None and records and abs(len(records) - total_units.value) > policy.agreement_window:
        warnings.append(
            f"Unit records ({len(records)}) differ from resolved total ({total_units.value}); records may be incomplete."
        )
    if records and all(record.allocation == "UNKNOWN" for record in records):
        warnings.append("Affordable/Market allocation not found in plans.")

    return ExtractionResult(
        status="complete",
        total_units=total_units,
        unit_mix=table_signals.unit_mix,
        unit_records=records,
        zoning=merge_zoning(cover, zoning),
        cover_sheet=cover,
        warnings=warnings,
        tables=list(tables),
        ocr_used=ocr_used,
        unit_count_mentions=list(mentions),
        redundancy_score=compute_redundancy_score(mentions, resolved_value, policy),
    )
