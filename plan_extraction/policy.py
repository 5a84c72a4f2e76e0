from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ResolutionPolicy:
    cover_weight: float = 0.9
    zoning_weight: float = 0.85
    table_weight: float = 0.8
    single_source_cap: float = 0.6
    agreement_window: int = 2
    agreement_boost: float = 0.1
    outlier_ratio: float = 2.0
    outlier_ceiling: int = 30
    outlier_penalty: float = 0.4
    redundancy_boost: float = 0.05
    redundancy_boost_threshold: float = 0.95
    redundancy_boost_min_candidates: int = 3


@dataclass(frozen=True)
class ExtractorPolicy:
    cover_page_confidence: float = 0.9
    cover_fallback_confidence: float = 0.7
    zoning_page_confidence: float = 0.85
    zoning_fallback_confidence: float = 0.7
    zoning_page_min_hits: int = 2
    max_units: int = 500
    min_far: float = 0.1
    max_far: float = 15.0
    snippet_radius: int = 30
    table_total_confidence: float = 0.8
    table_mix_confidence: float = 0.75
    record_confidence_with_type: float = 0.75
    record_confidence_without_type: float = 0.6


@dataclass(frozen=True)
class GatePolicy:
    efficiency_factor: float = 0.8
    max_unit_size_sf: float = 800.0
    min_unit_size_sf: float = 680.0
    min_unit_size_multiplier: float = 1.5
    unit_ceiling_factor: float = 1.5
    unit_floor_factor: float = 0.25
    unit_warn_high: float = 1.2
    unit_warn_low: float = 0.5
    far_pass_deviation: float = 0.2
    far_expected_low_factor: float = 0.8
    far_affordable_fallback_factor: float = 1.5
    lot_pass_deviation: float = 0.08
    lot_warn_deviation: float = 0.15
    conflict_window: int = 2
    conflict_variance: float = 0.3
    conflict_min_agreeing: int = 2


@dataclass(frozen=True)
class ReconciliationPolicy:
    count_tolerance: int = 2
    relative_tolerance: float = 0.05
    relative_floor: float = 0.1
    agreement_boost: float = 0.1
    disagreement_penalty: float = 0.1
    disagreement_floor: float = 0.3
    llm_only_confidence: float = 0.7
    llm_mention_confidence: float = 0.8
    llm_confidence_cap: float = 0.6
    min_record_area_sf: float = 150.0
    max_record_area_sf: float = 5000.0
    record_excess_factor: float = 1.5


@dataclass(frozen=True)
class OcrPolicy:
    min_chars: int = 100
    min_printable_ratio: float = 0.5
    max_scanned_pages: int = 20
    max_low_keyword_pages: int = 5
    low_keyword_min_chars: int = 200
    low_keyword_max_hits: int = 2
    low_keyword_max_share: float = 0.5


@dataclass(frozen=True)
class RelevancePolicy:
    threshold: int = 3
    max_selected_pages: int = 8
    llm_page_chars: int = 4000


@dataclass(frozen=True)
class TablePolicy:
    room_override_confidence: float = 0.95
    room_override_rows: int = 5
    room_override_min_rows: int = 2
    base_confidence: float = 0.5
    per_hit_confidence: float = 0.15
    max_confidence: float = 0.9
    single_hit_confidence: float = 0.4
    unknown_confidence: float = 0.2


RESOLUTION_POLICY = ResolutionPolicy()
EXTRACTOR_POLICY = ExtractorPolicy()
GATE_POLICY = GatePolicy()
RECONCILIATION_POLICY = ReconciliationPolicy()
OCR_POLICY = OcrPolicy()
RELEVANCE_POLICY = RelevancePolicy()
TABLE_POLICY = TablePolicy()
