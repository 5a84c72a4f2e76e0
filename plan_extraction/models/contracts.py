from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")

SCHEMA_VERSION = "1.0.0"

SourceType = Literal["cover_sheet", "zoning_text", "unit_schedule_table", "ocr_table", "regex", "llm"]
TableType = Literal["unit_schedule", "zoning_table", "light_ventilation_schedule", "occupancy_load", "unknown"]
GateStatus = Literal["PASS", "WARN", "NEEDS_OVERRIDE", "CONFLICTING"]
PageCategory = Literal[
    "COVER_SHEET",
    "ZONING_ANALYSIS",
    "UNIT_SCHEDULE",
    "FLOOR_PLAN",
    "AFFORDABLE_HOUSING",
    "IRRELEVANT",
]
ResultStatus = Literal["complete", "partial", "cached", "empty"]

JSONDict = dict[str, Any]


@dataclass
class PageText:
    """Text of one document page. Mutated in place when OCR recovers more text."""

    page_index: int
    text: str
    char_count: int
    is_likely_scanned: bool


@dataclass(frozen=True)
class Evidence:
    page: int
    snippet: str
    source_type: SourceType
    confidence: float
    table_type: TableType | None = None
    table_index: int | None = None

    @classmethod
    def from_dict(cls, data: JSONDict) -> Evidence:
        return cls(**data)


@dataclass(frozen=True)
class Signal(Generic[T]):
    """A derived value with its confidence and the evidence that justifies it."""

    value: T
    confidence: float
    evidence: tuple[Evidence, ...]

    def __post_init__(self) -> None:
        if not self.evidence:
            raise ValueError("a signal must carry at least one piece of evidence")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")

    def with_confidence(self, confidence: float) -> Signal[T]:
        return replace(self, confidence=round(min(1.0, max(0.0, confidence)), 4))

    def to_dict(self) -> JSONDict:
        return {
            "value": self.value,
            "confidence": self.confidence,
            "evidence": [asdict(item) for item in self.evidence],
        }

    @classmethod
    def from_dict(cls, data: JSONDict | None) -> Signal[Any] | None:
        if data is None:
            return None
        return cls(
            value=data["value"],
            confidence=data["confidence"],
            evidence=tuple(Evidence.from_dict(item) for item in data["evidence"]),
        )


@dataclass(frozen=True)
class RawTable:
    page_index: int
    table_index: int
    headers: list[str]
    rows: list[list[str]]
    source: str = "native_text"


@dataclass(frozen=True)
class ClassifiedTable:
    table_type: TableType
    confidence: float
    page_index: int
    table_index: int
    headers: list[str]
    rows: list[list[str]]
    source: str = "native_text"


@dataclass(frozen=True)
class OcrPage:
    page_index: int
    text: str
    lines: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class OcrTable:
    page_index: int
    table_index: int
    header_rows: list[list[str]]
    body_rows: list[list[str]]


@dataclass(frozen=True)
class OcrLayout:
    pages: list[OcrPage]
    tables: list[OcrTable]


@dataclass(frozen=True)
class UnitRecord:
    unit_id: str
    bedroom_type: str
    allocation: str
    area_sf: float | None
    page: int


@dataclass(frozen=True)
class UnitCountMention:
    value: int
    page: int
    source_type: SourceType
    snippet: str
    confidence: float


@dataclass(frozen=True)
class ValidationGate:
    field: str
    extracted_value: float | str | None
    expected_range: tuple[float, float] | None
    city_basis: str
    status: GateStatus
    evidence: tuple[Evidence, ...]
    message: str

    def to_dict(self) -> JSONDict:
        return {
            "field": self.field,
            "extracted_value": self.extracted_value,
            "expected_range": (
                None
                if self.expected_range is None
                else {"min": self.expected_range[0], "max": self.expected_range[1]}
            ),
            "city_basis": self.city_basis,
            "status": self.status,
            "evidence": [asdict(item) for item in self.evidence],
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> ValidationGate:
        expected = data["expected_range"]
        return cls(
            field=data["field"],
            extracted_value=data["extracted_value"],
            expected_range=None if expected is None else (expected["min"], expected["max"]),
            city_basis=data["city_basis"],
            status=data["status"],
            evidence=tuple(Evidence.from_dict(item) for item in data["evidence"]),
            message=data["message"],
        )


@dataclass(frozen=True)
class LlmReconciliation:
    field: str
    rule_based_value: float | str | None
    llm_value: float | str | None
    agreement: bool | None
    final_value: float | str | None
    final_confidence: float
    note: str


@dataclass(frozen=True)
class PageRelevance:
    page_index: int
    score: int
    category: PageCategory
    selected_for_llm: bool


@dataclass(frozen=True)
class ReferenceData:
    """Authoritative property-record values for the parcel."""

    lot_area: float
    resid_far: float
    bldg_area: float = 0.0

    @property
    def has_lot_area(self) -> bool:
        return self.lot_area > 0

    @property
    def has_far(self) -> bool:
        return self.resid_far > 0


@dataclass(frozen=True)
class CoverSheetSignals:
    total_units: Signal[int] | None = None
    floors: Signal[int] | None = None
    zone: Signal[str] | None = None
    lot_area: Signal[float] | None = None
    building_area: Signal[float] | None = None
    far: Signal[float] | None = None


@dataclass(frozen=True)
class ZoningSignals:
    total_dwelling_units: Signal[int] | None = None
    lot_area: Signal[float] | None = None
    far: Signal[float] | None = None
    zoning_floor_area: Signal[float] | None = None
    zone: Signal[str] | None = None


@dataclass(frozen=True)
class TableUnitSignals:
    total_units: Signal[int] | None = None
    unit_mix: Signal[dict[str, int]] | None = None
    unit_records: list[UnitRecord] = field(default_factory=list)
    records_confidence: float = 0.0


@dataclass(frozen=True)
class LlmUnitRecord:
    unit_id: str
    area_sf: float
    bedroom_type: str
    floor: str | None = None


@dataclass(frozen=True)
class LlmExtraction:
    """Fixed-schema reply of the language-model extraction collaborator. Every field is nullable."""

    total_units: int | None = None
    affordable_units: int | None = None
    market_units: int | None = None
    unit_mix: dict[str, int | None] = field(default_factory=dict)
    unit_records: list[LlmUnitRecord] = field(default_factory=list)
    lot_area_sf: float | None = None
    zoning_floor_area_sf: float | None = None
    far: float | None = None
    zone: str | None = None
    max_far: float | None = None
    floors: int | None = None
    building_area_sf: float | None = None
    overall_confidence: float = 0.5
    warnings: list[str] = field(default_factory=list)


def _signal_fields_to_dict(container: Any) -> JSONDict:
    return {
        name: (None if value is None else value.to_dict())
        for name, value in vars(container).items()
    }


def _signal_fields_from_dict(cls: type, data: JSONDict) -> Any:
    return cls(**{name: Signal.from_dict(value) for name, value in data.items()})


@dataclass(frozen=True)
class ExtractionResult:
    """The single artifact handed to callers. JSON-serializable via to_dict/from_dict."""

    status: ResultStatus
    file_hash: str | None = None
    page_count: int = 0
    total_units: Signal[int] | None = None
    unit_mix: Signal[dict[str, int]] | None = None
    unit_records: list[UnitRecord] = field(default_factory=list)
    zoning: ZoningSignals = field(default_factory=ZoningSignals)
    cover_sheet: CoverSheetSignals = field(default_factory=CoverSheetSignals)
    warnings: list[str] = field(default_factory=list)
    tables: list[ClassifiedTable] = field(default_factory=list)
    ocr_used: bool = False
    unit_count_mentions: list[UnitCountMention] = field(default_factory=list)
    redundancy_score: float = 0.0
    validation_gates: list[ValidationGate] = field(default_factory=list)
    llm_reconciliation: list[LlmReconciliation] = field(default_factory=list)
    page_relevance: list[PageRelevance] = field(default_factory=list)
    reference_check: JSONDict | None = None
    parcel_id: str | None = None

    @property
    def needs_manual_fields(self) -> list[str]:
        fields: list[str] = []
        for gate in self.validation_gates:
            if gate.status in ("NEEDS_OVERRIDE", "CONFLICTING") and gate.field not in fields:
                fields.append(gate.field)
        return fields

    @property
    def needs_manual_confirmation(self) -> bool:
        return bool(self.needs_manual_fields)

    @classmethod
    def empty(cls, reason: str) -> ExtractionResult:
        return cls(status="empty", warnings=[reason])

    def to_dict(self) -> JSONDict:
        return {
            "schema_version": SCHEMA_VERSION,
            "status": self.status,
            "file_hash": self.file_hash,
            "page_count": self.page_count,
            "total_units": None if self.total_units is None else self.total_units.to_dict(),
            "unit_mix": None if self.unit_mix is None else self.unit_mix.to_dict(),
            "unit_records": [asdict(record) for record in self.unit_records],
            "zoning": _signal_fields_to_dict(self.zoning),
            "cover_sheet": _signal_fields_to_dict(self.cover_sheet),
            "warnings": list(self.warnings),
            "tables": [asdict(table) for table in self.tables],
            "ocr_used": self.ocr_used,
            "unit_count_mentions": [asdict(mention) for mention in self.unit_count_mentions],
            "redundancy_score": self.redundancy_score,
            "validation_gates": [gate.to_dict() for gate in self.validation_gates],
            "llm_reconciliation": [asdict(item) for item in self.llm_reconciliation],
            "page_relevance": [asdict(item) for item in self.page_relevance],
            "reference_check": self.reference_check,
            "parcel_id": self.parcel_id,
            "needs_manual_confirmation": self.needs_manual_confirmation,
            "needs_manual_fields": self.needs_manual_fields,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> ExtractionResult:
        return cls(
            status=data["status"],
            file_hash=data["file_hash"],
            page_count=data["page_count"],
            total_units=Signal.from_dict(data["total_units"]),
            unit_mix=Signal.from_dict(data["unit_mix"]),
            unit_records=[UnitRecord(**record) for record in data["unit_records"]],
            zoning=_signal_fields_from_dict(ZoningSignals, data["zoning"]),
            cover_sheet=_signal_fields_from_dict(CoverSheetSignals, data["cover_sheet"]),
            warnings=list(data["warnings"]),
            tables=[ClassifiedTable(**table) for table in data["tables"]],
            ocr_used=data["ocr_used"],
            unit_count_mentions=[UnitCountMention(**mention) for mention in data["unit_count_mentions"]],
            redundancy_score=data["redundancy_score"],
            validation_gates=[ValidationGate.from_dict(gate) for gate in data["validation_gates"]],
            llm_reconciliation=[LlmReconciliation(**item) for item in data["llm_reconciliation"]],
            page_relevance=[PageRelevance(**item) for item in data["page_relevance"]],
            reference_check=data["reference_check"],
            parcel_id=data["parcel_id"],
        )
