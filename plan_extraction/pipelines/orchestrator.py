from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable

import httpx

from plan_extraction.clients.base import CollaboratorError
from plan_extraction.clients.llm_client import LlmExtractionClient, build_city_context
from plan_extraction.clients.ocr_client import CloudOcrClient
from plan_extraction.config import Settings, build_llm_client, build_ocr_client
from plan_extraction.extractors import pdf_text, table_reconstruction
from plan_extraction.extractors.cover_sheet import collect_cover_unit_mentions, extract_cover_sheet_signals
from plan_extraction.extractors.table_units import extract_table_unit_signals, table_unit_mentions
from plan_extraction.extractors.zoning_text import collect_zoning_unit_mentions, extract_zoning_signals
from plan_extraction.models.contracts import (
    ExtractionResult,
    PageText,
    ReferenceData,
    UnitCountMention,
    ValidationGate,
)
from plan_extraction.pipelines.llm_reconciler import apply_reconciliation, reconcile_llm
from plan_extraction.pipelines.ocr_escalation import escalate_ocr
from plan_extraction.pipelines.page_relevance import classify_pages, llm_page_type, pages_for_llm
from plan_extraction.pipelines.resolver import resolve_extraction
from plan_extraction.pipelines.result_cache import ResultCache, hash_document
from plan_extraction.pipelines.table_classifier import classify_tables
from plan_extraction.policy import RELEVANCE_POLICY
from plan_extraction.validators.gates import ZoningLookup, apply_validation_gates
from plan_extraction.validators.reference_check import cross_check_reference

logger = logging.getLogger(__name__)

EMPTY_REASON = "No document provided or extraction was cancelled."


@dataclass(frozen=True)
class PipelineProgress:
    stage: str
    message: str
    pct: int


@dataclass
class PipelineOptions:
    cancel_event: asyncio.Event | None = None
    on_progress: Callable[[PipelineProgress], None] | None = None
    reference: ReferenceData | None = None
    zone_district: str | None = None
    enable_llm: bool = False
    bbl: str | None = None


def dedupe_mentions(mentions: list[UnitCountMention]) -> list[UnitCountMention]:
    seen: set[tuple[str, int, int]] = set()
    unique: list[UnitCountMention] = []
    for mention in mentions:
        key = (mention.source_type, mention.page, mention.value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(mention)
    return unique


class PlanExtractionPipeline:
    """Runs the extraction stages in order over one document.

    Collaborators are optional. Without an OCR client the pipeline works from
    native text only; without an LLM client the validation pass is skipped.
    ``run`` always returns a result and never raises.
    """

    def __init__(
        self,
        ocr_client: CloudOcrClient | None = None,
        llm_client: LlmExtractionClient | None = None,
        cache: ResultCache | None = None,
        zoning_lookup: ZoningLookup | None = None,
    ) -> None:
        self.ocr_client = ocr_client
        self.llm_client = llm_client
        self.cache = cache
        self.zoning_lookup = zoning_lookup

    @staticmethod
    def _cancelled(options: PipelineOptions) -> bool:
        return options.cancel_event is not None and options.cancel_event.is_set()

    @staticmethod
    def _emit(options: PipelineOptions, stage: str, message: str, pct: int) -> None:
        logger.info(f"[{pct:3d}%] {stage}: {message}")
        if options.on_progress is not None:
            options.on_progress(PipelineProgress(stage=stage, message=message, pct=pct))

    async def run(
        self,
        document: bytes | None = None,
        *,
        page_texts: list[str] | None = None,
        options: PipelineOptions | None = None,
    ) -> ExtractionResult:
        options = options or PipelineOptions()
        if self._cancelled(options) or (document is None and page_texts is None):
            return ExtractionResult.empty(EMPTY_REASON)
        try:
            return await self._run_stages(document, page_texts, options)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Extraction pipeline failed")
            return ExtractionResult(status="partial", warnings=[f"Extraction failed: {exc}"])

    async def _run_stages(
        self, document: bytes | None, page_texts: list[str] | None, options: PipelineOptions
    ) -> ExtractionResult:
        file_hash = hash_document(document) if document is not None else None
        if file_hash is not None and self.cache is not None:
            cached = await asyncio.to_thread(self.cache.get, file_hash)
            if cached is not None:
                self._emit(options, "DONE", "Loaded cached result", 100)
                return cached

        if document is not None:
            pages = await asyncio.to_thread(pdf_text.ingest_document, document)
        else:
            pages = pdf_text.pages_from_texts(page_texts or [])
        if not pages:
            return ExtractionResult(
                status="partial",
                file_hash=file_hash,
                warnings=["No extractable pages found in document."],
            )
        self._emit(options, "TEXT_EXTRACT", f"Extracted text from {len(pages)} pages", 5)

        if self._cancelled(options):
            return ExtractionResult.empty(EMPTY_REASON)
        scanned = sum(1 for page in pages if page.is_likely_scanned)
        self._emit(options, "OCR_DETECT", f"Found {scanned} likely scanned pages", 18)

        if self._cancelled(options):
            return ExtractionResult.empty(EMPTY_REASON)
        ocr = await escalate_ocr(document, pages, self.ocr_client)
        if document is not None and self.ocr_client is not None and scanned:
            self._emit(options, "DOCAI_FETCH", f"Cloud OCR replaced {len(ocr.replaced_pages)} pages", 24)

        if self._cancelled(options):
            return ExtractionResult.empty(EMPTY_REASON)
        raw_tables = table_reconstruction.tables_from_ocr(ocr.tables)
        if document is not None:
            raw_tables += await asyncio.to_thread(
                table_reconstruction.reconstruct_native_tables, document, len(raw_tables) + 1
            )
        else:
            raw_tables += table_reconstruction.reconstruct_text_tables(
                [page.text for page in pages], len(raw_tables) + 1
            )
        tables = classify_tables(raw_tables)
        self._emit(options, "TABLE_CLASSIFY", f"Classified {len(tables)} tables", 45)

        if self._cancelled(options):
            return ExtractionResult.empty(EMPTY_REASON)
        cover = extract_cover_sheet_signals(pages)
        zoning = extract_zoning_signals(pages)
        table_signals = extract_table_unit_signals(tables)
        mentions = dedupe_mentions(
            collect_cover_unit_mentions(pages)
            + collect_zoning_unit_mentions(pages)
            + table_unit_mentions(table_signals)
        )
        self._emit(options, "SIGNAL_EXTRACT", f"Extracted signals ({len(mentions)} unit mentions)", 55)

        if self._cancelled(options):
            return ExtractionResult.empty(EMPTY_REASON)
        result = resolve_extraction(cover, zoning, table_signals, tables, ocr.ocr_used, mentions)
        result = replace(result, warnings=result.warnings + ocr.warnings)
        self._emit(options, "RESOLVE", "Resolved extraction", 65)

        if self._cancelled(options):
            return ExtractionResult.empty(EMPTY_REASON)
        result = replace(
            result,
            page_relevance=classify_pages(pages),
            validation_gates=self._gates(result, options),
        )
        self._emit(options, "VALIDATE_GATES", f"Applied {len(result.validation_gates)} validation gates", 72)

        if options.enable_llm and self.llm_client is not None:
            if self._cancelled(options):
                return ExtractionResult.empty(EMPTY_REASON)
            result = await self._llm_pass(result, pages, options)
            self._emit(options, "LLM_VALIDATE", "Cross-checked with language model", 80)

        if self._cancelled(options):
            return ExtractionResult.empty(EMPTY_REASON)
        result = self._finalize(result, pages, file_hash, options)
        self._emit(options, "ADAPT", "Finalized results", 88)

        if file_hash is not None and self.cache is not None:
            await asyncio.to_thread(self.cache.put, file_hash, result)
        self._emit(options, "DONE", "Complete", 100)
        return result

    def _gates(self, result: ExtractionResult, options: PipelineOptions) -> list[ValidationGate]:
        return apply_validation_gates(result, options.reference, options.zone_district, self.zoning_lookup)

    def _llm_payload(self, result: ExtractionResult, pages: list[PageText]) -> list[dict[str, Any]]:
        categories = {item.page_index: item.category for item in result.page_relevance}
        return [
            {
                "page": page.page_index,
                "type": llm_page_type(categories.get(page.page_index, "IRRELEVANT")),
                "text": page.text[: RELEVANCE_POLICY.llm_page_chars],
            }
            for page in pages_for_llm(pages, result.page_relevance)
        ]

    async def _llm_pass(
        self, result: ExtractionResult, pages: list[PageText], options: PipelineOptions
    ) -> ExtractionResult:
        payload = self._llm_payload(result, pages)
        if not payload:
            logger.info("No relevant pages for the language-model pass; skipping")
            return result

        zone = options.zone_district or (result.zoning.zone.value if result.zoning.zone is not None else None)
        declared = result.cover_sheet.total_units.value if result.cover_sheet.total_units is not None else None
        try:
            extraction = await self.llm_client.extract(payload, build_city_context(options.reference, zone), declared)
        except (CollaboratorError, httpx.HTTPError) as exc:
            logger.warning(f"Language-model validation failed, keeping rule-based values: {exc}")
            return replace(result, warnings=result.warnings + ["LLM validation unavailable; rule-based values kept."])

        records, mentions = reconcile_llm(result, extraction, options.reference)
        result = apply_reconciliation(result, records, mentions)
        disagreements = [record.field for record in records if record.agreement is False]
        if disagreements:
            logger.info(f"Language model disagreed on: {', '.join(disagreements)}")
        return replace(
            result,
            validation_gates=self._gates(result, options),
            warnings=result.warnings + [f"LLM: {warning}" for warning in extraction.warnings],
        )

    def _finalize(
        self, result: ExtractionResult, pages: list[PageText], file_hash: str | None, options: PipelineOptions
    ) -> ExtractionResult:
        warnings = list(result.warnings)
        reference_check = None
        if options.reference is not None:
            reference_check = cross_check_reference(result, options.reference)
            warnings.extend(reference_check["warnings"])
        return replace(
            result,
            status="complete",
            file_hash=file_hash,
            page_count=len(pages),
            warnings=warnings,
            reference_check=reference_check,
            parcel_id=options.bbl,
        )


def _reference_from_args(args: Any) -> ReferenceData | None:
    if args.lot_area is None and args.resid_far is None:
        return None
    return ReferenceData(lot_area=args.lot_area or 0.0, resid_far=args.resid_far or 0.0, bldg_area=args.bldg_area or 0.0)


async def _run_cli(document: bytes, settings: Settings, cache: ResultCache | None, options: PipelineOptions) -> ExtractionResult:
    ocr_client = build_ocr_client(settings)
    llm_client = build_llm_client(settings)
    pipeline = PlanExtractionPipeline(ocr_client=ocr_client, llm_client=llm_client, cache=cache)
    try:
        return await pipeline.run(document, options=options)
    finally:
        for client in (ocr_client, llm_client):
            if client is not None:
                await client.close()


def main(argv: list[str] | None = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Extract unit counts and zoning facts from an architectural plan set.")
    parser.add_argument("--input", required=True, help="PDF plan set")
    parser.add_argument("--lot-area", type=float, help="Reference lot area (SF)")
    parser.add_argument("--resid-far", type=float, help="Reference residential FAR")
    parser.add_argument("--bldg-area", type=float, help="Reference building area (SF)")
    parser.add_argument("--zone", help="Zoning district, e.g. R6")
    parser.add_argument("--bbl", help="Parcel identifier attached to the result")
    parser.add_argument("--llm", action="store_true", help="Run the language-model validation pass")
    parser.add_argument("--cache-dir", help="Result cache folder (defaults to PLAN_CACHE_DIR)")
    parser.add_argument("--no-cache", action="store_true", help="Neither read nor write the result cache")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("httpx", "pdfminer"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    input_path = Path(args.input)
    if not input_path.is_file():
        raise SystemExit(f"No PDF found at: {input_path}")

    settings = Settings.from_env()
    cache = None
    if not args.no_cache:
        cache = ResultCache(Path(args.cache_dir) if args.cache_dir else settings.cache_dir, settings.cache_ttl_days)
    options = PipelineOptions(
        reference=_reference_from_args(args),
        zone_district=args.zone,
        enable_llm=args.llm or settings.enable_llm,
        bbl=args.bbl,
    )

    result = asyncio.run(_run_cli(input_path.read_bytes(), settings, cache, options))
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.status != "empty" else 1


if __name__ == "__main__":
    raise SystemExit(main())
