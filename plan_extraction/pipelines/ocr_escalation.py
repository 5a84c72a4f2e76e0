from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from plan_extraction.clients.base import CollaboratorError, ProviderNotConfiguredError
from plan_extraction.clients.ocr_client import CloudOcrClient
from plan_extraction.models.contracts import OcrLayout, OcrTable, PageText
from plan_extraction.normalizers.ocr_text import postprocess_ocr_text
from plan_extraction.policy import OCR_POLICY, OcrPolicy

logger = logging.getLogger(__name__)

DOMAIN_KEYWORDS = ["UNIT", "FAR", "LOT AREA", "DWELLING", "ZONING", "FLOOR AREA"]


@dataclass
class OcrOutcome:
    ocr_used: bool = False
    tables: list[OcrTable] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    replaced_pages: list[int] = field(default_factory=list)


def scanned_page_indexes(pages: list[PageText], policy: OcrPolicy = OCR_POLICY) -> list[int]:
    return [page.page_index for page in pages if page.is_likely_scanned][: policy.max_scanned_pages]


def keyword_hits(text: str) -> int:
    upper = text.upper()
    return sum(1 for keyword in DOMAIN_KEYWORDS if keyword in upper)


def low_keyword_pages(pages: list[PageText], policy: OcrPolicy = OCR_POLICY) -> list[PageText]:
    """Pages with plenty of native text but almost none of the vocabulary the extractors look for."""
    return [
        page
        for page in pages
        if not page.is_likely_scanned
        and page.char_count >= policy.low_keyword_min_chars
        and keyword_hits(page.text) < policy.low_keyword_max_hits
    ]


def merge_ocr_pages(pages: list[PageText], layout: OcrLayout) -> list[int]:
    """Swap in OCR text wherever it is longer than what the page already has. Returns the replaced page indexes."""
    by_index = {page.page_index: page for page in pages}
    replaced: list[int] = []
    for ocr_page in layout.pages:
        existing = by_index.get(ocr_page.page_index)
        if existing is None:
            continue
        cleaned = postprocess_ocr_text(ocr_page.text)
        if len(cleaned) <= existing.char_count:
            continue
        existing.text = cleaned
        existing.char_count = len(cleaned)
        existing.is_likely_scanned = False
        replaced.append(existing.page_index)
    return replaced


async def _ocr_pass(
    document: bytes, pages: list[PageText], targets: list[int], client: CloudOcrClient, outcome: OcrOutcome, label: str
) -> None:
    try:
        if not await client.is_available():
            logger.info(f"Cloud OCR unavailable; skipping {label} pass")
            return
        layout = await client.fetch_layout(document, targets)
    except ProviderNotConfiguredError:
        logger.info(f"Cloud OCR has no provider configured; skipping {label} pass")
        return
    except (CollaboratorError, httpx.HTTPError) as exc:
        logger.warning(f"Cloud OCR {label} pass failed, proceeding with native text: {exc}")
        outcome.warnings.append(f"Cloud OCR ({label} pages) failed; proceeding with native text only.")
        return

    outcome.ocr_used = True
    replaced = merge_ocr_pages(pages, layout)
    outcome.replaced_pages.extend(replaced)
    outcome.tables.extend(layout.tables)
    logger.info(
        f"Cloud OCR {label} pass: {len(targets)} pages requested, {len(replaced)} replaced, {len(layout.tables)} tables"
    )


async def escalate_ocr(
    document: bytes | None,
    pages: list[PageText],
    client: CloudOcrClient | None,
    policy: OcrPolicy = OCR_POLICY,
) -> OcrOutcome:
    """Recover text for scanned pages and, failing that, for keyword-poor pages. Mutates ``pages`` in place.

    Nothing here raises: a missing client or document skips the stage and
    collaborator failures become warnings on the outcome.
    """
    outcome = OcrOutcome()
    if client is None or document is None or not pages:
        return outcome

    scanned = scanned_page_indexes(pages, policy)
    if scanned:
        await _ocr_pass(document, pages, scanned, client, outcome, "scanned")

    candidates = low_keyword_pages(pages, policy)
    if not outcome.ocr_used and candidates and len(candidates) <= len(pages) * policy.low_keyword_max_share:
        targets = [page.page_index for page in candidates[: policy.max_low_keyword_pages]]
        await _ocr_pass(document, pages, targets, client, outcome, "low-keyword")
    return outcome
