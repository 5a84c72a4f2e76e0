from __future__ import annotations

import io
import logging
import re

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from plan_extraction.models.contracts import PageText
from plan_extraction.policy import OCR_POLICY, OcrPolicy

logger = logging.getLogger(__name__)

PRINTABLE_RE = re.compile(r"[a-zA-Z0-9.,;:!?()\[\]{}\-+=/\\@#$%&*'\"<> ]")


def printable_ratio(text: str) -> float:
    if not text:
        return 0.0
    return len(PRINTABLE_RE.findall(text)) / len(text)


def is_likely_scanned(text: str, policy: OcrPolicy = OCR_POLICY) -> bool:
    return len(text) < policy.min_chars or printable_ratio(text) < policy.min_printable_ratio


def build_page_text(page_index: int, text: str, policy: OcrPolicy = OCR_POLICY) -> PageText:
    return PageText(
        page_index=page_index,
        text=text,
        char_count=len(text),
        is_likely_scanned=is_likely_scanned(text, policy),
    )


def pages_from_texts(page_texts: list[str], policy: OcrPolicy = OCR_POLICY) -> list[PageText]:
    return [build_page_text(i, text, policy) for i, text in enumerate(page_texts, start=1)]


def extract_page_texts(document: bytes) -> list[str]:
    try:
        reader = PdfReader(io.BytesIO(document))
    except (PdfReadError, ValueError, OSError) as exc:
        logger.warning(f"Could not open document for text extraction: {exc}")
        return []

    extracted_texts: list[str] = []
    for page_number, page in enumerate(reader.pages, start=1):
        try:
            extracted_texts.append((page.extract_text() or "").strip())
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Text extraction failed on page {page_number}: {exc}")
            extracted_texts.append("")
    return extracted_texts


def ingest_document(document: bytes, policy: OcrPolicy = OCR_POLICY) -> list[PageText]:
    """Per-page text with a scanned-page flag. Unreadable documents yield no pages."""
    pages = pages_from_texts(extract_page_texts(document), policy)
    scanned = sum(1 for page in pages if page.is_likely_scanned)
    logger.info(f"Ingested {len(pages)} pages ({scanned} likely scanned)")
    return pages
