import pytest

from plan_extraction.clients.base import CollaboratorError, ProviderNotConfiguredError
from plan_extraction.extractors.pdf_text import pages_from_texts
from plan_extraction.models.contracts import OcrLayout, OcrPage, OcrTable
from plan_extraction.pipelines.ocr_escalation import (
    escalate_ocr,
    keyword_hits,
    low_keyword_pages,
    merge_ocr_pages,
    scanned_page_indexes,
)

ZONING_FILLER = "ZONING ANALYSIS " * 10
NOTES = "GENERAL NOTES " * 20


class FakeOcrClient:
    def __init__(self, layout: OcrLayout | None = None, error: Exception | None = None, available: bool = True) -> None:
        self.layout = layout or OcrLayout(pages=[], tables=[])
        self.error = error
        self.available = available
        self.requests: list[list[int]] = []

    async def is_available(self) -> bool:
        return self.available

    async def fetch_layout(self, document: bytes, pages: list[int]) -> OcrLayout:
        self.requests.append(pages)
        if self.error is not None:
            raise self.error
        return self.layout


def test_keyword_hits() -> None:
    assert keyword_hits("Zoning analysis: lot area 5,000 SF, FAR 3.0") == 3
    assert keyword_hits("GENERAL NOTES") == 0


def test_page_selection() -> None:
    pages = pages_from_texts(["", ZONING_FILLER, NOTES])
    assert scanned_page_indexes(pages) == [1]
    assert [page.page_index for page in low_keyword_pages(pages)] == [3]


def test_merge_keeps_longer_native_text() -> None:
    pages = pages_from_texts([NOTES])
    layout = OcrLayout(pages=[OcrPage(page_index=1, text="NOTES")], tables=[])
    assert merge_ocr_pages(pages, layout) == []
    assert pages[0].text == NOTES


@pytest.mark.asyncio
async def test_scanned_pages_are_replaced() -> None:
    pages = pages_from_texts(["", ZONING_FILLER])
    table = OcrTable(page_index=1, table_index=1, header_rows=[["UNIT"]], body_rows=[["1A"]])
    client = FakeOcrClient(
        OcrLayout(pages=[OcrPage(page_index=1, text="COVER SHEET\nPROPOSED 1O5 UNIT BUILDING")], tables=[table])
    )

    outcome = await escalate_ocr(b"%PDF", pages, client)

    assert client.requests == [[1]]
    assert outcome.ocr_used
    assert outcome.replaced_pages == [1]
    assert outcome.tables == [table]
    assert "PROPOSED 105 UNIT" in pages[0].text
    assert not pages[0].is_likely_scanned


@pytest.mark.asyncio
async def test_keyword_poor_pages_get_a_second_chance() -> None:
    pages = pages_from_texts([ZONING_FILLER, ZONING_FILLER, ZONING_FILLER, NOTES])
    client = FakeOcrClient(
        OcrLayout(pages=[OcrPage(page_index=4, text=NOTES + "TOTAL DWELLING UNITS: 14")], tables=[])
    )

    outcome = await escalate_ocr(b"%PDF", pages, client)

    assert client.requests == [[4]]
    assert outcome.replaced_pages == [4]
    assert "TOTAL DWELLING UNITS: 14" in pages[3].text


@pytest.mark.asyncio
async def test_keyword_pass_skipped_when_most_pages_are_poor() -> None:
    client = FakeOcrClient()
    outcome = await escalate_ocr(b"%PDF", pages_from_texts([NOTES, NOTES, ZONING_FILLER]), client)
    assert client.requests == []
    assert not outcome.ocr_used


@pytest.mark.asyncio
async def test_missing_provider_is_skipped_quietly() -> None:
    client = FakeOcrClient(error=ProviderNotConfiguredError("no_provider"))
    outcome = await escalate_ocr(b"%PDF", pages_from_texts([""]), client)
    assert not outcome.ocr_used
    assert outcome.warnings == []


@pytest.mark.asyncio
async def test_failure_becomes_a_warning() -> None:
    pages = pages_from_texts([""])
    outcome = await escalate_ocr(b"%PDF", pages, FakeOcrClient(error=CollaboratorError("timeout")))
    assert outcome.warnings == ["Cloud OCR (scanned pages) failed; proceeding with native text only."]
    assert pages[0].text == ""


@pytest.mark.asyncio
async def test_unavailable_service_is_not_called() -> None:
    client = FakeOcrClient(available=False)
    outcome = await escalate_ocr(b"%PDF", pages_from_texts([""]), client)
    assert client.requests == []
    assert outcome.warnings == []


@pytest.mark.asyncio
async def test_nothing_to_do_without_client_or_document() -> None:
    pages = pages_from_texts([""])
    assert not (await escalate_ocr(b"%PDF", pages, None)).ocr_used
    assert not (await escalate_ocr(None, pages, FakeOcrClient())).ocr_used
