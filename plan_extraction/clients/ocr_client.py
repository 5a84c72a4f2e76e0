from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from plan_extraction.clients.base import BaseCollaboratorClient, CollaboratorError, ProviderNotConfiguredError
from plan_extraction.models.contracts import OcrLayout, OcrPage, OcrTable

logger = logging.getLogger(__name__)

NO_PROVIDER = "no_provider"


def _string_rows(rows: Any) -> list[list[str]]:
    if not isinstance(rows, list):
        return []
    return [["" if cell is None else str(cell) for cell in row] for row in rows if isinstance(row, list)]


def parse_layout(data: dict[str, Any]) -> OcrLayout:
    """Convert the OCR service's JSON reply into pages and pre-segmented tables."""
    if data.get("error") == NO_PROVIDER:
        raise ProviderNotConfiguredError(NO_PROVIDER)

    pages = [
        OcrPage(
            page_index=int(page["page"]),
            text=str(page.get("text") or ""),
            lines=[str(line) for line in page.get("lines") or []],
        )
        for page in data.get("pages") or []
    ]

    tables: list[OcrTable] = []
    for table_index, table in enumerate(data.get("tables") or [], start=1):
        rows = _string_rows(table.get("rows"))
        header_rows = _string_rows(table["headerRows"]) if table.get("headerRows") is not None else rows[:1]
        body_rows = _string_rows(table["bodyRows"]) if table.get("bodyRows") is not None else rows[1:]
        tables.append(
            OcrTable(
                page_index=int(table["page"]),
                table_index=table_index,
                header_rows=header_rows,
                body_rows=body_rows,
            )
        )
    return OcrLayout(pages=pages, tables=tables)


class CloudOcrClient(BaseCollaboratorClient):
    """Cloud OCR/layout service: an availability check plus one layout call per run."""

    async def is_available(self) -> bool:
        try:
            data = await self._request_json("GET", params={"check": "1"})
        except (CollaboratorError, httpx.HTTPError) as exc:
            logger.warning(f"OCR availability check failed: {exc}")
            return False
        return bool(isinstance(data, dict) and data.get("available"))

    async def fetch_layout(self, document: bytes, pages: list[int]) -> OcrLayout:
        payload = {"fileBase64": base64.b64encode(document).decode("ascii"), "pages": pages}
        data = await self._request_json("POST", json=payload)
        if not isinstance(data, dict):
            raise CollaboratorError("OCR service returned an unexpected payload")
        try:
            return parse_layout(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise CollaboratorError(f"Malformed OCR layout: {exc}") from exc
