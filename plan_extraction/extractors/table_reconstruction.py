from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass

import pdfplumber

from plan_extraction.models.contracts import OcrTable, RawTable

logger = logging.getLogger(__name__)

HEADER_TOKEN_RE = re.compile(
    r"\b(UNIT|APT|APARTMENT|BR|BED|BEDROOM|SF|SQ\.?\s*FT|AREA|AFFORDABLE|MIH|AMI|ALLOCATION|TYPE)\b",
    re.IGNORECASE,
)
_COLUMN_SPLIT_RE = re.compile(r"\s*\|\s*|\t+|\s{2,}")

Y_TOLERANCE = 3.0
X_GAP = 10.0


@dataclass(frozen=True)
class TextLine:
    top: float
    cells: list[str]


def is_header_row(cells: list[str]) -> bool:
    if len(cells) < 2:
        return False
    return sum(1 for cell in cells if HEADER_TOKEN_RE.search(cell)) >= 2


def cluster_words(words: list[dict], y_tolerance: float = Y_TOLERANCE, x_gap: float = X_GAP) -> list[TextLine]:
    """Group positioned words into lines by vertical position, then split each line into cells on wide gaps."""
    rows: list[list[dict]] = []
    for word in sorted(words, key=lambda w: (float(w["top"]), float(w["x0"]))):
        if rows and abs(float(word["top"]) - float(rows[-1][0]["top"])) <= y_tolerance:
            rows[-1].append(word)
        else:
            rows.append([word])

    lines: list[TextLine] = []
    for row in rows:
        row.sort(key=lambda w: float(w["x0"]))
        cells: list[str] = []
        current: list[str] = []
        previous_x1: float | None = None
        for word in row:
            if previous_x1 is not None and float(word["x0"]) - previous_x1 > x_gap:
                cells.append(" ".join(current))
                current = []
            current.append(str(word["text"]))
            previous_x1 = float(word["x1"])
        if current:
            cells.append(" ".join(current))
        lines.append(TextLine(top=float(row[0]["top"]), cells=cells))
    return lines


def tables_from_lines(
    lines: list[TextLine], page_index: int, start_index: int = 1, y_tolerance: float = Y_TOLERANCE
) -> list[RawTable]:
    tables: list[RawTable] = []
    next_index = start_index
    position = 0
    while position < len(lines):
        header = lines[position]
        if not is_header_row(header.cells):
            position += 1
            continue

        body: list[list[str]] = []
        previous_top = header.top
        base_spacing: float | None = None
        cursor = position + 1
        while cursor < len(lines):
            line = lines[cursor]
            if is_header_row(line.cells):
                break
            gap = line.top - previous_top
            if base_spacing is not None and gap > max(base_spacing * 2.5, y_tolerance * 4):
                break
            if base_spacing is None:
                base_spacing = gap
            if len(line.cells) >= 2:
                body.append(line.cells)
            previous_top = line.top
            cursor += 1

        if body:
            tables.append(
                RawTable(
                    page_index=page_index,
                    table_index=next_index,
                    headers=list(header.cells),
                    rows=_pad_rows(body, len(header.cells)),
                    source="native_text",
                )
            )
            next_index += 1
        position = cursor
    return tables


def reconstruct_native_tables(document: bytes, start_index: int = 1) -> list[RawTable]:
    """Tables rebuilt from positioned words, numbered from ``start_index`` so they follow any OCR tables."""
    tables: list[RawTable] = []
    try:
        with pdfplumber.open(io.BytesIO(document)) as pdf:
            for page_index, page in enumerate(pdf.pages, start=1):
                lines = cluster_words(page.extract_words() or [])
                tables.extend(tables_from_lines(lines, page_index, start_index=start_index + len(tables)))
    except Exception as exc:  # noqa: BLE001
        logger.warning(f"Native table reconstruction failed: {exc}")
        return []
    return tables


def reconstruct_text_tables(page_texts: list[str], start_index: int = 1) -> list[RawTable]:
    """Tables from plain text lines whose columns are separated by pipes or runs of 2+ spaces."""
    tables: list[RawTable] = []
    for page_index, text in enumerate(page_texts, start=1):
        current_rows: list[list[str]] = []
        for raw_line in text.splitlines() + [""]:
            line = raw_line.strip().strip("|")
            columns = [chunk.strip() for chunk in _COLUMN_SPLIT_RE.split(line) if chunk.strip()] if line else []
            if len(columns) >= 2:
                current_rows.append(columns)
                continue
            if len(current_rows) >= 2:
                width = max(len(row) for row in current_rows)
                tables.append(
                    RawTable(
                        page_index=page_index,
                        table_index=start_index + len(tables),
                        headers=current_rows[0] + [""] * (width - len(current_rows[0])),
                        rows=_pad_rows(current_rows[1:], width),
                        source="text_lines",
                    )
                )
            current_rows = []
    return tables


def tables_from_ocr(ocr_tables: list[OcrTable]) -> list[RawTable]:
    converted: list[RawTable] = []
    for table in ocr_tables:
        headers = _merge_header_rows(table.header_rows)
        width = max([len(headers)] + [len(row) for row in table.body_rows])
        converted.append(
            RawTable(
                page_index=table.page_index,
                table_index=table.table_index,
                headers=headers + [""] * (width - len(headers)),
                rows=_pad_rows(table.body_rows, width),
                source="ocr",
            )
        )
    return converted


def _merge_header_rows(header_rows: list[list[str]]) -> list[str]:
    if not header_rows:
        return []
    width = max(len(row) for row in header_rows)
    merged: list[str] = []
    for column in range(width):
        parts = [row[column].strip() for row in header_rows if column < len(row) and row[column].strip()]
        merged.append(" ".join(parts))
    return merged


def _pad_rows(rows: list[list[str]], width: int) -> list[list[str]]:
    width = max([width] + [len(row) for row in rows])
    return [row + [""] * (width - len(row)) for row in rows]
