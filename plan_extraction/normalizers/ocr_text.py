"""Cleanup of raw OCR text before it is handed to the signal extractors.

Every rule is applied repeatedly until the text stops changing, so
``postprocess_ocr_text(postprocess_ocr_text(t)) == postprocess_ocr_text(t)``.
"""

from __future__ import annotations

import re

HYPHEN_BREAK_RE = re.compile(r"(?<=\w)-[ \t]*\n\s*(?=\w)")

DIGIT_CONFUSIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?<=\d)O(?=\d)"), "0"),
    (re.compile(r"(?<=\d)o(?=\d)"), "0"),
    (re.compile(r"(?<=\d)l(?=\d)"), "1"),
    (re.compile(r"(?<=\d)I(?=\d)"), "1"),
    (re.compile(r"(?<=\d)S(?=\d)"), "5"),
    (re.compile(r"(?<=\d)B(?=\d)"), "8"),
]

SPLIT_THOUSANDS_RE = re.compile(r"(\d),\s+(\d)")
WIDE_GAP_RE = re.compile(r"[ \t]{3,}")

ARTIFACTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"_{3,}"), ""),
    (re.compile(r"\|{2,}"), "|"),
    (re.compile(r"\.{4,}"), "..."),
]


def rejoin_hyphenated_words(text: str) -> str:
    return HYPHEN_BREAK_RE.sub("", text)


def fix_digit_confusions(text: str) -> str:
    for pattern, replacement in DIGIT_CONFUSIONS:
        text = pattern.sub(replacement, text)
    return text


def normalize_whitespace(text: str) -> str:
    text = text.replace("\u00a0", " ")
    text = SPLIT_THOUSANDS_RE.sub(r"\1,\2", text)
    return WIDE_GAP_RE.sub("  ", text)


def strip_artifacts(text: str) -> str:
    for pattern, replacement in ARTIFACTS:
        text = pattern.sub(replacement, text)
    return text


def _single_pass(text: str) -> str:
    text = rejoin_hyphenated_words(text)
    text = fix_digit_confusions(text)
    text = normalize_whitespace(text)
    return strip_artifacts(text)


def postprocess_ocr_text(text: str) -> str:
    current = text
    while True:
        cleaned = _single_pass(current)
        if cleaned == current:
            return cleaned
        current = cleaned
