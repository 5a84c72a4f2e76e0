from plan_extraction.extractors.pdf_text import pages_from_texts
from plan_extraction.pipelines.page_relevance import classify_pages, llm_page_type, pages_for_llm, score_page


def test_score_page_sums_rule_weights() -> None:
    assert score_page("ZONING ANALYSIS LOT AREA") == (7, {"ZONING_ANALYSIS": 7})
    assert score_page("GENERAL NOTES") == (0, {})


def test_guaranteed_categories_pull_in_low_scoring_pages() -> None:
    pages = pages_from_texts(
        [
            "COVER SHEET PROPOSED 14 UNIT",
            "ZONING ANALYSIS LOT AREA",
            "GENERAL NOTES",
            "NET SF",
        ]
    )
    relevance = classify_pages(pages)

    assert [(r.category, r.selected_for_llm) for r in relevance] == [
        ("COVER_SHEET", True),
        ("ZONING_ANALYSIS", True),
        ("IRRELEVANT", False),
        ("IRRELEVANT", True),
    ]
    assert [page.page_index for page in pages_for_llm(pages, relevance)] == [1, 2, 4]


def test_selection_is_capped_at_eight_relevant_pages() -> None:
    pages = pages_from_texts(["COVER SHEET"] * 10)
    relevance = classify_pages(pages)
    assert sum(1 for r in relevance if r.selected_for_llm) == 8


def test_llm_page_types() -> None:
    assert llm_page_type("ZONING_ANALYSIS") == "ZONING"
    assert llm_page_type("COVER_SHEET") == "COVER_SHEET"
    assert llm_page_type("IRRELEVANT") == "GENERAL"
