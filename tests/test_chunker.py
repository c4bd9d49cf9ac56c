"""Tests for the markdown chunker."""

from __future__ import annotations

from govscout.rag.chunker import (
    MAX_CHUNK_TOKENS,
    ChunkResult,
    chunk_document,
    count_tokens,
    get_document_token_count,
)

# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


def _paragraph(section: int, para: int) -> str:
    return " ".join(
        f"Item {section}-{para}-{n} covers the capital budget for the water treatment project."
        for n in range(8)
    )


def _long_section(section: int, paragraphs: int = 15) -> str:
    return "\n\n".join(_paragraph(section, p) for p in range(paragraphs))


def _three_long_sections() -> str:
    titles = ["Budget Overview", "Capital Projects", "Procurement"]
    return "\n\n".join(f"## {title}\n\n{_long_section(i)}" for i, title in enumerate(titles))


def _words(text: str) -> str:
    return " ".join(text.split())


# ---------------------------------------------------------------------------
# Token counting
# ---------------------------------------------------------------------------

class TestCountTokens:
    def test_empty(self) -> None:
        assert count_tokens("") == 0

    def test_grows_with_text(self) -> None:
        assert 0 < count_tokens("Budget") < count_tokens("Budget for fiscal year 2025.")

    def test_document_token_count(self) -> None:
        text = "## Budget\n\nAdopted budget."
        assert get_document_token_count(text) == count_tokens(text)


# ---------------------------------------------------------------------------
# Sectioning
# ---------------------------------------------------------------------------

class TestSections:
    def test_blank_input(self) -> None:
        assert chunk_document("") == []
        assert chunk_document("   \n\n\t ") == []

    def test_no_headers_is_one_document_section(self) -> None:
        chunks = chunk_document("Plain text about the city budget.\n\nSecond paragraph.")
        assert len(chunks) == 1
        assert chunks[0].section_title == "Document"
        assert chunks[0].chunk_index == 0
        assert chunks[0].token_count == count_tokens(chunks[0].content)

    def test_introduction_and_header_titles(self) -> None:
        md = "Welcome to the finance portal.\n\n## Budget\n\nAdopted budget.\n\n### Audits\n\nAnnual audit."
        chunks = chunk_document(md, min_tokens=0)
        assert [c.section_title for c in chunks] == ["Introduction", "Budget", "Audits"]
        assert chunks[1].content == "Adopted budget."

    def test_level_one_and_four_headers_do_not_split(self) -> None:
        md = "# Page title\n\n#### Minor heading\n\nSome text."
        chunks = chunk_document(md, min_tokens=0)
        assert [c.section_title for c in chunks] == ["Document"]

    def test_empty_sections_are_dropped(self) -> None:
        md = "## Empty\n\n## Budget\n\nAdopted budget."
        chunks = chunk_document(md, min_tokens=0)
        assert [c.section_title for c in chunks] == ["Budget"]

    def test_small_section_merges_into_previous(self) -> None:
        md = f"## Budget\n\n{_paragraph(0, 0)}\n\n{_paragraph(0, 1)}\n\n## Note\n\nSee appendix."
        chunks = chunk_document(md)

        assert len(chunks) == 1
        assert chunks[0].section_title == "Budget"
        assert chunks[0].content.endswith("See appendix.")

    def test_first_section_is_never_merged_backward(self) -> None:
        md = f"## Tiny\n\nShort intro.\n\n## Budget\n\n{_paragraph(0, 0)}\n\n{_paragraph(0, 1)}"
        chunks = chunk_document(md)
        assert [c.section_title for c in chunks] == ["Tiny", "Budget"]


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------

class TestSplitting:
    def test_each_long_section_is_split_with_overlap(self) -> None:
        md = _three_long_sections()
        for i in range(3):
            assert count_tokens(_long_section(i)) > MAX_CHUNK_TOKENS

        chunks = chunk_document(md)

        for title in ["Budget Overview", "Capital Projects", "Procurement"]:
            own = [c for c in chunks if c.section_title in (title, f"{title} (continued)")]
            assert len(own) >= 2
            assert own[0].section_title == title
            assert all(c.section_title == f"{title} (continued)" for c in own[1:])

        for prev, cur in zip(chunks, chunks[1:]):
            if cur.section_title.endswith("(continued)"):
                lead = " ".join(cur.content.split()[:5])
                assert lead in _words(prev.content)

    def test_chunks_respect_the_size_bound(self) -> None:
        chunks = chunk_document(_three_long_sections())
        assert all(c.token_count <= MAX_CHUNK_TOKENS for c in chunks)
        assert all(c.token_count == count_tokens(c.content) for c in chunks)

    def test_indices_are_dense(self) -> None:
        chunks = chunk_document(_three_long_sections())
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))

    def test_is_deterministic(self) -> None:
        md = _three_long_sections()
        assert chunk_document(md) == chunk_document(md)

    def test_reading_order_is_preserved(self) -> None:
        chunks = chunk_document(_three_long_sections())
        # Each paragraph's first sentence shows up in order across the chunks.
        joined = _words(" ".join(c.content for c in chunks))
        positions = [joined.find(f"Item 0-{p}-0 ") for p in range(15)]
        assert all(pos >= 0 for pos in positions)
        assert positions == sorted(positions)

    def test_oversized_paragraph_splits_on_sentences(self) -> None:
        para = " ".join(f"Sentence {n} explains the bond issue." for n in range(40))
        chunks = chunk_document(para, max_tokens=60, min_tokens=0, overlap_tokens=0)

        assert len(chunks) > 1
        assert all(c.token_count <= 60 for c in chunks)
        assert all(c.content.endswith(".") for c in chunks)

    def test_unbroken_text_splits_on_words(self) -> None:
        text = " ".join(["alpha"] * 400)
        chunks = chunk_document(text, max_tokens=50, min_tokens=0, overlap_tokens=10)

        assert len(chunks) > 1
        assert all(c.token_count <= 50 for c in chunks)
        assert chunks[1].section_title == "Document (continued)"

    def test_returns_chunk_results(self) -> None:
        chunks = chunk_document("## Budget\n\nAdopted budget.")
        assert chunks == [
            ChunkResult(
                section_title="Budget",
                content="Adopted budget.",
                token_count=count_tokens("Adopted budget."),
                chunk_index=0,
            )
        ]
