"""Tests for the scrape pipeline (crawl → thin-page filter → chunk → summary)."""

from __future__ import annotations

from govscout.pipeline import generate_url_id, scrape_site
from govscout.scraper.crawler import CrawlConfig
from govscout.scraper.models import (
    CrawlError,
    CrawlResult,
    CrawlStats,
    ExtractedLink,
    PageContent,
    RankedLink,
)

_RICH_MARKDOWN = "# Finance\n\n## Budget\n\n" + " ".join(
    f"The adopted budget allocates funds to program {n}." for n in range(30)
)


def _fake_result() -> CrawlResult:
    link = RankedLink.from_link(
        ExtractedLink(url="https://city.gov/rfp", anchor_text="Open RFPs", context="Open RFPs"),
        relevance_score=0.92,
        category="procurement",
        rationale="Active solicitations",
    )
    return CrawlResult(
        pages=[
            PageContent(url="https://city.gov/", title="City", markdown="# City\n\nWelcome."),
            PageContent(url="https://city.gov/finance/budget", title="Budget", markdown=_RICH_MARKDOWN),
        ],
        ranked_links=[link],
        stats=CrawlStats(
            pages_processed=2,
            links_found=1,
            high_value_links=1,
            duration_ms=1234,
            errors=[CrawlError(url="https://city.gov/broken", error="Failed to fetch")],
        ),
    )


class TestGenerateUrlId:
    def test_root_is_home(self) -> None:
        assert generate_url_id("https://city.gov/") == "city-gov-home"

    def test_uses_last_two_path_segments(self) -> None:
        assert generate_url_id("https://city.gov/finance/budget/fy2025.pdf") == "city-gov-budget-fy2025-pdf"

    def test_single_segment(self) -> None:
        assert generate_url_id("https://www.city.gov/contact") == "www-city-gov-contact"


class TestScrapeSite:
    def test_chunks_pages_with_enough_content(self, capsys) -> None:
        calls = []

        def fake_crawl(seed_url, config):
            calls.append((seed_url, config))
            return _fake_result()

        config = CrawlConfig(max_pages=5)
        result = scrape_site("https://city.gov/", config, crawl_fn=fake_crawl)

        assert calls == [("https://city.gov/", config)]
        assert result.skipped == ["https://city.gov/"]
        assert len(result.documents) == 1

        doc = result.documents[0]
        assert doc.url == "https://city.gov/finance/budget"
        assert doc.url_id == "city-gov-finance-budget"
        assert doc.title == "Budget"
        assert doc.token_count > 0
        assert doc.chunks
        assert [c.chunk_index for c in doc.chunks] == list(range(len(doc.chunks)))
        assert result.chunk_count == len(doc.chunks)

        out = capsys.readouterr().out
        assert "SCRAPE SUMMARY" in out
        assert "Open RFPs" in out
        assert "https://city.gov/broken" in out

    def test_threshold_is_configurable(self) -> None:
        result = scrape_site(
            "https://city.gov/",
            crawl_fn=lambda seed_url, config: _fake_result(),
            min_content_chars=0,
        )
        assert len(result.documents) == 2
        assert result.skipped == []
