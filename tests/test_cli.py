"""Tests for the govscout CLI (invoked through Typer's ``CliRunner``)."""

from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import patch

from typer.testing import CliRunner

from cli.main import app
from govscout.scraper.errors import InvalidURLError, RendererUnavailableError
from govscout.scraper.models import CrawlResult, ExtractedLink, PageContent, RobotsInfo

runner = CliRunner()


class TestChunkCommand:
    def test_lists_chunks(self, tmp_path) -> None:
        doc = tmp_path / "budget.md"
        doc.write_text("## Budget\n\nAdopted budget.\n\n## Audits\n\nAnnual audit.", encoding="utf-8")

        result = runner.invoke(app, ["chunk", str(doc), "--min-tokens", "0"])

        assert result.exit_code == 0
        assert "2 chunk(s)" in result.output
        assert "Budget" in result.output
        assert "Audits" in result.output

    def test_show_prints_content(self, tmp_path) -> None:
        doc = tmp_path / "budget.md"
        doc.write_text("Plain text only.", encoding="utf-8")

        result = runner.invoke(app, ["chunk", str(doc), "--show"])

        assert result.exit_code == 0
        assert "Document" in result.output
        assert "Plain text only." in result.output

    def test_missing_file_fails(self, tmp_path) -> None:
        result = runner.invoke(app, ["chunk", str(tmp_path / "nope.md")])
        assert result.exit_code != 0


class TestRobotsCommand:
    def test_prints_rules(self) -> None:
        info = RobotsInfo(crawl_delay_ms=5000, disallowed=["/admin", "/tmp"])
        with patch("govscout.scraper.robots.get_robots_info", return_value=info):
            result = runner.invoke(app, ["robots", "https://city.gov/"])

        assert result.exit_code == 0
        assert "5000ms" in result.output
        assert "/admin" in result.output

    def test_no_rules(self) -> None:
        with patch("govscout.scraper.robots.get_robots_info", return_value=RobotsInfo()):
            result = runner.invoke(app, ["robots", "https://city.gov/"])

        assert result.exit_code == 0
        assert "Disallow: (none)" in result.output


class TestCrawlCommand:
    def test_builds_config_from_options(self) -> None:
        with patch("govscout.pipeline.scrape_site") as mock_scrape:
            result = runner.invoke(
                app,
                ["crawl", "https://city.gov/", "--max-depth", "1", "--max-pages", "7", "--no-llm", "--ignore-robots"],
            )

        assert result.exit_code == 0
        args, kwargs = mock_scrape.call_args
        assert args[0] == "https://city.gov/"
        config = args[1]
        assert config.max_depth == 1
        assert config.max_pages == 7
        assert config.use_llm_ranking is False
        assert config.respect_robots is False
        assert config.same_domain_only is True

    def test_writes_json_output(self, tmp_path) -> None:
        from govscout.pipeline import ScrapeResult

        out = tmp_path / "result.json"
        with patch("govscout.pipeline.scrape_site", return_value=ScrapeResult(crawl_result=CrawlResult())):
            result = runner.invoke(app, ["crawl", "https://city.gov/", "-o", str(out)])

        assert result.exit_code == 0
        assert '"documents": []' in out.read_text(encoding="utf-8")

    def test_invalid_url_exits_with_error(self) -> None:
        with patch("govscout.pipeline.scrape_site", side_effect=InvalidURLError("bad")):
            result = runner.invoke(app, ["crawl", "not-a-url"])

        assert result.exit_code == 1
        assert "Invalid URL" in result.output


class TestExtractCommand:
    def test_prints_markdown(self) -> None:
        page = PageContent(
            url="https://city.gov/",
            title="City Hall",
            markdown="# City Hall\n\nWelcome.",
            links=[ExtractedLink(url="https://city.gov/budget", anchor_text="Budget", context="Budget")],
        )

        class _Extractor:
            def extract(self, url):
                return page

        @contextmanager
        def fake_open_extractor(use_renderer=True):
            yield _Extractor()

        with patch("govscout.scraper.extractor.open_extractor", fake_open_extractor):
            result = runner.invoke(app, ["extract", "https://city.gov", "--links"])

        assert result.exit_code == 0
        assert "City Hall" in result.output
        assert "https://city.gov/budget" in result.output

    def test_unreachable_page_fails(self) -> None:
        class _Extractor:
            def extract(self, url):
                return None

        @contextmanager
        def fake_open_extractor(use_renderer=True):
            yield _Extractor()

        with patch("govscout.scraper.extractor.open_extractor", fake_open_extractor):
            result = runner.invoke(app, ["extract", "https://city.gov/"])

        assert result.exit_code == 1

    def test_renderer_unavailable_fails(self) -> None:
        @contextmanager
        def fake_open_extractor(use_renderer=True):
            raise RendererUnavailableError("no chromium")
            yield

        with patch("govscout.scraper.extractor.open_extractor", fake_open_extractor):
            result = runner.invoke(app, ["extract", "https://city.gov/"])

        assert result.exit_code == 1
        assert "Browser unavailable" in result.output
