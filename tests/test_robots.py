"""Tests for robots.txt parsing and fetching.

``respx`` patches ``httpx`` at the transport layer so ``get_robots_info``
never touches the network.
"""

from __future__ import annotations

from unittest.mock import patch

import httpx
import respx

from govscout.scraper.models import RobotsInfo
from govscout.scraper.robots import get_robots_info, is_url_allowed, parse_robots


class TestParseRobots:
    def test_wildcard_crawl_delay_and_disallow(self) -> None:
        info = parse_robots("User-agent: *\nCrawl-delay: 5\nDisallow: /admin\n")
        assert info.crawl_delay_ms == 5000
        assert info.disallowed == ["/admin"]

    def test_fractional_delay(self) -> None:
        assert parse_robots("User-agent: *\nCrawl-delay: 0.5").crawl_delay_ms == 500

    def test_named_agent_groups_are_ignored(self) -> None:
        text = (
            "User-agent: Googlebot\n"
            "Disallow: /private\n"
            "Crawl-delay: 30\n"
            "\n"
            "User-agent: *\n"
            "Disallow: /tmp\n"
        )
        info = parse_robots(text)
        assert info.disallowed == ["/tmp"]
        assert info.crawl_delay_ms is None

    def test_consecutive_agents_share_a_group(self) -> None:
        info = parse_robots("User-agent: somebot\nUser-agent: *\nDisallow: /x\n")
        assert info.disallowed == ["/x"]

    def test_empty_disallow_and_comments(self) -> None:
        text = "# site rules\nUser-agent: *  # everyone\nDisallow:\nDisallow: /Drafts # keep case\n"
        info = parse_robots(text)
        assert info.disallowed == ["/Drafts"]

    def test_bad_delay_is_skipped(self) -> None:
        assert parse_robots("User-agent: *\nCrawl-delay: soon").crawl_delay_ms is None

    def test_non_finite_delay_is_skipped(self) -> None:
        for value in ("inf", "-inf", "nan", "1e400"):
            info = parse_robots(f"User-agent: *\nCrawl-delay: {value}\nDisallow: /admin\n")
            assert info.crawl_delay_ms is None
            assert info.disallowed == ["/admin"]

    def test_negative_delay_is_skipped(self) -> None:
        assert parse_robots("User-agent: *\nCrawl-delay: -3").crawl_delay_ms is None

    def test_delay_overflowing_milliseconds_is_skipped(self) -> None:
        assert parse_robots("User-agent: *\nCrawl-delay: 1e307").crawl_delay_ms is None

    def test_empty_file(self) -> None:
        assert parse_robots("") == RobotsInfo()


class TestGetRobotsInfo:
    def test_fetches_site_root_robots(self) -> None:
        with respx.mock:
            route = respx.get("https://city.gov/robots.txt").mock(
                return_value=httpx.Response(200, text="User-agent: *\nCrawl-delay: 2\nDisallow: /search")
            )
            info = get_robots_info("https://city.gov/departments/finance")

        assert route.called
        assert info.crawl_delay_ms == 2000
        assert info.disallowed == ["/search"]

    def test_missing_file_means_no_restrictions(self) -> None:
        with respx.mock:
            respx.get("https://city.gov/robots.txt").mock(return_value=httpx.Response(404))
            info = get_robots_info("https://city.gov/")

        assert info == RobotsInfo()

    def test_network_error_means_no_restrictions(self) -> None:
        with respx.mock:
            respx.get("https://city.gov/robots.txt").mock(side_effect=httpx.ConnectError("refused"))
            info = get_robots_info("https://city.gov/")

        assert info.crawl_delay_ms is None
        assert info.disallowed == []

    def test_unparseable_delay_means_no_delay(self) -> None:
        with respx.mock:
            respx.get("https://city.gov/robots.txt").mock(
                return_value=httpx.Response(200, text="User-agent: *\nCrawl-delay: 1e400\nDisallow: /tmp")
            )
            info = get_robots_info("https://city.gov/")

        assert info.crawl_delay_ms is None
        assert info.disallowed == ["/tmp"]

    def test_parser_failure_means_no_restrictions(self) -> None:
        with respx.mock:
            respx.get("https://city.gov/robots.txt").mock(
                return_value=httpx.Response(200, text="User-agent: *\nDisallow: /tmp")
            )
            with patch("govscout.scraper.robots.parse_robots", side_effect=OverflowError("boom")):
                info = get_robots_info("https://city.gov/")

        assert info == RobotsInfo()


class TestIsUrlAllowed:
    def test_prefix_match_is_blocked(self) -> None:
        assert not is_url_allowed("https://city.gov/admin/users", ["/admin"])

    def test_other_paths_allowed(self) -> None:
        assert is_url_allowed("https://city.gov/budget", ["/admin", "/tmp"])

    def test_root_rule_blocks_everything(self) -> None:
        assert not is_url_allowed("https://city.gov/budget", ["/"])

    def test_no_rules(self) -> None:
        assert is_url_allowed("https://city.gov/anything", [])
