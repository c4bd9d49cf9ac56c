"""Tests for the browser session wrapper.

Chromium is never launched; Playwright objects are ``MagicMock`` stand-ins.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from govscout.scraper.browser import BrowserSession, RenderedPage, _block_heavy_resources
from govscout.scraper.errors import RendererUnavailableError


def _started_session(status=200, settle_ms=0) -> tuple[BrowserSession, MagicMock]:
    session = BrowserSession(headless=True, settle_ms=settle_ms)
    page = MagicMock()
    page.goto.return_value = MagicMock(status=status) if status is not None else None
    context = MagicMock()
    context.new_page.return_value = page
    session._context = context
    return session, page


class TestResourceBlocking:
    @pytest.mark.parametrize("resource_type", ["image", "font", "media"])
    def test_heavy_resources_are_aborted(self, resource_type: str) -> None:
        route = MagicMock()
        route.request.resource_type = resource_type
        _block_heavy_resources(route)
        route.abort.assert_called_once()
        route.continue_.assert_not_called()

    @pytest.mark.parametrize("resource_type", ["document", "script", "xhr", "stylesheet"])
    def test_other_resources_continue(self, resource_type: str) -> None:
        route = MagicMock()
        route.request.resource_type = resource_type
        _block_heavy_resources(route)
        route.continue_.assert_called_once()
        route.abort.assert_not_called()


class TestRenderedPage:
    def test_ok_only_for_2xx(self) -> None:
        assert RenderedPage("u", 200, MagicMock()).ok
        assert not RenderedPage("u", 404, MagicMock()).ok
        assert not RenderedPage("u", None, MagicMock()).ok


class TestBrowserSession:
    def test_open_page_navigates_and_always_closes_tab(self) -> None:
        session, page = _started_session()

        with session.open_page("https://city.gov/") as rendered:
            assert rendered.status == 200
            assert rendered.ok

        page.goto.assert_called_once_with(
            "https://city.gov/",
            wait_until="domcontentloaded",
            timeout=session.navigation_timeout_ms,
        )
        page.close.assert_called_once()

    def test_tab_closed_when_navigation_fails(self) -> None:
        session, page = _started_session()
        page.goto.side_effect = TimeoutError("Timeout 30000ms exceeded")

        with pytest.raises(TimeoutError):
            with session.open_page("https://city.gov/slow"):
                pass

        page.close.assert_called_once()

    def test_settle_wait_only_for_successful_pages(self) -> None:
        session, page = _started_session(status=200, settle_ms=250)
        with session.open_page("https://city.gov/"):
            pass
        page.wait_for_timeout.assert_called_once_with(250)

        session, page = _started_session(status=500, settle_ms=250)
        with session.open_page("https://city.gov/"):
            pass
        page.wait_for_timeout.assert_not_called()

    def test_close_is_idempotent(self) -> None:
        session, _ = _started_session()
        context = session._context

        session.close()
        session.close()

        context.close.assert_called_once()
        assert not session.started

    def test_start_after_close_raises(self) -> None:
        session = BrowserSession()
        session.close()
        with pytest.raises(RendererUnavailableError):
            session.start()
