"""Shared headless-browser session used by the rendering extractor.

One :class:`BrowserSession` is opened per crawl run and every page is
rendered in a fresh tab of the same browser context.  The session must be
started before first use and closed exactly once; use it as a context
manager::

    with BrowserSession() as session:
        with session.open_page(url) as page:
            ...

Playwright is imported lazily so the rest of the package (and the test
suite) works without a browser install.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from govscout.config import settings
from govscout.scraper.errors import RendererUnavailableError

_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
    "--window-position=0,0",
]

_EXTRA_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}

# Hides the most common automation fingerprints before any page script runs.
_STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = { runtime: {} };
if (window.navigator.permissions && window.navigator.permissions.query) {
  const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
  window.navigator.permissions.query = (parameters) =>
    parameters.name === 'notifications'
      ? Promise.resolve({ state: Notification.permission })
      : originalQuery(parameters);
}
"""

BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media"})


def _block_heavy_resources(route: Any) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        route.abort()
    else:
        route.continue_()


@dataclass
class RenderedPage:
    """A navigated browser tab plus the HTTP status of its main document."""

    url: str
    status: Optional[int]
    page: Any

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    @property
    def title(self) -> str:
        return self.page.title()

    @property
    def html(self) -> str:
        return self.page.content()

    def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a JavaScript function *source string* in the page with *arg*."""
        return self.page.evaluate(script, arg)


class BrowserSession:
    """Chromium browser + context configured for polite, realistic browsing."""

    def __init__(
        self,
        headless: Optional[bool] = None,
        user_agent: Optional[str] = None,
        navigation_timeout_ms: Optional[int] = None,
        settle_ms: Optional[int] = None,
    ) -> None:
        self.headless = settings.browser_headless if headless is None else headless
        self.user_agent = user_agent or settings.browser_user_agent
        self.navigation_timeout_ms = (
            settings.navigation_timeout_ms
            if navigation_timeout_ms is None
            else navigation_timeout_ms
        )
        self.settle_ms = settings.render_settle_ms if settle_ms is None else settle_ms
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._closed = False

    def __enter__(self) -> "BrowserSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def started(self) -> bool:
        return self._context is not None

    def start(self) -> None:
        """Launch the browser and create the shared context.

        Raises:
            RendererUnavailableError: If Playwright or Chromium is missing or
                the launch fails.
        """
        if self._context is not None:
            return
        if self._closed:
            raise RendererUnavailableError("Browser session has already been closed.")

        print(f"[browser] Launching Chromium (headless={self.headless}) …")
        try:
            from playwright.sync_api import Error as PlaywrightError
            from playwright.sync_api import sync_playwright
        except ImportError as exc:
            raise RendererUnavailableError(f"Playwright is not installed: {exc}") from exc

        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                args=_LAUNCH_ARGS,
            )
            self._context = self._browser.new_context(
                user_agent=self.user_agent,
                viewport={"width": 1920, "height": 1080},
                screen={"width": 1920, "height": 1080},
                device_scale_factor=2,
                is_mobile=False,
                has_touch=False,
                java_script_enabled=True,
                locale="en-US",
                timezone_id="America/New_York",
                extra_http_headers=_EXTRA_HEADERS,
            )
            self._context.add_init_script(_STEALTH_SCRIPT)
            self._context.route("**/*", _block_heavy_resources)
        except PlaywrightError as exc:
            self._shutdown()
            raise RendererUnavailableError(f"Could not launch Chromium: {exc}") from exc

        print("[browser] Ready.")

    @contextmanager
    def open_page(self, url: str) -> Iterator[RenderedPage]:
        """Navigate a new tab to *url* and yield it; the tab is always closed.

        Navigation errors and timeouts propagate as Playwright exceptions.
        """
        if self._context is None:
            self.start()

        page = self._context.new_page()
        try:
            response = page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout_ms,
            )
            status = response.status if response is not None else None
            rendered = RenderedPage(url=url, status=status, page=page)
            if rendered.ok and self.settle_ms > 0:
                # Give client-side frameworks a moment to render.
                page.wait_for_timeout(self.settle_ms)
            yield rendered
        finally:
            page.close()

    def close(self) -> None:
        """Release the context, browser and driver.  Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        self._shutdown()
        print("[browser] Closed.")

    def _shutdown(self) -> None:
        if self._context is not None:
            self._context.close()
            self._context = None
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
