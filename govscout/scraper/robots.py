"""Minimal ``robots.txt`` support.

Only the ``User-agent: *`` group is read, and only two directives matter:
``Crawl-delay`` (seconds, converted to milliseconds) and ``Disallow`` path
prefixes.  Any failure to fetch or parse the file is treated as "no
restrictions" so that a broken robots.txt never blocks a crawl.
"""

from __future__ import annotations

import math
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from govscout.config import settings
from govscout.scraper.models import RobotsInfo


def parse_robots(text: str) -> RobotsInfo:
    """Extract the crawl delay and disallowed prefixes for ``User-agent: *``.

    Consecutive ``User-agent`` lines form one group, so a group listing both
    a named bot and ``*`` applies to us.
    """
    crawl_delay_ms: Optional[int] = None
    disallowed: List[str] = []
    in_wildcard_group = False
    previous_was_agent = False

    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        key, _, value = line.partition(":")
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            is_wildcard = value == "*"
            if previous_was_agent:
                in_wildcard_group = in_wildcard_group or is_wildcard
            else:
                in_wildcard_group = is_wildcard
            previous_was_agent = True
            continue

        previous_was_agent = False
        if not in_wildcard_group:
            continue

        if key == "crawl-delay":
            try:
                seconds = float(value)
            except ValueError:
                continue
            if not math.isfinite(seconds) or seconds < 0:
                continue
            try:
                crawl_delay_ms = int(seconds * 1000)
            except OverflowError:
                continue
        elif key == "disallow" and value:
            disallowed.append(value)

    return RobotsInfo(crawl_delay_ms=crawl_delay_ms, disallowed=disallowed)


def get_robots_info(base_url: str) -> RobotsInfo:
    """Fetch ``/robots.txt`` for the site of *base_url* and parse it.

    Returns an unrestricted :class:`RobotsInfo` when the file is missing,
    the server answers with a non-2xx status, the request fails, or the
    body cannot be parsed.
    """
    robots_url = urljoin(base_url, "/robots.txt")
    try:
        with httpx.Client(
            timeout=settings.robots_timeout,
            follow_redirects=True,
            headers={"User-Agent": settings.browser_user_agent},
        ) as client:
            response = client.get(robots_url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        print(f"[robots] Could not fetch {robots_url}: {exc!r}; no restrictions applied.")
        return RobotsInfo()

    if not response.is_success:
        print(f"[robots] {robots_url} returned HTTP {response.status_code}; no restrictions applied.")
        return RobotsInfo()

    try:
        return parse_robots(response.text)
    except Exception as exc:
        print(f"[robots] Could not parse {robots_url}: {exc!r}; no restrictions applied.")
        return RobotsInfo()


def is_url_allowed(url: str, disallowed: List[str]) -> bool:
    """Return ``False`` if the path of *url* starts with any disallowed prefix.

    A bare ``/`` rule blocks the whole site.  Unparseable URLs are not allowed.
    """
    try:
        path = urlsplit(url).path or "/"
    except ValueError:
        return False

    for rule in disallowed:
        if rule == "/":
            return False
        if path.startswith(rule):
            return False
    return True
