"""URL normalisation and domain fencing."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from govscout.scraper.errors import InvalidURLError

# Query parameters that only carry campaign/click tracking.
_TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
    }
)


def normalize_url(url: str) -> str:
    """Return the canonical form of *url* used for deduplication.

    The scheme and host are lower-cased, the fragment and known tracking
    parameters are dropped, and trailing slashes are stripped from every
    path except the root.  ``normalize_url(normalize_url(u)) == normalize_url(u)``.

    Raises:
        InvalidURLError: If *url* is not an absolute ``http``/``https`` URL.
    """
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise InvalidURLError(f"Unparseable URL {url!r}: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not hostname:
        raise InvalidURLError(f"Not an absolute http(s) URL: {url!r}")

    netloc = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None:
        netloc = f"{netloc}:{port}"
    if parts.username or parts.password:
        userinfo = parts.username or ""
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path.rstrip("/") or "/"

    query_pairs = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key.lower() not in _TRACKING_PARAMS
    ]
    query = urlencode(query_pairs)

    return urlunsplit((scheme, netloc, path, query, ""))


def hostname_of(url: str) -> str:
    """Return the lower-cased hostname of *url* (``""`` if there is none)."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def _bare(host: str) -> str:
    host = host.lower().rstrip(".")
    return host[4:] if host.startswith("www.") else host


def is_same_domain(domain1: str, domain2: str) -> bool:
    """Return ``True`` if the hosts are equal or one is a subdomain of the other.

    Comparison is case-insensitive and a leading ``www.`` is ignored.
    """
    d1 = _bare(domain1)
    d2 = _bare(domain2)
    if not d1 or not d2:
        return False
    if d1 == d2:
        return True
    return d2.endswith(f".{d1}") or d1.endswith(f".{d2}")
