"""Page extraction: URL → :class:`PageContent` (markdown + contextual links).

Two paths produce the same output shape:

``PageExtractor``
    Renders the page in the shared :class:`~govscout.scraper.browser.BrowserSession`
    and runs two JavaScript functions (passed as source strings) inside the
    page: one converts the main content to heading-aware markdown, the other
    collects every anchor with its surrounding text.

``HtmlExtractor``
    Fallback used when no browser is available.  Fetches raw HTML with
    ``httpx`` and converts it with :func:`extract_from_html` (``trafilatura``
    first, a regex approximation second, BeautifulSoup for anchors).

Both return ``None`` instead of raising when a page cannot be fetched.
"""

from __future__ import annotations

import html as html_lib
import re
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional, Protocol, Union
from urllib.parse import urljoin

import httpx
import trafilatura
from bs4 import BeautifulSoup

from govscout.config import settings
from govscout.scraper.browser import BrowserSession
from govscout.scraper.errors import RendererUnavailableError
from govscout.scraper.models import ExtractedLink, LinkAttributes, PageContent
from govscout.scraper.urls import hostname_of, is_same_domain

_CONTEXT_MAX_CHARS = 300
_SKIPPED_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "#")


class Extractor(Protocol):
    def extract(self, url: str) -> Optional[PageContent]:
        ...


# ---------------------------------------------------------------------------
# In-page scripts (evaluated by the browser, never by Python)
# ---------------------------------------------------------------------------

MARKDOWN_SCRIPT = r"""
(title) => {
  function getText(el) {
    if (!el) return "";
    return (el.textContent || "").trim().replace(/\s+/g, " ");
  }

  var selectorsToRemove = [
    "nav", "header", "footer", "aside", ".nav", ".navigation",
    ".menu", ".sidebar", ".footer", ".header", "#nav", "#navigation",
    "#menu", "#sidebar", "#footer", "#header", "[role='navigation']",
    "[role='banner']", "[role='contentinfo']", "[role='complementary']",
    "script", "style", "noscript", "iframe", ".cookie-notice",
    ".popup", ".modal", ".advertisement", ".social-share", ".breadcrumb", ".skip-link"
  ];

  var bodyClone = document.body.cloneNode(true);
  for (var i = 0; i < selectorsToRemove.length; i++) {
    var els = bodyClone.querySelectorAll(selectorsToRemove[i]);
    for (var j = 0; j < els.length; j++) {
      els[j].remove();
    }
  }

  var mainSelectors = [
    "main", "[role='main']", "#main", "#content", ".main", ".content",
    "article", ".page-content", "#page-content"
  ];
  var mainContent = null;
  for (var i = 0; i < mainSelectors.length; i++) {
    mainContent = bodyClone.querySelector(mainSelectors[i]);
    if (mainContent) break;
  }

  var contentRoot = mainContent || bodyClone;
  var lines = [];

  if (title) {
    lines.push("# " + title);
    lines.push("");
  }

  function isHidden(el) {
    var inline = el.style || {};
    return inline.display === "none" || inline.visibility === "hidden" || el.hidden;
  }

  function heading(prefix, el) {
    var text = getText(el);
    if (text) {
      lines.push("");
      lines.push(prefix + " " + text);
      lines.push("");
    }
  }

  function processElement(el, depth) {
    if (isHidden(el)) return;
    var tag = el.tagName.toLowerCase();
    var text, children, i;

    switch (tag) {
      case "h1":
      case "h2":
        heading("##", el);
        break;
      case "h3":
        heading("###", el);
        break;
      case "h4":
        heading("####", el);
        break;
      case "h5":
      case "h6":
        heading("#####", el);
        break;
      case "p":
        text = getText(el);
        if (text.length > 10) {
          lines.push("");
          lines.push(text);
          lines.push("");
        }
        break;
      case "li":
        text = getText(el);
        if (text.length > 5) lines.push("- " + text);
        break;
      case "ul":
      case "ol":
        lines.push("");
        var items = el.querySelectorAll(":scope > li");
        for (i = 0; i < items.length; i++) {
          text = getText(items[i]);
          if (text.length > 5) lines.push("- " + text);
        }
        lines.push("");
        break;
      case "table":
        lines.push("");
        lines.push("**Table:**");
        var rows = el.querySelectorAll("tr");
        for (i = 0; i < rows.length; i++) {
          var cells = rows[i].querySelectorAll("th, td");
          var cellTexts = [];
          for (var j = 0; j < cells.length; j++) {
            var cellText = getText(cells[j]);
            if (cellText.length > 0) cellTexts.push(cellText);
          }
          if (cellTexts.length > 0) lines.push("| " + cellTexts.join(" | ") + " |");
        }
        lines.push("");
        break;
      case "blockquote":
        text = getText(el);
        if (text) {
          lines.push("");
          lines.push("> " + text);
          lines.push("");
        }
        break;
      case "pre":
      case "code":
        text = getText(el);
        if (text.length > 0) {
          lines.push("");
          lines.push("```");
          lines.push(text);
          lines.push("```");
          lines.push("");
        }
        break;
      case "div":
      case "section":
      case "article":
      case "main":
        children = el.children;
        for (i = 0; i < children.length; i++) processElement(children[i], depth + 1);
        break;
      default:
        if (el.children.length === 0) {
          text = getText(el);
          if (text.length > 20 && text.indexOf("[") === -1 && depth < 5) {
            lines.push(text);
          }
        } else {
          children = el.children;
          for (i = 0; i < children.length; i++) processElement(children[i], depth + 1);
        }
    }
  }

  var rootChildren = contentRoot.children;
  for (var k = 0; k < rootChildren.length; k++) processElement(rootChildren[k], 0);

  var markdown = lines.join("\n");
  markdown = markdown.replace(/\n{4,}/g, "\n\n\n");
  markdown = markdown.replace(/^- \s*$/gm, "");
  return markdown.trim();
}
"""

LINKS_SCRIPT = r"""
(base) => {
  var anchors = Array.from(document.querySelectorAll("a[href]"));
  var results = [];
  for (var i = 0; i < anchors.length; i++) {
    var anchor = anchors[i];
    var href = (anchor.getAttribute("href") || "").trim();
    if (!href) continue;
    if (href.indexOf("javascript:") === 0 || href.indexOf("mailto:") === 0 ||
        href.indexOf("tel:") === 0 || href.indexOf("#") === 0) {
      continue;
    }
    var absoluteUrl;
    try {
      absoluteUrl = new URL(href, document.baseURI || base).toString();
    } catch (e) {
      continue;
    }
    var anchorText = (anchor.textContent || "").trim().replace(/\s+/g, " ") || href;
    var parent = anchor.parentElement;
    var context = parent ? (parent.textContent || "").trim().replace(/\s+/g, " ").slice(0, 300) : "";
    results.push({
      url: absoluteUrl,
      anchorText: anchorText,
      context: context || anchorText,
      title: anchor.getAttribute("title"),
      rel: anchor.getAttribute("rel"),
      type: anchor.getAttribute("type")
    });
  }
  return results;
}
"""


# ---------------------------------------------------------------------------
# Link helpers (shared by both paths)
# ---------------------------------------------------------------------------

def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def deduplicate_links(links: Iterable[ExtractedLink]) -> List[ExtractedLink]:
    """Keep one link per URL, preferring the instance with the longest context.

    First-seen order of URLs is preserved.
    """
    seen: dict[str, ExtractedLink] = {}
    for link in links:
        existing = seen.get(link.url)
        if existing is None or len(link.context) > len(existing.context):
            seen[link.url] = link
    return list(seen.values())


def _links_from_script_result(raw_links: Any) -> List[ExtractedLink]:
    links: List[ExtractedLink] = []
    for item in raw_links or []:
        url = item.get("url")
        if not url:
            continue
        links.append(
            ExtractedLink(
                url=url,
                anchor_text=item.get("anchorText") or url,
                context=item.get("context") or "",
                attributes=LinkAttributes(
                    title=item.get("title") or None,
                    rel=item.get("rel") or None,
                    type=item.get("type") or None,
                ),
            )
        )
    return deduplicate_links(links)


_SKIP_LINK_PATTERNS = [
    re.compile(r"\.(jpg|jpeg|png|gif|svg|ico|css|js|woff|woff2|ttf|eot|mp4|mp3|zip)(\?.*)?$", re.IGNORECASE),
    re.compile(r"^https?://(www\.)?(facebook|twitter|x|instagram|linkedin|youtube|tiktok)\.", re.IGNORECASE),
    re.compile(r"/share\?", re.IGNORECASE),
    re.compile(r"/login", re.IGNORECASE),
    re.compile(r"/signin", re.IGNORECASE),
    re.compile(r"/signup", re.IGNORECASE),
    re.compile(r"/cart", re.IGNORECASE),
    re.compile(r"/search\?", re.IGNORECASE),
    re.compile(r"\?utm_", re.IGNORECASE),
]

_VALUABLE_EXTERNAL_PATTERNS = [
    re.compile(r"\.gov(/|:|$)", re.IGNORECASE),
    re.compile(r"\.edu(/|:|$)", re.IGNORECASE),
    re.compile(r"\.gov\.[a-z]{2}(/|:|$)", re.IGNORECASE),
    re.compile(r"budget", re.IGNORECASE),
    re.compile(r"finance", re.IGNORECASE),
    re.compile(r"procurement", re.IGNORECASE),
    re.compile(r"rfp", re.IGNORECASE),
    re.compile(r"\bbids?\b", re.IGNORECASE),
]


def pre_filter_links(links: Iterable[ExtractedLink], base_url: str) -> List[ExtractedLink]:
    """Drop links that are never worth ranking.

    Removes binary assets, social networks, share/login/cart/search-query
    boilerplate and tracking links.  Off-domain links survive only when they
    look like a government/education site or mention budget/procurement
    vocabulary.
    """
    base_host = hostname_of(base_url)
    kept: List[ExtractedLink] = []
    for link in links:
        if not link.url.lower().startswith(("http://", "https://")):
            continue
        if any(p.search(link.url) for p in _SKIP_LINK_PATTERNS):
            continue
        host = hostname_of(link.url)
        if not host:
            continue
        if not is_same_domain(base_host, host):
            if not any(p.search(link.url) for p in _VALUABLE_EXTERNAL_PATTERNS):
                continue
        kept.append(link)
    return kept


# ---------------------------------------------------------------------------
# Renderer-independent HTML path
# ---------------------------------------------------------------------------

_SCRIPT_STYLE_RE = re.compile(r"<(script|style|noscript)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_HEAD_RE = re.compile(r"<head\b[^>]*>.*?</head\s*>", re.IGNORECASE | re.DOTALL)
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")


def _extract_title(html: str) -> str:
    """Return the decoded text of the first ``<title>`` tag, or empty string."""
    match = _TITLE_RE.search(html)
    if not match:
        return ""
    return _collapse(html_lib.unescape(_TAG_RE.sub("", match.group(1))))


def html_to_markdown(html: str) -> str:
    """Approximate markdown for *html* using regular expressions only."""
    md = _COMMENT_RE.sub("", html)
    md = _SCRIPT_STYLE_RE.sub("", md)
    md = _HEAD_RE.sub("", md)

    for level in range(1, 7):
        md = re.sub(
            rf"<h{level}[^>]*>(.*?)</h{level}\s*>",
            lambda m, hashes="#" * level: f"\n\n{hashes} {_collapse(_TAG_RE.sub('', m.group(1)))}\n\n",
            md,
            flags=re.IGNORECASE | re.DOTALL,
        )

    md = re.sub(r"<p[^>]*>(.*?)</p\s*>", r"\n\n\1\n\n", md, flags=re.IGNORECASE | re.DOTALL)
    md = re.sub(r"<br\s*/?>", "\n", md, flags=re.IGNORECASE)
    md = re.sub(r"<li[^>]*>(.*?)</li\s*>", r"\n- \1\n", md, flags=re.IGNORECASE | re.DOTALL)
    md = re.sub(r"</?[ou]l[^>]*>", "\n", md, flags=re.IGNORECASE)
    md = re.sub(r"</tr\s*>", "\n", md, flags=re.IGNORECASE)
    md = re.sub(r"<t[hd][^>]*>(.*?)</t[hd]\s*>", r" | \1", md, flags=re.IGNORECASE | re.DOTALL)
    md = re.sub(r"<(strong|b)\b[^>]*>(.*?)</\1\s*>", r"**\2**", md, flags=re.IGNORECASE | re.DOTALL)
    md = re.sub(r"<(em|i)\b[^>]*>(.*?)</\1\s*>", r"*\2*", md, flags=re.IGNORECASE | re.DOTALL)
    md = re.sub(
        r"<a\b[^>]*href=[\"']([^\"']+)[\"'][^>]*>(.*?)</a\s*>",
        r"[\2](\1)",
        md,
        flags=re.IGNORECASE | re.DOTALL,
    )

    md = _TAG_RE.sub("", md)
    md = html_lib.unescape(md).replace("\xa0", " ")

    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in md.split("\n")]
    md = "\n".join(line for line in lines if line != "-")
    md = re.sub(r"\n{3,}", "\n\n", md)
    return md.strip()


def _links_from_soup(soup: BeautifulSoup, base_url: str) -> List[ExtractedLink]:
    links: List[ExtractedLink] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.lower().startswith(_SKIPPED_HREF_PREFIXES):
            continue
        try:
            absolute_url = urljoin(base_url, href)
        except ValueError:
            continue
        if not absolute_url.lower().startswith(("http://", "https://")):
            continue

        anchor_text = _collapse(anchor.get_text(" ")) or href
        parent = anchor.parent
        context = _collapse(parent.get_text(" "))[:_CONTEXT_MAX_CHARS] if parent else ""

        rel = anchor.get("rel")
        if isinstance(rel, list):
            rel = " ".join(rel)

        links.append(
            ExtractedLink(
                url=absolute_url,
                anchor_text=anchor_text,
                context=context or anchor_text,
                attributes=LinkAttributes(
                    title=anchor.get("title") or None,
                    rel=rel or None,
                    type=anchor.get("type") or None,
                ),
            )
        )
    return deduplicate_links(links)


def extract_from_html(html: str, base_url: str) -> PageContent:
    """Build a :class:`PageContent` from raw *html* without a browser.

    ``trafilatura`` produces the markdown when it finds readable content;
    otherwise :func:`html_to_markdown` provides a regex approximation.
    """
    title = _extract_title(html)

    markdown: Optional[str] = None
    if html.strip():
        markdown = trafilatura.extract(
            html,
            url=base_url,
            output_format="markdown",
            include_links=False,
            include_images=False,
            include_tables=True,
            no_fallback=False,
        )
    if not markdown:
        markdown = html_to_markdown(html)
    if title and not markdown.lstrip().startswith(f"# {title}"):
        markdown = f"# {title}\n\n{markdown}".strip()

    soup = BeautifulSoup(_SCRIPT_STYLE_RE.sub("", html), "html.parser")
    links = _links_from_soup(soup, base_url)

    return PageContent(url=base_url, title=title, markdown=markdown, links=links)


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

class PageExtractor:
    """Render pages in a shared browser session and extract their content."""

    def __init__(self, session: BrowserSession) -> None:
        self.session = session

    def extract(self, url: str) -> Optional[PageContent]:
        """Return the rendered :class:`PageContent` of *url*, or ``None``.

        ``None`` covers navigation timeouts, missing or non-2xx responses,
        and any renderer error.
        """
        try:
            with self.session.open_page(url) as rendered:
                if rendered.status is None:
                    print(f"[extract] No response from {url}")
                    return None
                if not rendered.ok:
                    print(f"[extract] Failed to fetch {url}: HTTP {rendered.status}")
                    return None

                title = rendered.title or ""
                links = _links_from_script_result(rendered.evaluate(LINKS_SCRIPT, url))
                markdown = rendered.evaluate(MARKDOWN_SCRIPT, title) or ""
        except Exception as exc:
            print(f"[extract] Error rendering {url}: {exc!r:.200}")
            return None

        return PageContent(url=url, title=title, markdown=markdown, links=links)


class HtmlExtractor:
    """Fetch raw HTML over ``httpx`` and extract it without rendering."""

    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None) -> None:
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.user_agent = user_agent or settings.browser_user_agent
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "HtmlExtractor":
        self._ensure_client()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.9",
                },
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def extract(self, url: str) -> Optional[PageContent]:
        client = self._ensure_client()
        try:
            response = client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            print(f"[extract] Error fetching {url}: {exc!r:.200}")
            return None

        if not response.is_success:
            print(f"[extract] Failed to fetch {url}: HTTP {response.status_code}")
            return None

        content_type = response.headers.get("content-type", "")
        if content_type and "html" not in content_type.lower():
            print(f"[extract] Skipping non-HTML content at {url} ({content_type})")
            return None

        return extract_from_html(response.text, url)


@contextmanager
def open_extractor(
    use_renderer: bool = True,
    html_fallback: Optional[bool] = None,
) -> Iterator[Union[PageExtractor, HtmlExtractor]]:
    """Yield a ready extractor and release its resources exactly once.

    Prefers the rendering :class:`PageExtractor`.  When the browser cannot
    be launched, yields an :class:`HtmlExtractor` if *html_fallback* is
    enabled (default: ``settings.html_fallback``).

    Raises:
        RendererUnavailableError: If the browser is unavailable and the
            fallback is disabled.
    """
    allow_fallback = settings.html_fallback if html_fallback is None else html_fallback

    if use_renderer:
        session = BrowserSession()
        try:
            session.start()
        except RendererUnavailableError as exc:
            if not allow_fallback:
                raise
            print(f"[extract] Renderer unavailable ({exc}); using plain HTML extraction.")
        else:
            try:
                yield PageExtractor(session)
            finally:
                session.close()
            return

    with HtmlExtractor() as extractor:
        yield extractor
