"""Site scrape pipeline.

``scrape_site`` runs the whole acquisition flow for one site:

    crawl (robots → fetch → rank → follow) → drop thin pages → chunk → summary

Nothing is persisted; callers decide where documents and chunks go.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from urllib.parse import urlsplit

from govscout.rag.chunker import ChunkResult, chunk_document, get_document_token_count
from govscout.scraper.crawler import CrawlConfig, crawl
from govscout.scraper.models import HIGH_VALUE_SCORE, CrawlResult, PageContent

_RULE = "=" * 60


@dataclass
class ChunkedDocument:
    url: str
    url_id: str
    title: str
    token_count: int
    chunks: List[ChunkResult] = field(default_factory=list)


@dataclass
class ScrapeResult:
    crawl_result: CrawlResult
    documents: List[ChunkedDocument] = field(default_factory=list)
    # URLs dropped for having too little content.
    skipped: List[str] = field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return sum(len(doc.chunks) for doc in self.documents)


def generate_url_id(url: str) -> str:
    """Slug ``<host>-<last two path segments>`` (``home`` for the root).

    Any character outside ``[A-Za-z0-9-]`` becomes ``-``.
    """
    parts = urlsplit(url)
    segments = [s for s in parts.path.split("/") if s]
    slug = "-".join(segments[-2:]) or "home"
    return re.sub(r"[^a-zA-Z0-9-]", "-", f"{parts.hostname or 'url'}-{slug}")


def chunk_page(page: PageContent) -> ChunkedDocument:
    return ChunkedDocument(
        url=page.url,
        url_id=generate_url_id(page.url),
        title=page.title or page.url,
        token_count=get_document_token_count(page.markdown),
        chunks=chunk_document(page.markdown),
    )


def print_summary(result: ScrapeResult) -> None:
    """Print crawl statistics, the top high-value links and the first errors."""
    stats = result.crawl_result.stats

    print()
    print(_RULE)
    print("SCRAPE SUMMARY")
    print(_RULE)
    print(f"  Pages processed:   {stats.pages_processed}")
    print(f"  Links ranked:      {stats.links_found}")
    print(f"  High-value links:  {stats.high_value_links}")
    print(f"  Duration:          {stats.duration_ms / 1000:.1f}s")
    print(f"  Errors:            {len(stats.errors)}")
    print(f"  Documents chunked: {len(result.documents)} ({result.chunk_count} chunks)")
    print(f"  Thin pages skipped: {len(result.skipped)}")

    top = [link for link in result.crawl_result.ranked_links if link.relevance_score >= HIGH_VALUE_SCORE][:10]
    if top:
        print("\n  Top high-value links:")
        for link in top:
            print(f"    {link.relevance_score:.2f} [{link.category}] {link.anchor_text[:50]}")
            print(f"         {link.url[:70]}")

    if stats.errors:
        print("\n  Errors:")
        for err in stats.errors[:5]:
            print(f"    {err.url[:50]}: {err.error}")

    print(_RULE)


def scrape_site(
    seed_url: str,
    config: Optional[CrawlConfig] = None,
    *,
    min_content_chars: int = 200,
    crawl_fn: Callable[..., CrawlResult] = crawl,
) -> ScrapeResult:
    """Crawl *seed_url* and chunk every page with enough content.

    Args:
        seed_url: Site to crawl.
        config: Passed through to the crawl.
        min_content_chars: Pages whose markdown is shorter than this are
            skipped.
        crawl_fn: The crawl implementation; :func:`crawl` by default.

    Returns:
        A :class:`ScrapeResult` with the raw crawl result and one
        :class:`ChunkedDocument` per accepted page.

    Raises:
        InvalidURLError: If *seed_url* is not a valid http(s) URL.
    """
    crawl_result = crawl_fn(seed_url, config)
    result = ScrapeResult(crawl_result=crawl_result)

    for page in crawl_result.pages:
        if len(page.markdown or "") < min_content_chars:
            print(f"[pipeline] Skipping thin content: {page.url[:60]}")
            result.skipped.append(page.url)
            continue
        doc = chunk_page(page)
        print(f"[pipeline] {page.url[:60]}: {len(doc.chunks)} chunk(s), {doc.token_count} tokens")
        result.documents.append(doc)

    print_summary(result)
    return result
