"""Best-first crawl scheduler.

:func:`crawl` walks a site from a seed URL, always fetching the queued URL
with the highest link score next, and stops when the frontier is empty,
``max_pages`` pages have been fetched, or the optional deadline passes.

Per run::

    robots.txt → pop best → fetch/extract → prefilter → heuristic → classifier
               → enqueue links ≥ min_score_to_follow at depth + 1 → sleep → …

The crawl is sequential on purpose: politeness (``request_delay_ms`` and
robots ``Crawl-delay``) is enforced by pacing one request at a time.
``CrawlConfig.concurrency`` is accepted for forward compatibility but is not
used.

Per-page failures are recorded in ``CrawlResult.stats.errors`` and never
raised.  Only an invalid seed URL (``InvalidURLError``) or an unavailable
renderer without HTML fallback (``RendererUnavailableError``) abort a run.
"""

from __future__ import annotations

import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from govscout.config import settings
from govscout.scraper.classifier import LinkClassifier
from govscout.scraper.errors import InvalidURLError
from govscout.scraper.extractor import Extractor, open_extractor, pre_filter_links
from govscout.scraper.models import (
    HIGH_VALUE_SCORE,
    CrawlError,
    CrawlProgress,
    CrawlResult,
    CrawlStats,
    FrontierItem,
    PageContent,
    RankedLink,
    RobotsInfo,
)
from govscout.scraper.ranker import (
    RankerConfig,
    filter_by_score,
    heuristic_rank,
    rank_links,
)
from govscout.scraper.robots import get_robots_info, is_url_allowed
from govscout.scraper.urls import hostname_of, is_same_domain, normalize_url

# Score assigned to heuristic survivors when the classifier is disabled.
HEURISTIC_ONLY_SCORE = 0.5


@dataclass
class CrawlConfig:
    # 0 = only the seed, 1 = seed + one level, …
    max_depth: int = field(default_factory=lambda: settings.crawl_max_depth)
    max_pages: int = field(default_factory=lambda: settings.crawl_max_pages)
    min_score_to_follow: float = field(default_factory=lambda: settings.crawl_min_score)
    request_delay_ms: int = field(default_factory=lambda: settings.crawl_delay_ms)
    # Accepted but unused; see module docstring.
    concurrency: int = 1
    use_llm_ranking: bool = True
    same_domain_only: bool = True
    respect_robots: bool = True
    # Stop launching new fetches once this many seconds have elapsed.
    max_duration_s: Optional[float] = None
    ranker: Optional[RankerConfig] = None
    on_progress: Optional[Callable[[CrawlProgress], None]] = None


class Frontier:
    """Discovered-but-unfetched URLs, popped best score first.

    Items are re-sorted on every pop (stable, so equal scores come out in
    insertion order).  Fine for the hundreds of URLs a site crawl queues.
    """

    def __init__(self) -> None:
        self._items: List[FrontierItem] = []
        self._queued: Set[str] = set()
        self._seq = 0

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __contains__(self, url: str) -> bool:
        return url in self._queued

    def push(
        self,
        url: str,
        depth: int,
        parent_url: Optional[str] = None,
        score: Optional[float] = None,
    ) -> None:
        self._items.append(
            FrontierItem(url=url, depth=depth, parent_url=parent_url, score=score, seq=self._seq)
        )
        self._queued.add(url)
        self._seq += 1

    def pop_best(self) -> FrontierItem:
        self._items.sort(key=lambda item: (-(item.score or 0.0), item.seq))
        item = self._items.pop(0)
        if not any(other.url == item.url for other in self._items):
            self._queued.discard(item.url)
        return item


@dataclass
class CrawlState:
    """Everything one crawl run mutates.  Owned by :func:`crawl` alone."""

    seed_url: str
    seed_host: str
    frontier: Frontier = field(default_factory=Frontier)
    visited: Set[str] = field(default_factory=set)
    pages: List[PageContent] = field(default_factory=list)
    ranked_links: List[RankedLink] = field(default_factory=list)
    errors: List[CrawlError] = field(default_factory=list)
    robots: RobotsInfo = field(default_factory=RobotsInfo)

    @property
    def high_value_count(self) -> int:
        return sum(1 for link in self.ranked_links if link.relevance_score >= HIGH_VALUE_SCORE)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _should_skip(item: FrontierItem, state: CrawlState, cfg: CrawlConfig) -> bool:
    if item.url in state.visited:
        return True
    if item.depth > cfg.max_depth:
        return True
    if cfg.same_domain_only and not is_same_domain(state.seed_host, hostname_of(item.url)):
        return True
    if state.robots.disallowed and not is_url_allowed(item.url, state.robots.disallowed):
        print(f"[crawl] Disallowed by robots.txt: {item.url}")
        return True
    return False


def _rank_page_links(
    page: PageContent,
    cfg: CrawlConfig,
    classifier: Optional[LinkClassifier],
) -> List[RankedLink]:
    filtered = pre_filter_links(page.links, page.url)
    print(f"[crawl]   {len(page.links)} links, {len(filtered)} after pre-filter")

    candidates = heuristic_rank(filtered)
    print(f"[crawl]   {len(candidates)} after heuristic")
    if not candidates:
        return []

    if cfg.use_llm_ranking and classifier is not None:
        return rank_links(candidates, cfg.ranker, classify=classifier.classify)

    return [
        RankedLink.from_link(
            link,
            relevance_score=HEURISTIC_ONLY_SCORE,
            category="other",
            rationale="Heuristic match",
        )
        for link in candidates
    ]


def _enqueue(
    ranked: List[RankedLink],
    parent: FrontierItem,
    state: CrawlState,
    cfg: CrawlConfig,
) -> int:
    added = 0
    for link in filter_by_score(ranked, cfg.min_score_to_follow):
        try:
            url = normalize_url(link.url)
        except InvalidURLError:
            continue
        if url in state.visited or url in state.frontier:
            continue
        state.frontier.push(url, parent.depth + 1, parent_url=parent.url, score=link.relevance_score)
        added += 1
    return added


def _extract(extractor: Extractor, url: str, state: CrawlState) -> Optional[PageContent]:
    """Run the extractor on one URL, recording any failure in ``state.errors``."""
    try:
        page = extractor.extract(url)
    except Exception as exc:
        print(f"[crawl] Extraction raised for {url[:100]}: {exc!r:.200}")
        state.errors.append(CrawlError(url=url, error=f"Extraction error: {exc}"))
        return None
    if page is None:
        state.errors.append(CrawlError(url=url, error="Failed to fetch"))
    return page


def _report(state: CrawlState, item: FrontierItem, cfg: CrawlConfig) -> None:
    if cfg.on_progress is None:
        return
    cfg.on_progress(
        CrawlProgress(
            pages_processed=len(state.pages),
            pages_queued=len(state.frontier),
            links_found=len(state.ranked_links),
            high_value_links_found=state.high_value_count,
            current_url=item.url,
            current_depth=item.depth,
        )
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def crawl(
    seed_url: str,
    config: Optional[CrawlConfig] = None,
    *,
    extractor: Optional[Extractor] = None,
    classifier: Optional[LinkClassifier] = None,
) -> CrawlResult:
    """Crawl from *seed_url* and return every fetched page and ranked link.

    Args:
        seed_url: Absolute ``http(s)`` URL to start from.
        config: Crawl limits and behaviour; defaults come from ``settings``.
        extractor: Page extractor to use.  When omitted a browser-backed
            extractor is opened for the run (falling back to plain HTML
            extraction if configured) and closed when the run ends.
        classifier: Anything with a ``classify(links)`` method returning
            per-index classifications.  Defaults to a :class:`LinkClassifier`
            using ``config.ranker.priority_keywords``; ignored when
            ``use_llm_ranking`` is off.

    Returns:
        A :class:`CrawlResult`; partial results are returned even when many
        pages fail.

    Raises:
        InvalidURLError: If *seed_url* cannot be normalised.
        RendererUnavailableError: If no extractor is supplied, the browser
            cannot be launched and HTML fallback is disabled.
    """
    cfg = config or CrawlConfig()
    seed = normalize_url(seed_url)
    started = time.monotonic()

    state = CrawlState(seed_url=seed, seed_host=hostname_of(seed))
    state.frontier.push(seed, 0)

    delay_ms = cfg.request_delay_ms
    if cfg.respect_robots:
        state.robots = get_robots_info(seed)
        if state.robots.crawl_delay_ms is not None:
            print(f"[crawl] robots.txt crawl-delay: {state.robots.crawl_delay_ms}ms")
            delay_ms = max(delay_ms, state.robots.crawl_delay_ms)
        if state.robots.disallowed:
            print(f"[crawl] robots.txt disallows {len(state.robots.disallowed)} path prefix(es)")

    if cfg.use_llm_ranking and classifier is None:
        keywords = cfg.ranker.priority_keywords if cfg.ranker else None
        classifier = LinkClassifier(priority_keywords=keywords)

    if cfg.concurrency > 1:
        print(f"[crawl] concurrency={cfg.concurrency} requested; pages are fetched sequentially.")

    print(f"[crawl] Starting from {seed}")
    print(f"[crawl] max_depth={cfg.max_depth} max_pages={cfg.max_pages} "
          f"llm_ranking={'on' if cfg.use_llm_ranking else 'off'} delay={delay_ms}ms")

    with ExitStack() as stack:
        if extractor is None:
            extractor = stack.enter_context(open_extractor())

        while state.frontier and len(state.pages) < cfg.max_pages:
            if cfg.max_duration_s is not None and time.monotonic() - started >= cfg.max_duration_s:
                print(f"[crawl] Deadline of {cfg.max_duration_s}s reached; stopping.")
                break

            item = state.frontier.pop_best()
            if _should_skip(item, state, cfg):
                continue

            state.visited.add(item.url)
            print(f"[crawl] [{len(state.pages) + 1}/{cfg.max_pages}] depth {item.depth}: {item.url[:100]}")

            page = _extract(extractor, item.url, state)
            if page is not None:
                state.pages.append(page)
                if item.depth < cfg.max_depth and page.links:
                    ranked = _rank_page_links(page, cfg, classifier)
                    state.ranked_links.extend(ranked)
                    added = _enqueue(ranked, item, state, cfg)
                    print(f"[crawl]   {added} link(s) queued (score >= {cfg.min_score_to_follow})")
                    for link in ranked[:5]:
                        print(f"[crawl]     {link.relevance_score:.2f} [{link.category}] {link.anchor_text[:50]}")

            _report(state, item, cfg)

            if state.frontier and len(state.pages) < cfg.max_pages and delay_ms > 0:
                time.sleep(delay_ms / 1000.0)

    duration_ms = int((time.monotonic() - started) * 1000)
    stats = CrawlStats(
        pages_processed=len(state.pages),
        links_found=len(state.ranked_links),
        high_value_links=state.high_value_count,
        duration_ms=duration_ms,
        errors=state.errors,
    )
    print(f"[crawl] Done: {stats.pages_processed} page(s), {stats.links_found} ranked link(s), "
          f"{stats.high_value_links} high-value, {len(stats.errors)} error(s) in {duration_ms / 1000:.1f}s")

    return CrawlResult(pages=state.pages, ranked_links=state.ranked_links, stats=stats)
