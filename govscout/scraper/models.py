"""Data models for the scraper pipeline.

Everything here is an in-memory value object scoped to a single crawl run.
Nothing is persisted by this package; storing pages or links is the
caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, get_args

LinkCategory = Literal[
    "budget",
    "finance",
    "procurement",
    "contact",
    "meeting",
    "policy",
    "project",
    "department",
    "document",
    "other",
]

LINK_CATEGORIES: tuple[str, ...] = get_args(LinkCategory)

# Links scoring at or above this are reported as "high value".
HIGH_VALUE_SCORE = 0.7


@dataclass(frozen=True)
class LinkAttributes:
    title: Optional[str] = None
    rel: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class ExtractedLink:
    """One outbound anchor found on a page."""

    url: str
    anchor_text: str
    context: str
    attributes: LinkAttributes = field(default_factory=LinkAttributes)


@dataclass(frozen=True)
class RankedLink(ExtractedLink):
    """An :class:`ExtractedLink` with a relevance score, category and rationale."""

    relevance_score: float = 0.0
    category: LinkCategory = "other"
    rationale: str = ""

    @classmethod
    def from_link(
        cls,
        link: ExtractedLink,
        relevance_score: float,
        category: LinkCategory,
        rationale: str,
    ) -> "RankedLink":
        return cls(
            url=link.url,
            anchor_text=link.anchor_text,
            context=link.context,
            attributes=link.attributes,
            relevance_score=relevance_score,
            category=category,
            rationale=rationale,
        )


@dataclass(frozen=True)
class PageContent:
    """Rendered text and outbound links of a single fetched URL."""

    url: str
    title: str
    markdown: str
    links: List[ExtractedLink] = field(default_factory=list)


@dataclass
class FrontierItem:
    url: str
    depth: int
    parent_url: Optional[str] = None
    score: Optional[float] = None
    seq: int = 0


@dataclass
class CrawlError:
    url: str
    error: str


@dataclass
class CrawlStats:
    pages_processed: int = 0
    links_found: int = 0
    high_value_links: int = 0
    duration_ms: int = 0
    errors: List[CrawlError] = field(default_factory=list)


@dataclass
class CrawlResult:
    """Terminal artifact of one :func:`~govscout.scraper.crawler.crawl` call."""

    pages: List[PageContent] = field(default_factory=list)
    ranked_links: List[RankedLink] = field(default_factory=list)
    stats: CrawlStats = field(default_factory=CrawlStats)


@dataclass(frozen=True)
class CrawlProgress:
    pages_processed: int
    pages_queued: int
    links_found: int
    high_value_links_found: int
    current_url: str
    current_depth: int


@dataclass
class RobotsInfo:
    """The parts of ``robots.txt`` the crawler honours."""

    crawl_delay_ms: Optional[int] = None
    disallowed: List[str] = field(default_factory=list)
