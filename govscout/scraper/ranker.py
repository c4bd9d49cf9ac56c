"""Two-stage link ranking.

Stage 1, :func:`heuristic_rank`, scores links against a fixed table of
weighted regular expressions and drops everything that matches nothing.
It is free, deterministic, and cuts the candidate set before any model
call.

Stage 2, :func:`rank_links`, sends the survivors to the link classifier in
bounded batches and maps the per-index answers back onto the links.  A
batch whose classification fails is scored with a low default instead of
aborting the crawl.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from govscout.config import settings
from govscout.scraper.classifier import DEFAULT_PRIORITY_KEYWORDS, LinkClassifier
from govscout.scraper.models import LINK_CATEGORIES, ExtractedLink, LinkCategory, RankedLink

ClassifyFn = Callable[[Sequence[ExtractedLink]], List[Mapping[str, Any]]]

FAILED_BATCH_SCORE = 0.1
FAILED_BATCH_RATIONALE = "Error during ranking"


@dataclass
class RankerConfig:
    priority_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_PRIORITY_KEYWORDS))
    # Links per classifier call, bounded by the model's context window.
    batch_size: int = field(default_factory=lambda: settings.ranker_batch_size)


@dataclass(frozen=True)
class HeuristicPattern:
    pattern: re.Pattern
    weight: float


def _p(regex: str, weight: float) -> HeuristicPattern:
    return HeuristicPattern(re.compile(regex, re.IGNORECASE), weight)


HEURISTIC_PATTERNS: tuple[HeuristicPattern, ...] = (
    # Budget / finance
    _p(r"budget", 0.9),
    _p(r"acfr", 0.95),
    _p(r"annual.*financial.*report", 0.95),
    _p(r"financial.*report", 0.85),
    _p(r"finance", 0.8),
    _p(r"treasurer", 0.8),
    _p(r"cfo|chief.*financial", 0.85),
    # Procurement
    _p(r"procurement", 0.9),
    _p(r"rfp|rfq|rfi", 0.95),
    _p(r"bid|bidding", 0.85),
    _p(r"solicitation", 0.9),
    _p(r"vendor", 0.7),
    _p(r"contract", 0.75),
    # Contacts
    _p(r"contact", 0.6),
    _p(r"directory", 0.65),
    _p(r"staff", 0.55),
    # Meetings
    _p(r"agenda", 0.7),
    _p(r"minutes", 0.7),
    _p(r"board.*meeting", 0.75),
    _p(r"council.*meeting", 0.75),
    # Documents / projects
    _p(r"\.pdf\b", 0.5),
    _p(r"document", 0.5),
    _p(r"capital.*project", 0.85),
    _p(r"capital.*improvement", 0.85),
)


# ---------------------------------------------------------------------------
# Stage 1: heuristic prefilter
# ---------------------------------------------------------------------------

def heuristic_score(link: ExtractedLink) -> float:
    """Return the highest weight among patterns matching the link's text.

    The text checked is ``"<url> <anchor text> <context>"``.  ``0.0`` means
    nothing matched.
    """
    text = f"{link.url} {link.anchor_text} {link.context}"
    best = 0.0
    for entry in HEURISTIC_PATTERNS:
        if entry.weight > best and entry.pattern.search(text):
            best = entry.weight
    return best


def heuristic_rank(links: Iterable[ExtractedLink]) -> List[ExtractedLink]:
    """Drop links with no heuristic match and sort the rest by score, descending.

    Ties keep their input order.  No classifier is called.
    """
    scored = [(heuristic_score(link), link) for link in links]
    survivors = [pair for pair in scored if pair[0] > 0]
    survivors.sort(key=lambda pair: pair[0], reverse=True)
    return [link for _, link in survivors]


# ---------------------------------------------------------------------------
# Stage 2: classifier
# ---------------------------------------------------------------------------

def _coerce_score(value: Any) -> Optional[float]:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(score):
        return None
    return min(1.0, max(0.0, score))


def _coerce_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _apply_classifications(
    batch: Sequence[ExtractedLink],
    classifications: Iterable[Mapping[str, Any]],
) -> List[RankedLink]:
    """Map per-index classifications back onto *batch*.

    Out-of-range, duplicate or non-integer indices are dropped, as are
    entries without a numeric score.
    """
    ranked: List[RankedLink] = []
    used: set[int] = set()
    for entry in classifications:
        index = _coerce_index(entry.get("index"))
        if index is None or index < 0 or index >= len(batch) or index in used:
            continue
        score = _coerce_score(entry.get("relevance_score"))
        if score is None:
            continue
        category: LinkCategory = entry.get("category")
        if category not in LINK_CATEGORIES:
            category = "other"
        used.add(index)
        ranked.append(
            RankedLink.from_link(
                batch[index],
                relevance_score=score,
                category=category,
                rationale=str(entry.get("rationale") or ""),
            )
        )
    return ranked


def _fail_open(batch: Sequence[ExtractedLink]) -> List[RankedLink]:
    return [
        RankedLink.from_link(
            link,
            relevance_score=FAILED_BATCH_SCORE,
            category="other",
            rationale=FAILED_BATCH_RATIONALE,
        )
        for link in batch
    ]


def rank_links(
    links: Sequence[ExtractedLink],
    config: Optional[RankerConfig] = None,
    classify: Optional[ClassifyFn] = None,
) -> List[RankedLink]:
    """Classify *links* in batches and return them sorted by score, descending.

    Args:
        links: Candidates, usually the output of :func:`heuristic_rank`.
        config: Batch size and priority keywords.
        classify: The classification call.  Defaults to
            :meth:`LinkClassifier.classify` configured with
            ``config.priority_keywords``.

    Returns:
        One :class:`RankedLink` per link the classifier answered for.  When
        a batch fails, every link in it is returned with score
        ``FAILED_BATCH_SCORE`` and category ``"other"``.
    """
    cfg = config or RankerConfig()
    if not links:
        return []
    if classify is None:
        classify = LinkClassifier(priority_keywords=cfg.priority_keywords).classify

    batch_size = max(1, cfg.batch_size)
    ranked: List[RankedLink] = []
    for start in range(0, len(links), batch_size):
        batch = list(links[start:start + batch_size])
        try:
            classifications = classify(batch)
        except Exception as exc:
            print(f"[ranker] Classification failed for links {start}-{start + len(batch) - 1}: {exc!r:.200}")
            ranked.extend(_fail_open(batch))
            continue
        ranked.extend(_apply_classifications(batch, classifications))

    ranked.sort(key=lambda link: link.relevance_score, reverse=True)
    return ranked


# ---------------------------------------------------------------------------
# Post-processing
# ---------------------------------------------------------------------------

def filter_by_score(links: Iterable[RankedLink], min_score: float = 0.3) -> List[RankedLink]:
    """Return the links scoring at least *min_score*, order preserved."""
    return [link for link in links if link.relevance_score >= min_score]


def group_by_category(links: Iterable[RankedLink]) -> Dict[str, List[RankedLink]]:
    """Bucket links by category; every category key is present."""
    groups: Dict[str, List[RankedLink]] = {category: [] for category in LINK_CATEGORIES}
    for link in links:
        groups.setdefault(link.category, []).append(link)
    return groups
