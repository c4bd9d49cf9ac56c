"""govscout CLI entry-point for crawling, extraction and chunking.

Usage:
    python cli/main.py --help

Commands:
    crawl    → best-first crawl of a site, then chunk accepted pages
    extract  → render one URL and print its markdown and links
    chunk    → chunk a local markdown file
    robots   → show the robots.txt rules the crawler would honour
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from govscout.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
from dataclasses import asdict
from typing import Optional

import typer

from govscout.config import settings
from govscout.scraper.errors import InvalidURLError, RendererUnavailableError

app = typer.Typer(
    name="govscout",
    help="Public-sector website crawler and corpus chunker.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------
@app.command("crawl")
def crawl_cmd(
    url: str = typer.Argument(..., help="Seed URL."),
    max_depth: int = typer.Option(settings.crawl_max_depth, help="Link depth to follow from the seed."),
    max_pages: int = typer.Option(settings.crawl_max_pages, help="Maximum pages to fetch."),
    min_score: float = typer.Option(settings.crawl_min_score, help="Minimum link score to follow."),
    delay_ms: int = typer.Option(settings.crawl_delay_ms, help="Delay between requests in ms."),
    llm: bool = typer.Option(True, "--llm/--no-llm", help="Rank links with the LLM classifier."),
    robots: bool = typer.Option(True, "--robots/--ignore-robots", help="Honour robots.txt."),
    all_domains: bool = typer.Option(False, "--all-domains", help="Follow links off the seed's domain."),
    max_duration: Optional[float] = typer.Option(None, help="Stop starting new fetches after N seconds."),
    min_content_chars: int = typer.Option(200, help="Skip pages with less markdown than this."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result as JSON."),
) -> None:
    """Crawl a site, rank its links and chunk every page with real content."""
    from govscout.pipeline import scrape_site
    from govscout.scraper.crawler import CrawlConfig

    config = CrawlConfig(
        max_depth=max_depth,
        max_pages=max_pages,
        min_score_to_follow=min_score,
        request_delay_ms=delay_ms,
        use_llm_ranking=llm,
        same_domain_only=not all_domains,
        respect_robots=robots,
        max_duration_s=max_duration,
    )

    try:
        result = scrape_site(url, config, min_content_chars=min_content_chars)
    except InvalidURLError as exc:
        typer.echo(f"[crawl] Invalid URL: {exc}")
        raise typer.Exit(1)
    except RendererUnavailableError as exc:
        typer.echo(f"[crawl] Browser unavailable: {exc}")
        raise typer.Exit(1)

    if output is not None:
        payload = {
            "crawl": asdict(result.crawl_result),
            "documents": [asdict(doc) for doc in result.documents],
            "skipped": result.skipped,
        }
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        typer.echo(f"[crawl] Wrote {output}")


# ---------------------------------------------------------------------------
# Single page
# ---------------------------------------------------------------------------
@app.command("extract")
def extract_cmd(
    url: str = typer.Argument(..., help="URL to render and extract."),
    render: bool = typer.Option(True, "--render/--no-render", help="Use the headless browser."),
    links: bool = typer.Option(False, "--links", help="Also list the extracted links."),
) -> None:
    """Extract one page and print its markdown to stdout."""
    from govscout.scraper.extractor import open_extractor
    from govscout.scraper.urls import normalize_url

    try:
        target = normalize_url(url)
        with open_extractor(use_renderer=render) as extractor:
            page = extractor.extract(target)
    except InvalidURLError as exc:
        typer.echo(f"[extract] Invalid URL: {exc}")
        raise typer.Exit(1)
    except RendererUnavailableError as exc:
        typer.echo(f"[extract] Browser unavailable: {exc}")
        raise typer.Exit(1)

    if page is None:
        typer.echo(f"[extract] Could not fetch {target}")
        raise typer.Exit(1)

    typer.echo(f"[extract] Title : {page.title or '(none)'}")
    typer.echo(f"[extract] Chars : {len(page.markdown)}")
    typer.echo(f"[extract] Links : {len(page.links)}")
    typer.echo("")
    typer.echo(page.markdown)

    if links:
        typer.echo("")
        for link in page.links:
            typer.echo(f"  {link.url}  {link.anchor_text[:60]!r}")


@app.command("robots")
def robots_cmd(
    url: str = typer.Argument(..., help="Any URL on the site."),
) -> None:
    """Show the Crawl-delay and Disallow rules that apply to all user agents."""
    from govscout.scraper.robots import get_robots_info

    info = get_robots_info(url)
    if info.crawl_delay_ms is None:
        typer.echo("[robots] Crawl-delay: (none)")
    else:
        typer.echo(f"[robots] Crawl-delay: {info.crawl_delay_ms}ms")
    if not info.disallowed:
        typer.echo("[robots] Disallow: (none)")
        return
    typer.echo(f"[robots] Disallow ({len(info.disallowed)}):")
    for path in info.disallowed:
        typer.echo(f"  {path}")


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------
@app.command("chunk")
def chunk_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file."),
    max_tokens: Optional[int] = typer.Option(None, help="Upper bound per chunk."),
    min_tokens: Optional[int] = typer.Option(None, help="Merge sections smaller than this."),
    overlap: Optional[int] = typer.Option(None, help="Tokens repeated across split boundaries."),
    show: bool = typer.Option(False, "--show", help="Print chunk contents too."),
) -> None:
    """Chunk a markdown file and print one line per chunk."""
    from govscout.rag.chunker import (
        MAX_CHUNK_TOKENS,
        MIN_CHUNK_TOKENS,
        OVERLAP_TOKENS,
        chunk_document,
        get_document_token_count,
    )

    markdown = path.read_text(encoding="utf-8")
    chunks = chunk_document(
        markdown,
        max_tokens=MAX_CHUNK_TOKENS if max_tokens is None else max_tokens,
        min_tokens=MIN_CHUNK_TOKENS if min_tokens is None else min_tokens,
        overlap_tokens=OVERLAP_TOKENS if overlap is None else overlap,
    )

    typer.echo(f"[chunk] {path.name}: {get_document_token_count(markdown)} tokens → {len(chunks)} chunk(s)")
    for chunk in chunks:
        typer.echo(f"  #{chunk.chunk_index:<3} {chunk.token_count:>5} tok  {chunk.section_title}")
        if show:
            typer.echo(chunk.content)
            typer.echo("-" * 72)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
