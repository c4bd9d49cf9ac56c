"""Centralised settings for govscout.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Link classification model
    # ------------------------------------------------------------------
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "openai")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_chat_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_CHAT_MODEL", "ministral-3:8b")
    )
    openai_chat_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o")
    )
    llm_max_retries: int = field(
        default_factory=lambda: int(os.environ.get("LLM_MAX_RETRIES", "5"))
    )
    llm_retry_base_delay: float = field(
        default_factory=lambda: float(os.environ.get("LLM_RETRY_BASE_DELAY", "1.0"))
    )
    llm_retry_max_delay: float = field(
        default_factory=lambda: float(os.environ.get("LLM_RETRY_MAX_DELAY", "60.0"))
    )

    # ------------------------------------------------------------------
    # Headless browser
    # ------------------------------------------------------------------
    browser_headless: bool = field(
        default_factory=lambda: _env_bool("BROWSER_HEADLESS", "true")
    )
    browser_user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "BROWSER_USER_AGENT",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/122.0.0.0 Safari/537.36",
        )
    )
    navigation_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("NAVIGATION_TIMEOUT_MS", "30000"))
    )
    render_settle_ms: int = field(
        default_factory=lambda: int(os.environ.get("RENDER_SETTLE_MS", "1000"))
    )
    html_fallback: bool = field(
        default_factory=lambda: _env_bool("HTML_FALLBACK", "true")
    )

    # ------------------------------------------------------------------
    # Plain HTTP (robots.txt and the HTML fallback path)
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    robots_timeout: float = field(
        default_factory=lambda: float(os.environ.get("ROBOTS_TIMEOUT", "10.0"))
    )

    # ------------------------------------------------------------------
    # Crawl defaults
    # ------------------------------------------------------------------
    crawl_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_DEPTH", "2"))
    )
    crawl_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_PAGES", "50"))
    )
    crawl_min_score: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_MIN_SCORE", "0.5"))
    )
    crawl_delay_ms: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_DELAY_MS", "1000"))
    )

    # ------------------------------------------------------------------
    # Ranker
    # ------------------------------------------------------------------
    ranker_batch_size: int = field(
        default_factory=lambda: int(os.environ.get("RANKER_BATCH_SIZE", "50"))
    )


# Module-level singleton, import this everywhere:
#   from govscout.config import settings
settings = Settings()
