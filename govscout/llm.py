"""Chat-model access for the link classifier.

Providers
---------
``openai`` (default)
    ``langchain_openai.ChatOpenAI``.  Requires ``OPENAI_API_KEY``.
    Configure the model via ``OPENAI_CHAT_MODEL``.

``ollama``
    ``langchain_ollama.ChatOllama`` against ``OLLAMA_BASE_URL``.
    Configure the model via ``OLLAMA_CHAT_MODEL``.

Calls go through :func:`invoke_with_retry`, which retries rate-limited
requests with capped exponential backoff and honours ``Retry-After`` hints
sent by the server.  Every other error propagates immediately.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any, Callable, Optional, TypeVar

from govscout.config import settings

T = TypeVar("T")

# Extra slack added on top of every backoff delay.
_RETRY_BUFFER_SECONDS = 0.5

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Model factory
# ---------------------------------------------------------------------------

def get_llm(temperature: float = 0.2, json_mode: bool = True) -> Any:
    """Return a configured LangChain chat model based on ``settings``."""
    if settings.llm_provider == "ollama":
        from langchain_ollama import ChatOllama

        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["format"] = "json"
        return ChatOllama(
            model=settings.ollama_chat_model,
            base_url=settings.ollama_base_url,
            temperature=temperature,
            **kwargs,
        )

    from langchain_openai import ChatOpenAI

    model_kwargs: dict[str, Any] = {}
    if json_mode:
        model_kwargs["response_format"] = {"type": "json_object"}
    return ChatOpenAI(
        model=settings.openai_chat_model,
        temperature=temperature,
        max_tokens=4096,
        model_kwargs=model_kwargs,
    )


# ---------------------------------------------------------------------------
# Retry / backoff
# ---------------------------------------------------------------------------

def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return ``True`` for HTTP 429 / ``rate_limit_exceeded`` style errors."""
    if _status_code(exc) == 429:
        return True
    return getattr(exc, "code", None) == "rate_limit_exceeded"


def retry_after_seconds(exc: BaseException) -> Optional[float]:
    """Read a server-advised delay from the error's response headers, if any."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None) or getattr(exc, "headers", None)
    if not headers:
        return None

    retry_ms = headers.get("retry-after-ms")
    if retry_ms is not None:
        try:
            return float(retry_ms) / 1000.0
        except (TypeError, ValueError):
            pass

    retry_s = headers.get("retry-after")
    if retry_s is not None:
        try:
            return float(retry_s)
        except (TypeError, ValueError):
            return None
    return None


def invoke_with_retry(
    fn: Callable[[], T],
    operation: str,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
) -> T:
    """Call *fn*, retrying rate-limit failures with exponential backoff.

    The delay for attempt ``n`` is the server's ``Retry-After`` hint when
    present, otherwise ``base_delay * 2**n``; either is capped at
    *max_delay*.

    Raises:
        The last rate-limit error once *max_retries* attempts are exhausted,
        or any non-rate-limit error straight away.
    """
    retries = settings.llm_max_retries if max_retries is None else max_retries
    base = settings.llm_retry_base_delay if base_delay is None else base_delay
    cap = settings.llm_retry_max_delay if max_delay is None else max_delay

    for attempt in range(retries):
        try:
            return fn()
        except Exception as exc:
            if not is_rate_limit_error(exc) or attempt == retries - 1:
                raise
            hinted = retry_after_seconds(exc)
            delay = hinted if hinted is not None else base * (2 ** attempt)
            delay = min(delay + _RETRY_BUFFER_SECONDS, cap)
            print(
                f"[llm] rate-limited on {operation}; retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{retries})"
            )
            time.sleep(delay)

    # Only reachable when retries <= 0.
    return fn()


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def parse_json_response(response: Any) -> Any:
    """Decode the JSON body of a chat-model reply.

    Accepts LangChain messages (uses ``.content``) or plain strings, and
    tolerates a surrounding Markdown code fence.

    Raises:
        ValueError: If the reply is not valid JSON.
    """
    raw = response.content if hasattr(response, "content") else response
    if not isinstance(raw, str):
        raw = str(raw)
    text = _FENCE_RE.sub("", raw.strip())
    return json.loads(text)
