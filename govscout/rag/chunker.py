"""Markdown chunker for the retrieval corpus.

Strategy, in order:

1. Split on ``##`` / ``###`` headers.  Text before the first header becomes
   an "Introduction" section; a document without headers is one "Document"
   section.
2. Append sections under *min_tokens* to the previous section (which keeps
   its title).
3. Split sections over *max_tokens* into paragraphs, oversized paragraphs
   into sentences, oversized sentences into word runs; pack the pieces
   greedily.  Every chunk after the first in a section starts with a short
   tail of the previous chunk's words and is titled ``"<title> (continued)"``.

All size decisions go through :func:`count_tokens`, so identical input and
settings always produce identical chunks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import tiktoken

MAX_CHUNK_TOKENS = 1000
MIN_CHUNK_TOKENS = 100
OVERLAP_TOKENS = 50

_HEADER_RE = re.compile(r"^(#{2,3})\s+(.+)$", re.MULTILINE)
_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")
_FALLBACK_TOKEN_RE = re.compile(r"\w+|[^\w\s]")

_tokenizer: tiktoken.Encoding | None = None
_tokenizer_failed = False


@dataclass
class ChunkResult:
    section_title: str
    content: str
    token_count: int
    chunk_index: int


# ---------------------------------------------------------------------------
# Token counting
# ---------------------------------------------------------------------------

def _get_tokenizer() -> tiktoken.Encoding | None:
    global _tokenizer, _tokenizer_failed
    if _tokenizer is not None:
        return _tokenizer
    if _tokenizer_failed:
        return None
    try:
        _tokenizer = tiktoken.get_encoding("cl100k_base")
    except Exception as exc:
        # The encoding is downloaded on first use; offline hosts get the
        # regex count instead.
        print(f"[chunker] Could not load cl100k_base, counting words and punctuation: {exc}")
        _tokenizer_failed = True
    return _tokenizer


def count_tokens(text: str) -> int:
    """Return the number of tokens in *text* (``cl100k_base`` encoding).

    If the encoding cannot be loaded, words and punctuation marks are
    counted instead, which is deterministic but only approximate.
    """
    if not text:
        return 0
    tokenizer = _get_tokenizer()
    if tokenizer is None:
        return len(_FALLBACK_TOKEN_RE.findall(text))
    return len(tokenizer.encode(text, disallowed_special=()))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _split_by_headers(markdown: str) -> list[tuple[str, str]]:
    matches = list(_HEADER_RE.finditer(markdown))
    if not matches:
        return [("Document", markdown.strip())]

    sections: list[tuple[str, str]] = []
    intro = markdown[: matches[0].start()].strip()
    if intro:
        sections.append(("Introduction", intro))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(markdown)
        content = markdown[match.end():end].strip()
        if content:
            sections.append((match.group(2).strip(), content))
    return sections


def _merge_small_sections(
    sections: list[tuple[str, str]],
    min_tokens: int,
) -> list[tuple[str, str]]:
    merged: list[tuple[str, str]] = []
    for title, content in sections:
        if merged and count_tokens(content) < min_tokens:
            prev_title, prev_content = merged[-1]
            merged[-1] = (prev_title, f"{prev_content}\n\n{content}")
        else:
            merged.append((title, content))
    return merged


def _split_by_words(text: str, max_tokens: int) -> list[str]:
    """Hard split on whitespace; per-word counts are summed as an estimate."""
    chunks: list[str] = []
    current: list[str] = []
    current_tokens = 0
    for word in text.split():
        word_tokens = count_tokens(f" {word}")
        if current and current_tokens + word_tokens > max_tokens:
            chunks.append(" ".join(current))
            current = []
            current_tokens = 0
        current.append(word)
        current_tokens += word_tokens
    if current:
        chunks.append(" ".join(current))
    return chunks


def _split_oversized_paragraph(text: str, max_tokens: int) -> list[str]:
    sentences = [s.strip() for s in _SENTENCE_RE.split(text) if s.strip()]
    if len(sentences) <= 1:
        return _split_by_words(text, max_tokens)

    chunks: list[str] = []
    current = ""
    for sentence in sentences:
        if count_tokens(sentence) > max_tokens:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_split_by_words(sentence, max_tokens))
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if current and count_tokens(candidate) > max_tokens:
            chunks.append(current)
            current = sentence
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def _overlap_tail(previous: str, next_piece: str, overlap_tokens: int, max_tokens: int) -> str:
    """Trailing words of *previous* worth at most *overlap_tokens* tokens.

    The tail is shortened until ``tail + next_piece`` fits in *max_tokens*;
    it may end up empty.
    """
    if overlap_tokens <= 0:
        return ""

    tail: list[str] = []
    for word in reversed(previous.split()):
        candidate = [word] + tail
        if count_tokens(" ".join(candidate)) > overlap_tokens:
            break
        tail = candidate

    while tail and count_tokens(" ".join(tail) + "\n\n" + next_piece) > max_tokens:
        tail = tail[1:]
    return " ".join(tail)


def _split_large_section(
    title: str,
    content: str,
    max_tokens: int,
    overlap_tokens: int,
) -> list[tuple[str, str]]:
    pieces: list[str] = []
    for para in _PARAGRAPH_RE.split(content):
        para = para.strip()
        if not para:
            continue
        if count_tokens(para) > max_tokens:
            pieces.extend(_split_oversized_paragraph(para, max_tokens))
        else:
            pieces.append(para)

    chunks: list[str] = []
    current: list[str] = []
    for piece in pieces:
        candidate = "\n\n".join(current + [piece])
        if current and count_tokens(candidate) > max_tokens:
            closed = "\n\n".join(current)
            chunks.append(closed)
            seed = _overlap_tail(closed, piece, overlap_tokens, max_tokens)
            current = [seed, piece] if seed else [piece]
        else:
            current.append(piece)
    if current:
        chunks.append("\n\n".join(current))

    return [
        (title if i == 0 else f"{title} (continued)", chunk)
        for i, chunk in enumerate(chunks)
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def chunk_document(
    markdown: str,
    max_tokens: int = MAX_CHUNK_TOKENS,
    min_tokens: int = MIN_CHUNK_TOKENS,
    overlap_tokens: int = OVERLAP_TOKENS,
) -> list[ChunkResult]:
    """Split *markdown* into header-aware, size-bounded chunks.

    Args:
        markdown: The document, usually :attr:`PageContent.markdown`.
        max_tokens: Upper bound per chunk.  Only a single word run that
            cannot be split further may exceed it.
        min_tokens: Sections below this size are merged into the previous
            section.
        overlap_tokens: Approximate size of the tail each continuation
            chunk repeats from the chunk before it.

    Returns:
        Chunks in reading order with ``chunk_index`` ``0, 1, 2, …`` across
        the whole document.  Returns ``[]`` for blank input.
    """
    if not markdown or not markdown.strip():
        return []

    sections = _merge_small_sections(_split_by_headers(markdown), min_tokens)

    results: list[ChunkResult] = []
    for title, content in sections:
        if count_tokens(content) > max_tokens:
            parts = _split_large_section(title, content, max_tokens, overlap_tokens)
        else:
            parts = [(title, content)]
        for part_title, part in parts:
            results.append(
                ChunkResult(
                    section_title=part_title,
                    content=part,
                    token_count=count_tokens(part),
                    chunk_index=len(results),
                )
            )
    return results


def get_document_token_count(markdown: str) -> int:
    """Total token count of *markdown*."""
    return count_tokens(markdown)
