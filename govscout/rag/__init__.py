"""Retrieval-corpus preparation: markdown chunking and token counting."""

from govscout.rag.chunker import ChunkResult, chunk_document, count_tokens, get_document_token_count

__all__ = ["ChunkResult", "chunk_document", "count_tokens", "get_document_token_count"]
