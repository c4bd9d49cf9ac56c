"""Exceptions raised by the scraper package."""

from __future__ import annotations


class InvalidURLError(ValueError):
    """A URL could not be parsed into an absolute ``http(s)`` address."""


class RendererUnavailableError(RuntimeError):
    """The headless browser could not be launched."""


class ClassificationError(RuntimeError):
    """The link-classification service returned unusable output."""
