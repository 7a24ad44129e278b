from __future__ import annotations


class TablefinderError(Exception):
    """Base class for errors raised by the discovery core."""


class ProviderError(TablefinderError):
    """The places provider failed (network, quota, not found)."""


class StoreError(TablefinderError):
    """A durable write could not be committed; the session was rolled back."""


class UnknownCategoryError(TablefinderError, KeyError):
    """No search strategy is registered under the requested category."""

    def __init__(self, category: str) -> None:
        super().__init__(category)
        self.category = category

    def __str__(self) -> str:
        return f"Unknown search category: {self.category!r}"


class ChatError(TablefinderError):
    """The AI assistant could not produce a reply."""
