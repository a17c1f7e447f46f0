"""
Custom exception classes for the issue dependency graph tool.
"""

from __future__ import annotations


class DepgraphError(Exception):
    """Base exception for dependency graph errors."""


class NormalizationError(DepgraphError):
    """Raised when a raw tracker record lacks a required field."""

    def __init__(self, field: str, provider: str) -> None:
        self.field: str = field
        self.provider: str = provider
        super().__init__(f"{provider} record is missing required field {field!r}")


class RenderError(DepgraphError):
    """Raised when the diagram cannot be built (duplicate node, dangling edge)."""


class CycleError(DepgraphError):
    """Raised when a weight computation walks into a cycle of blocking issues."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle: list[str] = cycle
        super().__init__("Cycle in blocking relations: " + " -> ".join(cycle))


class FetchError(DepgraphError):
    """Raised when a tracker API call fails while listing issues."""


class StoreError(DepgraphError):
    """Raised when a stored collection cannot be read."""
