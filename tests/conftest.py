"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from issue_depgraph.models import Provider
from issue_depgraph.normalizer import normalize_batch
from issue_depgraph.registry import IssueRegistry


@pytest.fixture
def make_registry() -> Callable[..., IssueRegistry]:
    """Build a registry from GitHub payloads (see payloads.py)."""

    def _make(*payloads: dict[str, Any]) -> IssueRegistry:
        normalized = normalize_batch(Provider.GITHUB, payloads)
        assert not normalized.errors
        return IssueRegistry(normalized.issues)

    return _make
