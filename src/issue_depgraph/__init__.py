"""
Issue dependency graph

Mines GitHub and GitLab issue bodies for dependency directives ("depends on
#12", "blocks owner/repo#3", ...), resolves them into a graph of work items
and renders it for Graphviz or as JSON.
"""

from __future__ import annotations

from .cli import main
from .config import Settings
from .directives import Directive, DirectiveKind, extract_directives
from .exceptions import CycleError, DepgraphError, FetchError, NormalizationError, RenderError, StoreError
from .models import GitHubDetails, GitLabDetails, Issue, IssueLabel, Profile, Provider
from .normalizer import from_github_issue, from_gitlab_issue, normalize_batch
from .registry import IssueRegistry
from .resolver import Resolver, resolve, weight, weight_multiplier
from .service import render
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "CycleError",
    "DepgraphError",
    "Directive",
    "DirectiveKind",
    "FetchError",
    "GitHubDetails",
    "GitLabDetails",
    "Issue",
    "IssueLabel",
    "IssueRegistry",
    "NormalizationError",
    "Profile",
    "Provider",
    "RenderError",
    "Resolver",
    "Settings",
    "StoreError",
    "extract_directives",
    "from_github_issue",
    "from_gitlab_issue",
    "main",
    "normalize_batch",
    "render",
    "resolve",
    "setup_logging",
    "weight",
    "weight_multiplier",
]
