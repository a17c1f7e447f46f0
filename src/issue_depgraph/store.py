"""Dump and load an issue collection as JSON.

Every field is written, derived ones included, so a loaded collection can be
rendered without resolving it again.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Final

from .exceptions import StoreError
from .models import GitHubDetails, GitLabDetails, Issue, IssueLabel, Profile, Provider, ProviderDetails
from .registry import IssueRegistry

logger: logging.Logger = logging.getLogger(__name__)

STORE_VERSION: Final[int] = 1


def to_document(registry: IssueRegistry) -> dict[str, Any]:
    return {
        "version": STORE_VERSION,
        "issues": [dataclasses.asdict(issue) for issue in registry],
    }


def _details_from_dict(raw: dict[str, Any]) -> ProviderDetails:
    provider = Provider(raw["provider"])
    if provider is Provider.GITHUB:
        return GitHubDetails(pull_request=bool(raw.get("pull_request", False)))
    return GitLabDetails(project_id=raw.get("project_id"))


def _issue_from_dict(raw: dict[str, Any]) -> Issue:
    fields = dict(raw)
    fields["details"] = _details_from_dict(raw["details"])
    fields["labels"] = [IssueLabel(**label) for label in raw.get("labels", [])]
    fields["assignees"] = [Profile(**assignee) for assignee in raw.get("assignees", [])]
    return Issue(**fields)


def from_document(document: dict[str, Any]) -> IssueRegistry:
    """Rebuild a registry from a dumped document.

    Raises:
        StoreError: If the document is not a supported store document
    """
    if not isinstance(document, dict) or not isinstance(document.get("issues"), list):
        msg = "Store document has no 'issues' list"
        raise StoreError(msg)
    version = document.get("version")
    if version != STORE_VERSION:
        msg = f"Unsupported store version: {version!r}"
        raise StoreError(msg)
    try:
        issues = [_issue_from_dict(raw) for raw in document["issues"]]
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Invalid issue in store document: {e}"
        raise StoreError(msg) from e
    return IssueRegistry(issues)


def dump(registry: IssueRegistry, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(to_document(registry), indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)
    logger.info(f"Stored {len(registry)} issues in {path}")


def load(path: Path) -> IssueRegistry:
    """Load a registry from a store file.

    Raises:
        StoreError: If the file cannot be read or parsed
    """
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        msg = f"Cannot read store {path}: {e}"
        raise StoreError(msg) from e
    registry = from_document(document)
    logger.debug(f"Loaded {len(registry)} issues from {path}")
    return registry
