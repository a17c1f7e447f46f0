"""Map each tracker's native issue payload onto the canonical `Issue`.

Payloads are the REST representations: plain dicts, or the client objects
returned by PyGithub (`raw_data`) and python-gitlab (`attributes`).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from .exceptions import NormalizationError
from .models import GitHubDetails, GitLabDetails, Issue, IssueLabel, Profile, Provider

logger: logging.Logger = logging.getLogger(__name__)

# GitLab issue payloads only carry label names
GITLAB_LABEL_COLOR: Final[str] = "cccccc"

_MISSING = object()


def _payload(record: Any) -> Mapping[str, Any]:  # noqa: ANN401 - client objects have no shared type
    """Return the REST payload behind a dict or a PyGithub/python-gitlab object."""
    if isinstance(record, Mapping):
        return record
    raw = getattr(record, "raw_data", None)
    if isinstance(raw, Mapping):
        return raw
    attributes = getattr(record, "attributes", None)
    if isinstance(attributes, Mapping):
        return attributes
    msg = f"Unsupported issue record type: {type(record).__name__}"
    raise TypeError(msg)


def _require(payload: Mapping[str, Any], key: str, provider: Provider) -> Any:  # noqa: ANN401
    value = payload.get(key, _MISSING)
    if value is _MISSING:
        raise NormalizationError(key, provider.value)
    return value


def _require_int(payload: Mapping[str, Any], key: str, provider: Provider) -> int:
    value = _require(payload, key, provider)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise NormalizationError(key, provider.value) from e


def _item_field(item: Any, key: str, field_name: str, provider: Provider) -> Any:  # noqa: ANN401
    """A required key of a label or assignee entry; `field_name` names it in errors."""
    if not isinstance(item, Mapping) or item.get(key) is None:
        raise NormalizationError(field_name, provider.value)
    return item[key]


def _normalize_state(state: str) -> str:
    # GitLab reports open issues as "opened"
    return "closed" if state == "closed" else "open"


def from_github_issue(record: Any) -> Issue:  # noqa: ANN401 - dict or github.Issue.Issue
    """Build an Issue from a GitHub REST issue payload.

    Raises:
        NormalizationError: If a required field is absent
    """
    payload = _payload(record)
    provider = Provider.GITHUB

    issue = Issue(
        url=_require(payload, "html_url", provider),
        number=_require_int(payload, "number", provider),
        title=_require(payload, "title", provider),
        state=_normalize_state(_require(payload, "state", provider)),
        body=_require(payload, "body", provider) or "",
        repo_url=_require(payload, "repository_url", provider),
        details=GitHubDetails(pull_request=payload.get("pull_request") is not None),
    )
    for label in _require(payload, "labels", provider) or []:
        name = _item_field(label, "name", "labels[].name", provider)
        issue.labels.append(IssueLabel(name=name, color=label.get("color") or ""))
    for assignee in _require(payload, "assignees", provider) or []:
        login = _item_field(assignee, "login", "assignees[].login", provider)
        issue.assignees.append(Profile(name=assignee.get("name") or login, username=login))
    return issue


def from_gitlab_issue(record: Any) -> Issue:  # noqa: ANN401 - dict or gitlab ProjectIssue
    """Build an Issue from a GitLab REST issue payload.

    Raises:
        NormalizationError: If a required field is absent
    """
    payload = _payload(record)
    provider = Provider.GITLAB

    links = _require(payload, "_links", provider) or {}
    if not isinstance(links, Mapping) or "project" not in links:
        raise NormalizationError("_links.project", provider.value)

    issue = Issue(
        url=_require(payload, "web_url", provider),
        number=_require_int(payload, "iid", provider),
        title=_require(payload, "title", provider),
        state=_normalize_state(_require(payload, "state", provider)),
        body=_require(payload, "description", provider) or "",
        repo_url=links["project"],
        details=GitLabDetails(project_id=payload.get("project_id")),
    )
    for label in _require(payload, "labels", provider) or []:
        if isinstance(label, str):
            issue.labels.append(IssueLabel(name=label, color=GITLAB_LABEL_COLOR))
            continue
        # Detailed labels come as dicts when listed with `with_labels_details`
        name = _item_field(label, "name", "labels[].name", provider)
        issue.labels.append(IssueLabel(name=name, color=(label.get("color") or GITLAB_LABEL_COLOR).lstrip("#")))
    for assignee in _require(payload, "assignees", provider) or []:
        issue.assignees.append(
            Profile(
                name=_item_field(assignee, "name", "assignees[].name", provider),
                username=_item_field(assignee, "username", "assignees[].username", provider),
            )
        )
    return issue


_NORMALIZERS = {
    Provider.GITHUB: from_github_issue,
    Provider.GITLAB: from_gitlab_issue,
}


@dataclass
class Batch:
    """Raw records delivered by one fetch call for one repository."""

    provider: Provider
    records: list[Any] = field(default_factory=list)


@dataclass
class NormalizedBatch:
    """Issues built from a batch plus the records that had to be skipped."""

    issues: list[Issue] = field(default_factory=list)
    errors: list[NormalizationError] = field(default_factory=list)


def normalize_batch(provider: Provider, records: Iterable[Any]) -> NormalizedBatch:
    """Normalize a batch of raw records, skipping the malformed ones."""
    normalize = _NORMALIZERS[provider]
    result = NormalizedBatch()
    for record in records:
        try:
            result.issues.append(normalize(record))
        except NormalizationError as e:
            logger.warning(f"Skipping malformed {provider} record: {e}")
            result.errors.append(e)
    logger.debug(f"Normalized {len(result.issues)} {provider} issues ({len(result.errors)} skipped)")
    return result
