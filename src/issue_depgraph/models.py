"""Data models for issues gathered from the supported trackers.

An `Issue` is created once per tracker item by the normalizer. The resolver
later fills in the derived fields in place. Relations are stored as issue
URLs, which are the keys of the owning `IssueRegistry`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Literal
from urllib.parse import urlparse


class Provider(enum.StrEnum):
    """Tracker kind that produced an issue."""

    GITHUB = "github"
    GITLAB = "gitlab"


@dataclass
class IssueLabel:
    """A label attached to an issue."""

    name: str
    color: str  # Hex color without '#' prefix (e.g., "ff0000")


@dataclass
class Profile:
    """An assignee."""

    name: str
    username: str


@dataclass(frozen=True)
class GitHubDetails:
    """GitHub-only facts about an issue.

    The GitHub issues API lists pull requests alongside issues.
    """

    pull_request: bool = False
    provider: Literal[Provider.GITHUB] = Provider.GITHUB


@dataclass(frozen=True)
class GitLabDetails:
    """GitLab-only facts about an issue."""

    project_id: int | None = None
    provider: Literal[Provider.GITLAB] = Provider.GITLAB


ProviderDetails = GitHubDetails | GitLabDetails


@dataclass
class Issue:
    """One tracker item plus the state derived from the whole collection."""

    url: str
    number: int
    title: str
    state: Literal["open", "closed"]
    body: str
    repo_url: str
    details: ProviderDetails
    labels: list[IssueLabel] = field(default_factory=list)
    assignees: list[Profile] = field(default_factory=list)

    # Derived by the resolver
    depends_on: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    is_orphan: bool = True
    hidden: bool = False
    linked_with_epic: bool = False
    duplicates: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    base_weight: int = 1
    weight_multiplier: int = 1

    @property
    def provider(self) -> Provider:
        return self.details.provider

    @property
    def is_pull_request(self) -> bool:
        return isinstance(self.details, GitHubDetails) and self.details.pull_request

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    @property
    def is_ready(self) -> bool:
        """Linked into the graph and waiting on nothing."""
        return not self.is_orphan and not self.depends_on

    def is_epic(self, epic_label: str) -> bool:
        return any(label.name == epic_label for label in self.labels)

    @property
    def provider_url(self) -> str:
        """Scheme and host of the tracker (e.g., "https://github.com")."""
        parsed = urlparse(self.url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def path(self) -> str:
        """Repository path of the issue URL, without the trailing "issues/N" part.

        GitHub: "/owner/repo"; GitLab: "/group/project/-".
        """
        parts = urlparse(self.url).path.split("/")
        return "/".join(parts[:-2])

    @property
    def repo_path(self) -> str:
        """Repository path without leading slash or GitLab's "-" separator."""
        path = self.path.strip("/")
        return path.removesuffix("/-")

    @property
    def owner(self) -> str:
        return self.repo_path.rsplit("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.repo_path.rsplit("/", 1)[-1]

    @property
    def node_name(self) -> str:
        return f"{self.repo_path}#{self.number}"

    def reset_derived(self) -> None:
        """Restore every derived field to its default."""
        self.depends_on = []
        self.blocks = []
        self.is_orphan = True
        self.hidden = False
        self.linked_with_epic = False
        self.duplicates = []
        self.errors = []
        self.base_weight = 1
        self.weight_multiplier = 1
