"""The issue collection: one `Issue` per URL.

Relations between issues are URL references into the registry, so a lookup
always yields the single live instance of an issue.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from .models import Issue

logger: logging.Logger = logging.getLogger(__name__)


class IssueRegistry:
    """Issues keyed by URL.

    Not safe for concurrent mutation: batches from several fetchers must be
    merged by a single writer before resolution starts.
    """

    def __init__(self, issues: Iterable[Issue] = ()) -> None:
        self._issues: dict[str, Issue] = {}
        self.merge(issues)

    def __len__(self) -> int:
        return len(self._issues)

    def __contains__(self, url: object) -> bool:
        return url in self._issues

    def __iter__(self) -> Iterator[Issue]:
        """Iterate issues in URL order."""
        for url in sorted(self._issues):
            yield self._issues[url]

    def __getitem__(self, url: str) -> Issue:
        return self._issues[url]

    def get(self, url: str) -> Issue | None:
        return self._issues.get(url)

    def urls(self) -> list[str]:
        return sorted(self._issues)

    def add(self, issue: Issue) -> None:
        """Insert an issue, replacing any earlier copy with the same URL."""
        if issue.url in self._issues:
            logger.debug(f"Replacing {issue.url}")
        self._issues[issue.url] = issue

    def merge(self, issues: Iterable[Issue]) -> int:
        """Add every issue of a batch; returns how many were added."""
        count = 0
        for issue in issues:
            self.add(issue)
            count += 1
        return count

    def remove(self, url: str) -> None:
        del self._issues[url]

    def resolve_many(self, urls: Iterable[str]) -> list[Issue]:
        """Look up referenced issues, de-duplicated by URL, dropping unknown ones."""
        seen: set[str] = set()
        found: list[Issue] = []
        for url in urls:
            if url in seen or url not in self._issues:
                continue
            seen.add(url)
            found.append(self._issues[url])
        return found

    # Visibility controls

    def hide_closed(self) -> None:
        for issue in self._issues.values():
            if issue.is_closed:
                issue.hidden = True

    def hide_orphans(self) -> None:
        """Hide issues that are orphans or not linked with any epic."""
        for issue in self._issues.values():
            if issue.is_orphan or not issue.linked_with_epic:
                issue.hidden = True

    def has_orphans(self) -> bool:
        return any(not issue.hidden and issue.is_orphan for issue in self._issues.values())

    def has_non_orphans(self) -> bool:
        return any(
            not issue.hidden and not issue.is_orphan and issue.linked_with_epic for issue in self._issues.values()
        )

    def visible(self) -> list[Issue]:
        return [issue for issue in self if not issue.hidden]
