"""Resolve mined directives into the dependency graph.

Resolution runs as ordered passes over the whole registry:

1. reset: derived fields go back to their defaults, so a collection can be
   resolved again after it was loaded or re-merged
2. directives: directives are extracted for every issue; issues carrying the
   hide marker are removed from the registry, then duplicate, weight and
   relation directives are applied to the remaining issues
3. hiding: duplicates and pull requests are hidden
4. epic closure: `linked_with_epic` is computed from the final relations
   and hidden flags, so it must come after passes 2 and 3

Weights are computed on demand from the resolved relations and are never
cached on the issues.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from .config import Settings
from .directives import Directive, DirectiveKind, extract_directives, parse_int
from .exceptions import CycleError
from .models import Issue
from .registry import IssueRegistry

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class ResolutionReport:
    """What a resolution run did."""

    directives: dict[str, list[Directive]] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)
    errors: dict[str, list[str]] = field(default_factory=dict)
    cycles: list[list[str]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(len(errors) for errors in self.errors.values())


def _add_unique(urls: list[str], url: str) -> None:
    if url not in urls:
        urls.append(url)


def link(dependent: Issue, dependency: Issue) -> None:
    """Record that `dependent` depends on `dependency` (and the reverse edge)."""
    _add_unique(dependent.depends_on, dependency.url)
    _add_unique(dependency.blocks, dependent.url)
    dependent.is_orphan = False
    dependency.is_orphan = False


class Resolver:
    """Runs the resolution passes over a registry."""

    def __init__(self, registry: IssueRegistry, settings: Settings | None = None) -> None:
        self.registry: IssueRegistry = registry
        self.settings: Settings = settings or Settings()

    def resolve(self) -> ResolutionReport:
        report = ResolutionReport()
        self._reset_pass()
        self._directive_pass(report)
        self._hiding_pass()
        self._epic_closure_pass()

        report.errors = {issue.url: list(issue.errors) for issue in self.registry if issue.errors}
        report.cycles = detect_cycles(self.registry)
        for cycle in report.cycles:
            logger.warning(f"Blocking cycle between {len(cycle)} issues: {', '.join(cycle)}")
        logger.info(
            f"Resolved {len(self.registry)} issues "
            f"({len(report.removed)} removed, {report.error_count} unresolved references)"
        )
        return report

    def _reset_pass(self) -> None:
        for issue in self.registry:
            issue.reset_derived()

    def _directive_pass(self, report: ResolutionReport) -> None:
        for issue in self.registry:
            directives = extract_directives(issue.url, issue.body, self.settings.directive_prefix)
            if directives:
                report.directives[issue.url] = directives

        # Hidden issues leave the collection before any relation is applied
        for url, directives in report.directives.items():
            if any(directive.kind is DirectiveKind.HIDE for directive in directives):
                logger.debug(f"{url}: hidden from roadmap, removing")
                self.registry.remove(url)
                report.removed.append(url)

        for issue in self.registry:
            for directive in report.directives.get(issue.url, []):
                self._apply(issue, directive)

    def _apply(self, issue: Issue, directive: Directive) -> None:
        match directive.kind:
            case DirectiveKind.DUPLICATE_OF:
                issue.duplicates.append(directive.value)
            case DirectiveKind.WEIGHT_MULTIPLIER:
                value = parse_int(directive.value)
                if value is not None:
                    issue.weight_multiplier = value
            case DirectiveKind.BASE_WEIGHT:
                value = parse_int(directive.value)
                if value is not None:
                    issue.base_weight = value
            case DirectiveKind.DEPENDS_ON:
                self._apply_relation(issue, directive.value, role="parent")
            case DirectiveKind.BLOCKS:
                self._apply_relation(issue, directive.value, role="child")
            case DirectiveKind.HIDE:
                pass

    def _apply_relation(self, issue: Issue, target_url: str, *, role: str) -> None:
        if target_url == issue.url:
            logger.debug(f"{issue.url}: ignoring reference to itself")
            return
        target = self.registry.get(target_url)
        if target is None:
            logger.warning(f"{issue.url}: referenced issue {target_url} not found")
            issue.errors.append(f'{role} "{target_url}" not found')
            return
        if role == "parent":
            link(issue, target)
        else:
            link(target, issue)

    def _hiding_pass(self) -> None:
        for issue in self.registry:
            if issue.duplicates or issue.is_pull_request:
                issue.hidden = True

    def _epic_closure_pass(self) -> None:
        epic_label = self.settings.epic_label
        for issue in self.registry:
            issue.linked_with_epic = not issue.hidden and (
                issue.is_epic(epic_label)
                or reaches_epic(self.registry, issue, epic_label, lambda i: i.blocks)
                or reaches_epic(self.registry, issue, epic_label, lambda i: i.depends_on)
            )


def resolve(registry: IssueRegistry, settings: Settings | None = None) -> ResolutionReport:
    """Resolve a registry in place."""
    return Resolver(registry, settings).resolve()


def reaches_epic(
    registry: IssueRegistry,
    issue: Issue,
    epic_label: str,
    neighbours: Callable[[Issue], list[str]],
) -> bool:
    """Whether an epic is reachable from `issue` by following `neighbours`.

    The issue itself does not count unless a cycle leads back to it.
    """
    visited: set[str] = set()
    queue: deque[Issue] = deque(registry.resolve_many(neighbours(issue)))
    while queue:
        current = queue.popleft()
        if current.url in visited:
            continue
        visited.add(current.url)
        if current.is_epic(epic_label):
            return True
        queue.extend(registry.resolve_many(neighbours(current)))
    return False


def blocks_an_epic(registry: IssueRegistry, issue: Issue, epic_label: str) -> bool:
    return reaches_epic(registry, issue, epic_label, lambda i: i.blocks)


def depends_on_an_epic(registry: IssueRegistry, issue: Issue, epic_label: str) -> bool:
    return reaches_epic(registry, issue, epic_label, lambda i: i.depends_on)


def _blocked_issues(registry: IssueRegistry, url: str) -> list[str]:
    return [issue.url for issue in registry.resolve_many(registry[url].blocks)]


def _aggregate(registry: IssueRegistry, root: Issue) -> dict[str, tuple[int, int]]:
    """Compute (weight, multiplier) for `root` and everything it blocks.

    Post-order walk over the de-duplicated `blocks` lists. Each issue is
    evaluated once per call; nothing is stored on the issues.

    Raises:
        CycleError: If a cycle is reachable from `root`
    """
    results: dict[str, tuple[int, int]] = {}
    path: list[str] = [root.url]
    stack: list[tuple[str, Iterator[str]]] = [(root.url, iter(_blocked_issues(registry, root.url)))]

    while stack:
        url, children = stack[-1]
        for child in children:
            if child in results:
                continue
            if child in path:
                raise CycleError([*path[path.index(child) :], child])
            path.append(child)
            stack.append((child, iter(_blocked_issues(registry, child))))
            break
        else:
            stack.pop()
            path.pop()
            issue = registry[url]
            blocked = [results[child] for child in _blocked_issues(registry, url)]
            multiplier = issue.weight_multiplier * math.prod(m for _, m in blocked)
            weight = (issue.base_weight + sum(w for w, _ in blocked)) * multiplier
            results[url] = (weight, multiplier)
    return results


def weight(registry: IssueRegistry, issue: Issue) -> int:
    """Base weight plus the weight of every blocked issue, scaled by the multiplier chain.

    Raises:
        CycleError: If the blocked issues form a cycle
    """
    return _aggregate(registry, issue)[issue.url][0]


def weight_multiplier(registry: IssueRegistry, issue: Issue) -> int:
    """Own multiplier times the multipliers of every blocked issue.

    Raises:
        CycleError: If the blocked issues form a cycle
    """
    return _aggregate(registry, issue)[issue.url][1]


def detect_cycles(registry: IssueRegistry) -> list[list[str]]:
    """Return every group of issues that block each other in a cycle.

    Strongly connected components of the `blocks` relation with more than
    one member, each sorted by URL.
    """
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    cycles: list[list[str]] = []
    counter = 0

    for root in registry.urls():
        if root in index:
            continue
        index[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work: list[tuple[str, Iterator[str]]] = [(root, iter(_blocked_issues(registry, root)))]

        while work:
            node, children = work[-1]
            for child in children:
                if child not in index:
                    index[child] = low[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(_blocked_issues(registry, child))))
                    break
                if child in on_stack:
                    low[node] = min(low[node], index[child])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index[node]:
                    component: list[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1:
                        cycles.append(sorted(component))
    return cycles
