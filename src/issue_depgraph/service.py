"""Entry points used by the CLI and by any transport layer.

Fetching happens first and in parallel (one worker per target), while the
issue registry has a single writer: batches are handed over through a queue
and merged on the calling thread. Resolution and rendering only start once
every batch is merged.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import queue
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlparse

from . import github_utils as ghu
from . import gitlab_utils as glu
from .config import Settings
from .exceptions import DepgraphError, NormalizationError
from .models import Provider
from .normalizer import Batch, normalize_batch
from .registry import IssueRegistry
from .renderer import render_dot, render_json
from .resolver import resolve

logger: logging.Logger = logging.getLogger(__name__)

OutputFormat = Literal["dot", "json"]


@dataclass(frozen=True)
class Target:
    """A repository to fetch issues from."""

    provider: Provider
    path: str  # "owner/repo" or "group/project"
    base_url: str | None = None  # None for github.com / gitlab.com

    def __str__(self) -> str:
        return f"{self.provider}:{self.path}"


def parse_target(value: str) -> Target:
    """Parse "github:owner/repo", "gitlab:group/project" or a repository URL.

    Raises:
        ValueError: If the target cannot be parsed
    """
    for provider in Provider:
        prefix = f"{provider.value}:"
        if value.startswith(prefix) and "://" not in value:
            path = value.removeprefix(prefix).strip("/")
            if "/" not in path:
                break
            return Target(provider, path)

    parsed = urlparse(value)
    path = parsed.path.strip("/").removesuffix(".git").removesuffix("/-/issues").removesuffix("/issues")
    if parsed.scheme in ("http", "https") and "/" in path:
        if parsed.netloc == "github.com":
            return Target(Provider.GITHUB, path)
        if parsed.netloc == "gitlab.com":
            return Target(Provider.GITLAB, path)
        # Self-hosted instances are assumed to be GitLab
        return Target(Provider.GITLAB, path, base_url=f"{parsed.scheme}://{parsed.netloc}")

    msg = f"Invalid target: {value!r}. Expected 'github:owner/repo', 'gitlab:group/project' or a repository URL"
    raise ValueError(msg)


def merge_batches(registry: IssueRegistry, batches: Iterable[Batch]) -> list[NormalizationError]:
    """Normalize batches and merge them into the registry; returns the skipped-record errors."""
    errors: list[NormalizationError] = []
    for batch in batches:
        normalized = normalize_batch(batch.provider, batch.records)
        registry.merge(normalized.issues)
        errors.extend(normalized.errors)
    return errors


_DONE = object()


def drain_queue(registry: IssueRegistry, batches: queue.Queue[object], producers: int) -> list[NormalizationError]:
    """Merge batches from a queue until every producer has sent its end marker.

    Producers put `Batch` objects, then exactly one `DONE` marker each.
    """
    errors: list[NormalizationError] = []
    finished = 0
    while finished < producers:
        item = batches.get()
        if item is _DONE:
            finished += 1
            continue
        assert isinstance(item, Batch)
        errors.extend(merge_batches(registry, [item]))
    return errors


def fetch_target(
    target: Target,
    *,
    github_token: str | None = None,
    gitlab_token: str | None = None,
    since: dt.datetime | None = None,
) -> Iterator[Batch]:
    """Yield raw issue batches for one target."""
    if target.provider is Provider.GITHUB:
        github_client = ghu.get_client(github_token, base_url=target.base_url)
        yield from ghu.fetch_issues(github_client, target.path, since=since)
    else:
        gitlab_client = glu.get_client(gitlab_token, url=target.base_url or glu.DEFAULT_URL)
        yield from glu.fetch_issues(gitlab_client, target.path, since=since)


def fetch_all(
    registry: IssueRegistry,
    targets: list[Target],
    fetcher: Callable[[Target], Iterable[Batch]],
    *,
    max_workers: int = 4,
) -> list[str]:
    """Fetch all targets concurrently and merge their batches into the registry.

    A failing target is logged and reported; the others still get merged.

    Returns:
        Error messages for failed targets and skipped records
    """
    batches: queue.Queue[object] = queue.Queue()
    failures: list[str] = []

    def produce(target: Target) -> None:
        try:
            for batch in fetcher(target):
                batches.put(batch)
        except DepgraphError as e:
            logger.error(f"Fetching {target} failed: {e}")
            failures.append(f"{target}: {e}")
        finally:
            batches.put(_DONE)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(produce, target) for target in targets]
        skipped = drain_queue(registry, batches, producers=len(targets))
    for future in futures:
        future.result()

    logger.info(f"Merged {len(registry)} issues from {len(targets)} targets")
    return failures + [str(error) for error in skipped]


def render(
    registry: IssueRegistry,
    *,
    settings: Settings | None = None,
    output_format: OutputFormat = "dot",
    hide_closed: bool = False,
    hide_orphans: bool = False,
    resolve_first: bool = True,
) -> str:
    """Resolve (optionally), filter and render the collection.

    Filters set `hidden` on the registry's issues; resolving again clears them.

    Raises:
        RenderError: If the diagram cannot be built
    """
    settings = settings or Settings()
    if resolve_first:
        resolve(registry, settings)
    if hide_closed:
        registry.hide_closed()
    if hide_orphans:
        registry.hide_orphans()
        if not registry.has_non_orphans():
            logger.warning("No epic-linked issue left after hiding orphans, the graph is empty")
    elif not registry.visible():
        logger.warning("Every issue is hidden, the graph is empty")

    if output_format == "json":
        return json.dumps(render_json(registry, settings), indent=2) + "\n"
    return render_dot(registry, settings)
