"""
Command-line interface for the issue dependency graph tool.
"""

from __future__ import annotations

import argparse
import datetime as dt
import functools
import logging
import sys
from pathlib import Path

from . import github_utils as ghu
from . import gitlab_utils as glu
from . import store
from .config import Settings
from .exceptions import DepgraphError
from .registry import IssueRegistry
from .resolver import resolve
from .service import fetch_all, fetch_target, parse_target, render
from .utils import PassError, setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Build dependency graphs from GitHub and GitLab issues")
    _ = parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    _ = parser.add_argument("--log-file", help="Also write logs to this file")
    _ = parser.add_argument("--epic-label", help="Label marking epics (default: $ISSUE_DEPGRAPH_EPIC_LABEL or t/epic)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch = subparsers.add_parser("fetch", help="Fetch issues, resolve them and save the collection")
    _ = fetch.add_argument(
        "targets", nargs="+", help="Repositories: 'github:owner/repo', 'gitlab:group/project' or URLs"
    )
    _ = fetch.add_argument("--store", "-s", required=True, type=Path, help="Collection file to update")
    _ = fetch.add_argument("--since", type=dt.datetime.fromisoformat, help="Only issues updated since (ISO 8601)")
    _ = fetch.add_argument("--github-pass-token", help="Path for GitHub token in pass utility")
    _ = fetch.add_argument("--gitlab-pass-token", help="Path for GitLab token in pass utility")

    graph = subparsers.add_parser("graph", help="Render a stored collection")
    _ = graph.add_argument("--store", "-s", required=True, type=Path, help="Collection file to read")
    _ = graph.add_argument("--format", "-f", choices=["dot", "json"], default="dot", help="Output format")
    _ = graph.add_argument("--output", "-o", type=Path, help="Output file (default: stdout)")
    _ = graph.add_argument("--hide-closed", action="store_true", help="Leave closed issues out")
    _ = graph.add_argument(
        "--hide-orphans", action="store_true", help="Leave out orphans and issues not linked with an epic"
    )
    _ = graph.add_argument("--resolve", action="store_true", help="Resolve the collection again before rendering")

    return parser.parse_args(argv)


def _run_fetch(args: argparse.Namespace, settings: Settings) -> int:
    targets = [parse_target(value) for value in args.targets]
    registry = store.load(args.store) if args.store.exists() else IssueRegistry()

    fetcher = functools.partial(
        fetch_target,
        github_token=ghu.get_token(args.github_pass_token),
        gitlab_token=glu.get_token(args.gitlab_pass_token),
        since=args.since,
    )
    errors = fetch_all(registry, targets, fetcher)
    report = resolve(registry, settings)
    store.dump(registry, args.store)

    for url, issue_errors in report.errors.items():
        for error in issue_errors:
            logger.info(f"{url}: {error}")
    return 1 if errors else 0


def _run_graph(args: argparse.Namespace, settings: Settings) -> int:
    registry = store.load(args.store)
    output = render(
        registry,
        settings=settings,
        output_format=args.format,
        hide_closed=args.hide_closed,
        hide_orphans=args.hide_orphans,
        resolve_first=args.resolve,
    )
    if args.output:
        args.output.write_text(output, encoding="utf-8")
    else:
        sys.stdout.write(output)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    verbose: bool = getattr(args, "verbose", False)
    setup_logging(verbose=verbose, log_file=args.log_file)
    settings = Settings.from_env(epic_label=args.epic_label)

    try:
        if args.command == "fetch":
            sys.exit(_run_fetch(args, settings))
        sys.exit(_run_graph(args, settings))
    except (DepgraphError, PassError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)
