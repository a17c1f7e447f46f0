"""Fetch issues from GitHub.

Only lists issues; the payloads are normalized by `normalizer.from_github_issue`.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
from collections.abc import Iterator
from typing import Any, Final

from github import Auth, Github, GithubException

from . import utils
from .exceptions import FetchError
from .models import Provider
from .normalizer import Batch

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "github/cli/token"  # noqa: S105

DEFAULT_BATCH_SIZE: Final[int] = 100


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitHub token from pass path, env var GITHUB_TOKEN, or default pass location."""
    token = utils.lookup_token(pass_path, os.environ.get(_TOKEN_ENV_VAR), _DEFAULT_TOKEN_PASS_PATH)
    if token is None:
        logger.warning("No GitHub token specified nor found, using anonymous access")
    return token


def get_client(token: str | None = None, base_url: str | None = None) -> Github:
    """Get a GitHub client; anonymous when no token is given."""
    kwargs: dict[str, Any] = {"per_page": DEFAULT_BATCH_SIZE}
    if token:
        kwargs["auth"] = Auth.Token(token)
    if base_url:
        kwargs["base_url"] = base_url
    return Github(**kwargs)


def fetch_issues(
    client: Github,
    repo_path: str,
    *,
    since: dt.datetime | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[Batch]:
    """Yield batches of raw issue payloads (pull requests included) for a repository.

    Args:
        client: GitHub client
        repo_path: "owner/repo"
        since: Only issues updated at or after this time
        batch_size: Records per yielded batch

    Raises:
        FetchError: If the GitHub API call fails
    """
    kwargs: dict[str, Any] = {"state": "all"}
    if since is not None:
        kwargs["since"] = since

    total = 0
    batch = Batch(Provider.GITHUB)
    try:
        repo = client.get_repo(repo_path)
        for issue in repo.get_issues(**kwargs):
            batch.records.append(issue.raw_data)
            if len(batch.records) >= batch_size:
                total += len(batch.records)
                logger.debug(f"github {repo_path}: {len(batch.records)} new issues, {total} total")
                yield batch
                batch = Batch(Provider.GITHUB)
    except GithubException as e:
        msg = f"Failed to fetch GitHub issues for {repo_path}: {e}"
        raise FetchError(msg) from e

    if batch.records:
        total += len(batch.records)
        yield batch

    remaining, limit = client.rate_limiting
    logger.info(f"Fetched {total} issues from github {repo_path}")
    logger.debug(f"GitHub API rate limiting: {remaining}/{limit} remaining")
