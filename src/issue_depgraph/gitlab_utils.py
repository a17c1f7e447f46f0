"""Fetch issues from GitLab.

Only lists issues; the payloads are normalized by `normalizer.from_gitlab_issue`.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
from collections.abc import Iterator
from typing import Any, Final

from gitlab import Gitlab
from gitlab.exceptions import GitlabError

from . import utils
from .exceptions import FetchError
from .models import Provider
from .normalizer import Batch

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITLAB_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "gitlab/cli/ro_token"  # noqa: S105

DEFAULT_URL: Final[str] = "https://gitlab.com"
DEFAULT_BATCH_SIZE: Final[int] = 100


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitLab token from pass path, env var GITLAB_TOKEN, or default pass location."""
    token = utils.lookup_token(pass_path, os.environ.get(_TOKEN_ENV_VAR), _DEFAULT_TOKEN_PASS_PATH)
    if token is None:
        logger.warning("No GitLab token specified nor found")
    return token


def get_client(token: str | None = None, url: str = DEFAULT_URL) -> Gitlab:
    """Get a GitLab client using the token."""
    return Gitlab(url, private_token=token)


def fetch_issues(
    client: Gitlab,
    project_path: str,
    *,
    since: dt.datetime | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[Batch]:
    """Yield batches of raw issue payloads for a project.

    Args:
        client: GitLab client
        project_path: "group/project" (subgroups allowed)
        since: Only issues updated at or after this time
        batch_size: Records per yielded batch

    Raises:
        FetchError: If the GitLab API call fails
    """
    kwargs: dict[str, Any] = {"iterator": True, "per_page": batch_size}
    if since is not None:
        kwargs["updated_after"] = since.isoformat()

    total = 0
    batch = Batch(Provider.GITLAB)
    try:
        project = client.projects.get(project_path)
        for issue in project.issues.list(**kwargs):
            batch.records.append(issue.attributes)
            if len(batch.records) >= batch_size:
                total += len(batch.records)
                logger.debug(f"gitlab {project_path}: {len(batch.records)} new issues, {total} total")
                yield batch
                batch = Batch(Provider.GITLAB)
    except GitlabError as e:
        msg = f"Failed to fetch GitLab issues for {project_path}: {e}"
        raise FetchError(msg) from e

    if batch.records:
        total += len(batch.records)
        yield batch
    logger.info(f"Fetched {total} issues from gitlab {project_path}")
