"""Mine issue bodies for relation and metadata directives.

Recognized phrases (case-insensitive), each followed by a reference:

- depends on: "requires", "require", "blocked by", "block by", "depends on",
  "depend on", "parent of"
- blocks: "blocks", "block", "addresses", "address", "part of", "child of",
  "fixes", "fix"
- duplicate of: "duplicate of", "dup of", "duplicates", "duplicate", "dup"

A reference is an absolute issue URL, "owner/repo#N" or "#N". Short forms
are resolved against the repository of the issue being scanned.

Metadata directives use the configured prefix: "depviz.weight_multiplier: 3",
"depviz.base_weight=2" and the bare "depviz.hide_from_roadmap" marker.
"""

from __future__ import annotations

import enum
import functools
import logging
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from .config import DEFAULT_DIRECTIVE_PREFIX

logger: logging.Logger = logging.getLogger(__name__)

_REFERENCE = r"(?P<ref>[a-z0-9/_.-]*#[0-9]+|[a-z][a-z0-9+.-]*://[a-z0-9:/_.%-]+)"

# Longer phrases first so "duplicate of #3" never reads "of" as the reference
_DEPENDS_ON_PHRASES = ("requires", "require", "blocked by", "block by", "depends on", "depend on", "parent of")
_BLOCKS_PHRASES = ("blocks", "block", "addresses", "address", "part of", "child of", "fixes", "fix")
_DUPLICATE_PHRASES = ("duplicate of", "dup of", "duplicates", "duplicate", "dup")


class DirectiveKind(enum.IntEnum):
    """Directive kinds, in the order the resolver applies them."""

    DUPLICATE_OF = 1
    WEIGHT_MULTIPLIER = 2
    HIDE = 3
    BASE_WEIGHT = 4
    DEPENDS_ON = 5
    BLOCKS = 6


RELATION_KINDS = frozenset({DirectiveKind.DEPENDS_ON, DirectiveKind.BLOCKS})


@dataclass(frozen=True)
class Directive:
    """A directive found in an issue body.

    For relation and duplicate directives `value` is the resolved issue URL;
    for weight directives it is the raw value text; for the hide marker it is
    empty.
    """

    kind: DirectiveKind
    value: str


def _phrase_pattern(phrases: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(phrase) for phrase in phrases)
    return re.compile(rf"\b(?:{alternatives}):?[ \t]+{_REFERENCE}", re.IGNORECASE)


_DEPENDS_ON_RE = _phrase_pattern(_DEPENDS_ON_PHRASES)
_BLOCKS_RE = _phrase_pattern(_BLOCKS_PHRASES)
_DUPLICATE_RE = _phrase_pattern(_DUPLICATE_PHRASES)


@dataclass(frozen=True)
class _MetadataPatterns:
    weight_multiplier: re.Pattern[str]
    base_weight: re.Pattern[str]
    hide: re.Pattern[str]


@functools.cache
def _metadata_patterns(prefix: str) -> _MetadataPatterns:
    escaped = re.escape(prefix)
    return _MetadataPatterns(
        weight_multiplier=re.compile(rf"\b{escaped}\.weight_multiplier[:= ]+(?P<value>[0-9]+|\S+)", re.IGNORECASE),
        base_weight=re.compile(rf"\b{escaped}\.base_weight[:= ]+(?P<value>[0-9]+|\S+)", re.IGNORECASE),
        hide=re.compile(rf"\b{escaped}\.hide_from_roadmap\b", re.IGNORECASE),
    )


def resolve_reference(base_url: str, reference: str) -> str:
    """Turn a reference token into an absolute issue URL.

    Args:
        base_url: URL of the issue the reference was written in
        reference: "https://host/owner/repo/issues/N", "owner/repo#N" or "#N"

    Returns:
        Absolute issue URL. GitLab-style paths ("/-/issues/N") are kept when
        the base issue uses them.
    """
    if "://" in reference:
        return reference.rstrip(".")

    parsed = urlparse(base_url)
    base_path = "/".join(parsed.path.split("/")[:-2])
    repo_path, _, number = reference.partition("#")
    repo_path = repo_path.strip("/")
    if repo_path:
        path = f"/{repo_path}/-" if base_path.endswith("/-") else f"/{repo_path}"
    else:
        path = base_path
    return f"{parsed.scheme}://{parsed.netloc}{path}/issues/{number}"


def _last(pattern: re.Pattern[str], body: str, group: str) -> str | None:
    value: str | None = None
    for match in pattern.finditer(body):
        value = match.group(group)
    return value


def extract_directives(issue_url: str, body: str, prefix: str = DEFAULT_DIRECTIVE_PREFIX) -> list[Directive]:
    """Extract directives from an issue body.

    Every match is kept for depends-on and blocks directives; only the last
    match counts for duplicate-of and both weight directives.

    Args:
        issue_url: URL of the issue the body belongs to (base for short references)
        body: Issue body text
        prefix: Prefix of the metadata directives

    Returns:
        Directives sorted by kind, in body order within a kind.
    """
    if not body:
        return []

    patterns = _metadata_patterns(prefix)
    directives: list[Directive] = []

    duplicate = _last(_DUPLICATE_RE, body, "ref")
    if duplicate is not None:
        directives.append(Directive(DirectiveKind.DUPLICATE_OF, resolve_reference(issue_url, duplicate)))

    multiplier = _last(patterns.weight_multiplier, body, "value")
    if multiplier is not None:
        directives.append(Directive(DirectiveKind.WEIGHT_MULTIPLIER, multiplier))

    if patterns.hide.search(body):
        directives.append(Directive(DirectiveKind.HIDE, ""))

    base_weight = _last(patterns.base_weight, body, "value")
    if base_weight is not None:
        directives.append(Directive(DirectiveKind.BASE_WEIGHT, base_weight))

    for kind, pattern in ((DirectiveKind.DEPENDS_ON, _DEPENDS_ON_RE), (DirectiveKind.BLOCKS, _BLOCKS_RE)):
        for match in pattern.finditer(body):
            directives.append(Directive(kind, resolve_reference(issue_url, match.group("ref"))))

    logger.debug(f"{issue_url}: {len(directives)} directives")
    return directives


def parse_int(value: str) -> int | None:
    """Parse a weight directive value; None unless it is a plain ASCII number."""
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)
