"""
Settings shared by the resolver and the renderer.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Final

_EPIC_LABEL_ENV_VAR: Final[str] = "ISSUE_DEPGRAPH_EPIC_LABEL"
_DIRECTIVE_PREFIX_ENV_VAR: Final[str] = "ISSUE_DEPGRAPH_DIRECTIVE_PREFIX"

DEFAULT_EPIC_LABEL: Final[str] = "t/epic"
DEFAULT_DIRECTIVE_PREFIX: Final[str] = "depviz"


@dataclass(frozen=True)
class Settings:
    """Resolution and rendering settings.

    Attributes:
        epic_label: Label marking an issue as an epic
        structural_labels: Labels that are never drawn as swatches in node labels
        directive_prefix: Prefix of inline metadata directives (e.g., "depviz.base_weight: 2")
    """

    epic_label: str = DEFAULT_EPIC_LABEL
    structural_labels: tuple[str, ...] = field(default=("t/epic", "t/step"))
    directive_prefix: str = DEFAULT_DIRECTIVE_PREFIX

    @classmethod
    def from_env(cls, *, epic_label: str | None = None, directive_prefix: str | None = None) -> Settings:
        """Build settings from the environment; explicit arguments win."""
        settings = cls(
            epic_label=epic_label or os.environ.get(_EPIC_LABEL_ENV_VAR) or DEFAULT_EPIC_LABEL,
            directive_prefix=directive_prefix
            or os.environ.get(_DIRECTIVE_PREFIX_ENV_VAR)
            or DEFAULT_DIRECTIVE_PREFIX,
        )
        if settings.epic_label not in settings.structural_labels:
            settings = replace(settings, structural_labels=(*settings.structural_labels, settings.epic_label))
        return settings
