"""Render a resolved registry as a Graphviz diagram or a JSON node/edge list.

Node and edge attribute values are relied upon by downstream viewers:

    node:  closed -> color "#cccccc33"; ready -> "pink";
           epic -> "orange" + style "rounded,filled,bold";
           orphan or not epic-linked -> "gray"; otherwise "lightblue"
           shape "record", "oval" for epics
    edge:  "lightblue", dir "none"; "grey" + "dotted" when an end is closed;
           "pink" when the dependency is ready; "orange" + "dashed" from an epic
"""

from __future__ import annotations

import html
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Any

from .config import Settings
from .exceptions import CycleError, RenderError
from .models import Issue
from .registry import IssueRegistry
from .resolver import weight

logger: logging.Logger = logging.getLogger(__name__)

TITLE_WRAP_WIDTH = 20


@dataclass
class DotGraph:
    """Minimal Graphviz digraph builder."""

    name: str = "G"
    nodes: dict[str, dict[str, str]] = field(default_factory=dict)
    edges: list[tuple[str, str, dict[str, str]]] = field(default_factory=list)

    def add_node(self, node_id: str, attrs: dict[str, str]) -> None:
        if node_id in self.nodes:
            msg = f"Node {node_id!r} already exists"
            raise RenderError(msg)
        self.nodes[node_id] = attrs

    def add_edge(self, source: str, target: str, attrs: dict[str, str]) -> None:
        for end in (source, target):
            if end not in self.nodes:
                msg = f"Edge {source!r} -> {target!r} references unknown node {end!r}"
                raise RenderError(msg)
        self.edges.append((source, target, attrs))

    def to_dot(self) -> str:
        lines = [f"digraph {_quote(self.name)} {{"]
        for node_id, attrs in self.nodes.items():
            lines.append(f"  {_quote(node_id)} [{_format_attrs(attrs)}];")
        for source, target, attrs in self.edges:
            lines.append(f"  {_quote(source)} -> {_quote(target)} [{_format_attrs(attrs)}];")
        lines.append("}")
        return "\n".join(lines) + "\n"


def _quote(value: str) -> str:
    # HTML-like labels are delimited by angle brackets instead of quotes
    if value.startswith("<") and value.endswith(">"):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _format_attrs(attrs: dict[str, str]) -> str:
    return " ".join(f"{key}={_quote(value)}" for key, value in attrs.items())


def node_label(issue: Issue, settings: Settings) -> str:
    """HTML-like node label: wrapped title, label swatches, assignees, errors."""
    title = f"{issue.node_name}: {issue.title}".replace("|", "-")
    title = html.escape(textwrap.fill(title, TITLE_WRAP_WIDTH)).replace("\n", "<br/>")
    rows = [f"<tr><td>{title}</td></tr>"]

    swatches = [
        f'<td bgcolor="#{html.escape(label.color, quote=True)}">{html.escape(label.name)}</td>'
        for label in issue.labels
        if label.name not in settings.structural_labels
    ]
    if swatches:
        rows.append("<tr><td><table><tr>" + "".join(swatches) + "</tr></table></td></tr>")

    rows.extend(
        f'<tr><td><font color="purple"><i>@{html.escape(assignee.username)}</i></font></td></tr>'
        for assignee in issue.assignees
    )
    rows.extend(f'<tr><td bgcolor="red">ERR: {html.escape(error)}</td></tr>' for error in issue.errors)
    return "<<table>" + "".join(rows) + "</table>>"


def node_attributes(issue: Issue, settings: Settings) -> dict[str, str]:
    is_epic = issue.is_epic(settings.epic_label)
    attrs = {
        "label": node_label(issue, settings),
        "shape": "oval" if is_epic else "record",
        "style": "rounded,filled",
        "color": "lightblue",
        "href": issue.url,
    }
    if issue.is_closed:
        attrs["color"] = "#cccccc33"
    elif issue.is_ready:
        attrs["color"] = "pink"
    elif is_epic:
        attrs["color"] = "orange"
        attrs["style"] = "rounded,filled,bold"
    elif issue.is_orphan or not issue.linked_with_epic:
        attrs["color"] = "gray"
    return attrs


def edge_attributes(issue: Issue, dependency: Issue, settings: Settings) -> dict[str, str]:
    attrs = {"color": "lightblue", "dir": "none"}
    if issue.is_closed or dependency.is_closed:
        attrs["color"] = "grey"
        attrs["style"] = "dotted"
    if dependency.is_ready:
        attrs["color"] = "pink"
    if issue.is_epic(settings.epic_label):
        attrs["color"] = "orange"
        attrs["style"] = "dashed"
    return attrs


def _visible_dependencies(registry: IssueRegistry, issue: Issue) -> list[Issue]:
    return [dependency for dependency in registry.resolve_many(issue.depends_on) if not dependency.hidden]


def build_graph(registry: IssueRegistry, settings: Settings | None = None) -> DotGraph:
    """Build the diagram: one node per visible issue, one edge per visible dependency.

    Raises:
        RenderError: If the diagram is structurally invalid
    """
    settings = settings or Settings()
    graph = DotGraph()
    visible = registry.visible()
    for issue in visible:
        graph.add_node(issue.url, node_attributes(issue, settings))
    for issue in visible:
        for dependency in _visible_dependencies(registry, issue):
            graph.add_edge(issue.url, dependency.url, edge_attributes(issue, dependency, settings))
    logger.debug(f"Built graph with {len(graph.nodes)} nodes and {len(graph.edges)} edges")
    return graph


def render_dot(registry: IssueRegistry, settings: Settings | None = None) -> str:
    return build_graph(registry, settings).to_dot()


def _safe_weight(registry: IssueRegistry, issue: Issue) -> int | None:
    try:
        return weight(registry, issue)
    except CycleError as e:
        logger.debug(f"No weight for {issue.url}: {e}")
        return None


def render_json(registry: IssueRegistry, settings: Settings | None = None) -> dict[str, Any]:
    """Node/edge projection of the visible graph, with status flags and weights."""
    settings = settings or Settings()
    graph = build_graph(registry, settings)
    nodes: list[dict[str, Any]] = []
    for url, attrs in graph.nodes.items():
        issue = registry[url]
        nodes.append(
            {
                "id": url,
                "name": issue.node_name,
                "number": issue.number,
                "title": issue.title,
                "state": issue.state,
                "provider": issue.provider.value,
                "labels": [{"name": label.name, "color": label.color} for label in issue.labels],
                "assignees": [assignee.username for assignee in issue.assignees],
                "errors": list(issue.errors),
                "closed": issue.is_closed,
                "ready": issue.is_ready,
                "epic": issue.is_epic(settings.epic_label),
                "orphan": issue.is_orphan,
                "linked_with_epic": issue.linked_with_epic,
                "pull_request": issue.is_pull_request,
                "weight": _safe_weight(registry, issue),
                "attrs": {key: value for key, value in attrs.items() if key != "label"},
            }
        )
    edges = [{"source": source, "target": target, "attrs": attrs} for source, target, attrs in graph.edges]
    return {"nodes": nodes, "edges": edges}
