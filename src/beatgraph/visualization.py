"""Dependency graph visualization.

Extracts a node/edge summary (levels, degree counts, edge type and
strength) from a DependencyGraph and renders it as DOT (Graphviz) or
Mermaid markup. Pure graph analysis; rendering is left to the caller's UI
or to Graphviz / Mermaid tooling.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from beatgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from beatgraph.graph.dependency_graph import DependencyGraph
    from beatgraph.models import DependencyStrength, DependencyType

log = get_logger(__name__)

_TYPE_COLORS: dict[str, str] = {
    "sequential": "#4682B4",  # steel blue
    "causal": "#B22222",  # firebrick
    "parallel": "#2E8B57",  # sea green
}
_ROOT_COLOR = "#90EE90"  # light green
_LEAF_COLOR = "#FFB6C1"  # light pink
_DEFAULT_COLOR = "#D3D3D3"  # light grey
_DOT_STRENGTH_STYLE = {"required": "solid", "suggested": "dashed", "optional": "dotted"}
_MERMAID_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


@dataclass
class VizNode:
    """A beat in the visualization."""

    id: str
    name: str
    level: int = 0
    dependencies: int = 0
    dependents: int = 0


@dataclass
class VizEdge:
    """A dependency in the visualization."""

    source: str
    target: str
    type: DependencyType
    strength: DependencyStrength


@dataclass
class DependencyView:
    """Complete visualization data extracted from the dependency graph."""

    nodes: list[VizNode]
    edges: list[VizEdge]

    @property
    def max_level(self) -> int:
        return max((n.level for n in self.nodes), default=0)


def build_dependency_view(graph: DependencyGraph) -> DependencyView:
    """Extract visualization data from the dependency graph.

    Beats that could not be ordered (because of a cycle) get level 0.

    Args:
        graph: Dependency graph.

    Returns:
        DependencyView with one node per beat and one edge per dependency.
    """
    topo = graph.topological_order()

    nodes = [
        VizNode(
            id=beat.id,
            name=beat.name,
            level=topo.levels.get(beat.id, 0),
            dependencies=len(beat.dependencies),
            dependents=len(beat.dependents),
        )
        for beat in graph.beats
    ]
    edges = [
        VizEdge(source=d.source_id, target=d.target_id, type=d.type, strength=d.strength)
        for d in graph.dependencies
    ]

    view = DependencyView(nodes=nodes, edges=edges)
    log.info("dependency_view_built", nodes=len(nodes), edges=len(edges), max_level=view.max_level)
    return view


def render_dot(view: DependencyView, *, rank_by_level: bool = True) -> str:
    """Render a DependencyView as DOT (Graphviz) markup.

    Edge colour follows the dependency type; line style follows strength
    (solid required, dashed suggested, dotted optional).

    Args:
        view: Visualization data.
        rank_by_level: If True, group beats of the same level on one rank.

    Returns:
        DOT format string.
    """
    lines = [
        "digraph beats {",
        "  rankdir=LR;",
        '  node [fontname="Helvetica" fontsize=10 shape=box style="rounded,filled"];',
        '  edge [fontname="Helvetica" fontsize=8];',
        "",
    ]

    for node in view.nodes:
        attrs = {
            "label": f'"{_dot_escape(node.name)}"',
            "fillcolor": f'"{_node_color(node)}"',
        }
        attr_str = " ".join(f"{k}={v}" for k, v in attrs.items())
        lines.append(f'  "{_dot_escape(node.id)}" [{attr_str}];')

    if rank_by_level and view.nodes:
        lines.append("")
        for level in range(view.max_level + 1):
            ids = " ".join(f'"{_dot_escape(n.id)}"' for n in view.nodes if n.level == level)
            if ids:
                lines.append(f"  {{ rank=same; {ids} }}")

    lines.append("")

    for edge in view.edges:
        edge_attrs = {
            "color": f'"{_TYPE_COLORS.get(edge.type, _DEFAULT_COLOR)}"',
            "style": f'"{_DOT_STRENGTH_STYLE[edge.strength]}"',
        }
        if edge.strength == "required":
            edge_attrs["penwidth"] = '"2"'
        edge_attr_str = " ".join(f"{k}={v}" for k, v in edge_attrs.items())
        lines.append(
            f'  "{_dot_escape(edge.source)}" -> "{_dot_escape(edge.target)}" [{edge_attr_str}];'
        )

    lines.append("}")
    return "\n".join(lines)


def render_mermaid(view: DependencyView) -> str:
    """Render a DependencyView as Mermaid markup.

    Required edges use a thick arrow, suggested a plain arrow, optional a
    dotted arrow; the edge label is the dependency type.

    Args:
        view: Visualization data.

    Returns:
        Mermaid format string.
    """
    lines = ["graph LR"]
    endpoints = [beat_id for e in view.edges for beat_id in (e.source, e.target)]
    ids = _mermaid_ids([n.id for n in view.nodes] + endpoints)

    for node in view.nodes:
        safe_id = ids[node.id]
        label = _mermaid_escape(node.name)
        if node.dependencies == 0:
            lines.append(f'  {safe_id}["{label}"]:::root')
        elif node.dependents == 0:
            lines.append(f'  {safe_id}["{label}"]:::leaf')
        else:
            lines.append(f'  {safe_id}["{label}"]')

    lines.append("")

    arrows = {"required": "==>", "suggested": "-->", "optional": "-.->"}
    for edge in view.edges:
        src = ids[edge.source]
        dst = ids[edge.target]
        lines.append(f"  {src} {arrows[edge.strength]}|{edge.type}| {dst}")

    lines.append("")
    lines.append(f"  classDef root fill:{_ROOT_COLOR},stroke:#333")
    lines.append(f"  classDef leaf fill:{_LEAF_COLOR},stroke:#333")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _node_color(node: VizNode) -> str:
    if node.dependencies == 0:
        return _ROOT_COLOR
    if node.dependents == 0:
        return _LEAF_COLOR
    return _DEFAULT_COLOR


def _dot_escape(text: str) -> str:
    """Escape special characters for DOT labels."""
    return text.replace('"', '\\"').replace("\n", "\\n")


def _mermaid_ids(beat_ids: list[str]) -> dict[str, str]:
    """Map beat IDs to distinct Mermaid-safe identifiers.

    Anything outside ``[A-Za-z0-9_]`` becomes ``_``. When two beat IDs
    collapse to the same identifier (``a-b`` and ``a_b``), later ones get a
    numeric suffix.
    """
    mapping: dict[str, str] = {}
    used: set[str] = set()
    for beat_id in beat_ids:
        if beat_id in mapping:
            continue
        base = _MERMAID_UNSAFE.sub("_", beat_id) or "beat"
        safe = base
        suffix = 2
        while safe in used:
            safe = f"{base}_{suffix}"
            suffix += 1
        used.add(safe)
        mapping[beat_id] = safe
    return mapping


def _mermaid_escape(text: str) -> str:
    """Escape special characters for Mermaid labels."""
    return text.replace('"', "&quot;").replace("\n", " ")
