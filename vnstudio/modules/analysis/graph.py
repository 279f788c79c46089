from __future__ import annotations

from dataclasses import dataclass

from vnstudio.config import settings
from vnstudio.modules.analysis.analyzer import NarrativeReport, SceneKind, StoryAnalyzer
from vnstudio.modules.script.ast import NodeKind, Statement

START_NODE_ID = "START"
MAIN_NODE_ID = "main"
CALL_LABEL = "call"
SCENE_NODE_PREFIX = "s_"

CLASS_DEFS = (
    "classDef normal fill:#1a1a1a,stroke:#00ffff,stroke-width:2px,color:#fff;",
    "classDef decision fill:#2a0a2a,stroke:#ff00ff,stroke-width:2px,color:#fff;",
    "classDef ending fill:#003300,stroke:#00ff41,stroke-width:4px,color:#fff;",
    "classDef error fill:#550000,stroke:#ff0000,stroke-width:4px,color:#fff,stroke-dasharray: 5 5;",
    "classDef startNode fill:#00ff41,stroke:#000,stroke-width:2px,color:#000;",
)

_SHAPES = {
    SceneKind.NORMAL: ("[", "]"),
    SceneKind.DECISION: ("{", "}"),
    SceneKind.ENDING: ("((", "))"),
}


@dataclass(slots=True)
class StoryGraph:
    code: str
    stats: NarrativeReport


def scene_node_id(scene_id: str) -> str:
    """Mermaid node id for a scene; the scene id itself is only used as the label."""
    return f"{SCENE_NODE_PREFIX}{scene_id}"


def _format_flag(flag_id: str, value: bool) -> str:
    return f"${flag_id}={'true' if value else 'false'}"


class _EdgeWriter:
    def __init__(self, known_scene_ids: set[str], *, label_max_chars: int) -> None:
        self.known_scene_ids = known_scene_ids
        self.label_max_chars = label_max_chars
        self.lines: list[str] = []
        self._seen_edges: set[str] = set()
        self._missing_nodes: set[str] = set()

    def _edge_text(self, label: str | None, changes: list[str]) -> str:
        text = ""
        if label:
            clean = label.replace('"', "'")
            text = clean[: self.label_max_chars]
            if len(clean) > self.label_max_chars:
                text += "..."
        if changes:
            if text:
                text += "<br/>"
            text += f"[{', '.join(changes)}]"
        return text

    def add(self, source: str, target: str, label: str | None, changes: list[str]) -> None:
        text = self._edge_text(label, changes)
        arrow = f'-- "{text}" -->' if text else "-->"
        edge = f"    {source} {arrow} {scene_node_id(target)}"
        if edge in self._seen_edges:
            return
        self._seen_edges.add(edge)
        self.lines.append(edge)
        if target not in self.known_scene_ids and target not in self._missing_nodes:
            self._missing_nodes.add(target)
            self.lines.append(f"    {scene_node_id(target)}[MISSING: {target}]:::error;")

    def scan(
        self,
        source: str,
        statements: tuple[Statement, ...],
        *,
        label: str | None = None,
        changes: list[str] | None = None,
    ) -> None:
        pending = list(changes or [])
        for node in statements:
            kind = node.kind
            if kind == NodeKind.SET_FLAG:
                pending.append(_format_flag(node.flag_id, node.value))
            elif kind == NodeKind.GOTO:
                self.add(source, node.target_scene_id, label, pending)
                pending = []
            elif kind == NodeKind.SCENE_CALL:
                self.add(source, node.scene_id, label or CALL_LABEL, pending)
            elif kind == NodeKind.CHOICE:
                for option in node.options:
                    self.scan(source, option.events, label=option.text, changes=pending)
            elif kind == NodeKind.IF_EVENT:
                self.scan(source, node.true_events, label=label, changes=pending)
                self.scan(source, node.false_events, label=label, changes=pending)
            elif kind == NodeKind.IF_STATEMENT:
                self.scan(source, node.true_branch, label=label, changes=pending)
                self.scan(source, node.false_branch, label=label, changes=pending)


def build_story_graph(analyzer: StoryAnalyzer, *, label_max_chars: int | None = None) -> StoryGraph:
    """Render the program as a top-down Mermaid flowchart.

    Scene nodes are grouped into one subgraph per cluster (the default
    cluster stays ungrouped) and styled by their structural kind. Edges carry
    the choice text that leads to them plus any flag assignments made on the
    way.
    """
    report = analyzer.analyze()
    metas = {meta.scene_id: meta for meta in analyzer.scene_meta()}

    lines = ["graph TD;"]
    lines.extend(f"    {class_def}" for class_def in CLASS_DEFS)
    lines.append(f"    {START_NODE_ID}((Start)):::startNode --> {MAIN_NODE_ID};")

    for cluster, scene_ids in analyzer.clusters().items():
        grouped = cluster != analyzer.default_cluster
        if grouped:
            lines.append(f"    subgraph {cluster.upper()}")
        for scene_id in scene_ids:
            meta = metas[scene_id]
            if meta.has_issues:
                shape_open, shape_close = _SHAPES[SceneKind.NORMAL]
                style = "error"
            else:
                shape_open, shape_close = _SHAPES[meta.kind]
                style = meta.kind.value
            lines.append(f'    {scene_node_id(scene_id)}{shape_open}"{scene_id}"{shape_close}:::{style};')
        if grouped:
            lines.append("    end")

    writer = _EdgeWriter(
        analyzer.scene_ids,
        label_max_chars=label_max_chars or settings.graph_label_max_chars,
    )
    program = analyzer.program
    if program.main is not None:
        writer.scan(MAIN_NODE_ID, program.main.statements)
    for scene in program.scenes:
        writer.scan(scene_node_id(scene.id), scene.events)
    lines.extend(writer.lines)

    return StoryGraph(code="\n".join(lines) + "\n", stats=report)
