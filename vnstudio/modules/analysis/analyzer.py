from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from vnstudio.config import settings
from vnstudio.modules.script.ast import NodeKind, Program, Scene, Statement, child_sequences, link_target

if TYPE_CHECKING:
    from vnstudio.modules.analysis.graph import StoryGraph


class SceneKind(str, Enum):
    NORMAL = "normal"
    DECISION = "decision"
    ENDING = "ending"


@dataclass(frozen=True, slots=True)
class BrokenLink:
    source: str
    target: str


@dataclass(slots=True)
class SceneMeta:
    scene_id: str
    kind: SceneKind
    word_count: int
    choice_count: int
    out_links: list[str]
    has_issues: bool
    cluster: str

    @property
    def is_ending(self) -> bool:
        return not self.out_links


@dataclass(slots=True)
class NarrativeReport:
    total_scenes: int = 0
    total_words: int = 0
    total_choices: int = 0
    endings: int = 0
    broken_links: list[BrokenLink] = field(default_factory=list)
    complexity_score: int = 0


def complexity_score(total_words: int, total_choices: int, total_scenes: int) -> int:
    """``round(words / 100 + choices * 2 + scenes)`` with halves rounded up."""
    raw = total_words / 100 + total_choices * 2 + total_scenes
    return int(math.floor(raw + 0.5))


def _cluster_of(scene_id: str, separator: str, default_cluster: str) -> str:
    if separator in scene_id:
        return scene_id.split(separator, 1)[0]
    return default_cluster


def _collect(statements: tuple[Statement, ...], counts: dict[str, int], out_links: list[str]) -> None:
    for node in statements:
        if node.kind == NodeKind.DIALOGUE:
            counts["words"] += len(node.text.split())
        elif node.kind == NodeKind.CHOICE:
            counts["choices"] += 1
        target = link_target(node)
        if target is not None:
            out_links.append(target)
        for _label, nested in child_sequences(node):
            _collect(nested, counts, out_links)


class StoryAnalyzer:
    """Read-only structural metrics over a parsed program.

    Every call recomputes from the AST; nothing is cached between calls and
    the program is never modified.
    """

    def __init__(
        self,
        program: Program,
        *,
        cluster_separator: str | None = None,
        default_cluster: str | None = None,
    ) -> None:
        self.program = program
        self.cluster_separator = cluster_separator or settings.cluster_separator
        self.default_cluster = default_cluster or settings.default_cluster
        self.scene_ids = {scene.id for scene in program.scenes}

    def _meta_for(self, scene: Scene) -> SceneMeta:
        counts = {"words": 0, "choices": 0}
        out_links: list[str] = []
        _collect(scene.events, counts, out_links)
        has_issues = any(target not in self.scene_ids for target in out_links)
        if counts["choices"]:
            kind = SceneKind.DECISION
        elif not out_links:
            kind = SceneKind.ENDING
        else:
            kind = SceneKind.NORMAL
        return SceneMeta(
            scene_id=scene.id,
            kind=kind,
            word_count=counts["words"],
            choice_count=counts["choices"],
            out_links=out_links,
            has_issues=has_issues,
            cluster=_cluster_of(scene.id, self.cluster_separator, self.default_cluster),
        )

    def scene_meta(self) -> list[SceneMeta]:
        return [self._meta_for(scene) for scene in self.program.scenes]

    def clusters(self) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {}
        for scene in self.program.scenes:
            prefix = _cluster_of(scene.id, self.cluster_separator, self.default_cluster)
            out.setdefault(prefix, []).append(scene.id)
        return out

    def analyze(self) -> NarrativeReport:
        report = NarrativeReport(total_scenes=len(self.program.scenes))
        for meta in self.scene_meta():
            report.total_words += meta.word_count
            report.total_choices += meta.choice_count
            if meta.is_ending:
                report.endings += 1
            for target in meta.out_links:
                if target not in self.scene_ids:
                    report.broken_links.append(BrokenLink(source=meta.scene_id, target=target))
        report.complexity_score = complexity_score(
            report.total_words,
            report.total_choices,
            report.total_scenes,
        )
        return report

    def generate_mermaid(self) -> StoryGraph:
        from vnstudio.modules.analysis.graph import build_story_graph

        return build_story_graph(self)
