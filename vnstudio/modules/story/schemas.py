from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ScriptSourceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: str = Field(max_length=1_000_000)


class Diagnostic(BaseModel):
    code: str
    path: str | None = None
    message: str
    suggestion: str | None = None


class ValidateScriptResponse(BaseModel):
    valid: bool
    game: str | None = None
    errors: list[Diagnostic] = Field(default_factory=list)
    warnings: list[Diagnostic] = Field(default_factory=list)


class BrokenLinkOut(BaseModel):
    source: str
    target: str


class NarrativeReportOut(BaseModel):
    total_scenes: int
    total_words: int
    total_choices: int
    endings: int
    broken_links: list[BrokenLinkOut] = Field(default_factory=list)
    complexity_score: int


class SceneMetaOut(BaseModel):
    scene_id: str
    kind: str
    word_count: int
    choice_count: int
    out_links: list[str] = Field(default_factory=list)
    has_issues: bool
    cluster: str


class AnalyzeScriptResponse(BaseModel):
    game: str
    report: NarrativeReportOut
    scenes: list[SceneMetaOut] = Field(default_factory=list)
    clusters: dict[str, list[str]] = Field(default_factory=dict)


class GraphScriptResponse(BaseModel):
    game: str
    code: str
    stats: NarrativeReportOut
