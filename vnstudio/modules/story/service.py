from __future__ import annotations

import logging
from dataclasses import asdict

from vnstudio.modules.analysis.analyzer import StoryAnalyzer
from vnstudio.modules.script.ast import Program
from vnstudio.modules.script.diagnostics import parse_error_diag
from vnstudio.modules.script.errors import ScriptParseError
from vnstudio.modules.script.parser import parse_script
from vnstudio.modules.script.validation import ensure_valid, validate_program

logger = logging.getLogger(__name__)


def validate_source(source: str) -> dict:
    try:
        program = parse_script(source)
    except ScriptParseError as exc:
        return {"valid": False, "game": None, "errors": [parse_error_diag(exc)], "warnings": []}
    report = validate_program(program, require_main=True)
    logger.debug(
        "validated '%s': %d errors, %d warnings",
        program.name,
        len(report.errors),
        len(report.warnings),
    )
    return {
        "valid": report.valid,
        "game": program.name,
        "errors": report.errors,
        "warnings": report.warnings,
    }


def load_program_for_analysis(source: str) -> Program:
    """Parse and check structure only. Dangling links are left to the analyzer."""
    program = parse_script(source)
    ensure_valid(program, check_references=False)
    return program


def analyze_source(source: str) -> dict:
    program = load_program_for_analysis(source)
    analyzer = StoryAnalyzer(program)
    report = analyzer.analyze()
    scenes = []
    for meta in analyzer.scene_meta():
        item = asdict(meta)
        item["kind"] = meta.kind.value
        scenes.append(item)
    return {
        "game": program.name,
        "report": asdict(report),
        "scenes": scenes,
        "clusters": analyzer.clusters(),
    }


def graph_source(source: str) -> dict:
    program = load_program_for_analysis(source)
    graph = StoryAnalyzer(program).generate_mermaid()
    return {"game": program.name, "code": graph.code, "stats": asdict(graph.stats)}
