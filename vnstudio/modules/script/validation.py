from __future__ import annotations

from dataclasses import dataclass, field

from vnstudio.modules.script.ast import NodeKind, Program, Statement, child_sequences, link_target
from vnstudio.modules.script.diagnostics import diag
from vnstudio.modules.script.errors import ScriptValidationError


@dataclass(slots=True)
class ValidationReport:
    errors: list[dict[str, str | None]] = field(default_factory=list)
    warnings: list[dict[str, str | None]] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def _check_duplicates(program: Program, errors: list[dict[str, str | None]]) -> None:
    seen_characters: set[str] = set()
    for decl in program.characters:
        if decl.id in seen_characters:
            errors.append(
                diag(
                    code="DUPLICATE_CHARACTER_ID",
                    path=f"character:{decl.id}",
                    message=f"Duplicate character declaration: {decl.id}",
                    suggestion="Rename or remove one of the character declarations.",
                )
            )
        seen_characters.add(decl.id)

    seen_flags: set[str] = set()
    for decl in program.flags:
        if decl.id in seen_flags:
            errors.append(
                diag(
                    code="DUPLICATE_FLAG_ID",
                    path=f"flag:{decl.id}",
                    message=f"Duplicate flag declaration: {decl.id}",
                    suggestion="Rename or remove one of the flag declarations.",
                )
            )
        seen_flags.add(decl.id)

    seen_scenes: set[str] = set()
    for scene in program.scenes:
        if scene.id in seen_scenes:
            errors.append(
                diag(
                    code="DUPLICATE_SCENE_ID",
                    path=f"scene:{scene.id}",
                    message=f"Duplicate scene declaration: {scene.id}",
                    suggestion="Give every scene a unique id.",
                )
            )
        seen_scenes.add(scene.id)


def _walk(statements: tuple[Statement, ...], scope: str):
    for index, node in enumerate(statements):
        path = f"{scope}[{index}]"
        yield path, node
        for branch_index, (_label, nested) in enumerate(child_sequences(node)):
            yield from _walk(nested, f"{path}.branch[{branch_index}]")


def _check_references(
    program: Program,
    errors: list[dict[str, str | None]],
    warnings: list[dict[str, str | None]],
) -> None:
    character_ids = {decl.id for decl in program.characters}
    flag_ids = {decl.id for decl in program.flags}
    scene_ids = {scene.id for scene in program.scenes}

    blocks: list[tuple[str, tuple[Statement, ...]]] = [
        (f"scene:{scene.id}.events", scene.events) for scene in program.scenes
    ]
    if program.main is not None:
        blocks.append(("main.statements", program.main.statements))

    for scope, statements in blocks:
        for path, node in _walk(statements, scope):
            if node.kind in {NodeKind.SHOW_CHARACTER, NodeKind.DIALOGUE} and node.character_id not in character_ids:
                warnings.append(
                    diag(
                        code="UNDECLARED_CHARACTER",
                        path=path,
                        message=f"Character '{node.character_id}' is not declared.",
                        suggestion="Declare the character so it gets a display name and sprite.",
                    )
                )
            if node.kind in {NodeKind.SET_FLAG, NodeKind.IF_EVENT, NodeKind.IF_STATEMENT} and node.flag_id not in flag_ids:
                errors.append(
                    diag(
                        code="UNDECLARED_FLAG",
                        path=path,
                        message=f"Flag '{node.flag_id}' is not declared.",
                        suggestion=f"Add 'flag {node.flag_id}: false' to the declarations.",
                    )
                )
            target = link_target(node)
            if target is not None and target not in scene_ids:
                errors.append(
                    diag(
                        code="UNKNOWN_SCENE",
                        path=path,
                        message=f"Scene '{target}' does not exist.",
                        suggestion="Fix the goto/scene call or add the missing scene.",
                    )
                )


def validate_program(
    program: Program,
    *,
    require_main: bool = False,
    check_references: bool = True,
) -> ValidationReport:
    report = ValidationReport()
    _check_duplicates(program, report.errors)
    if require_main and program.main is None:
        report.errors.append(
            diag(
                code="MISSING_MAIN_BLOCK",
                path="main",
                message="Game requires a 'main' block.",
                suggestion="Add a main { ... } block that calls the first scene.",
            )
        )
    if check_references:
        _check_references(program, report.errors, report.warnings)
    return report


def ensure_valid(
    program: Program,
    *,
    require_main: bool = False,
    check_references: bool = True,
) -> ValidationReport:
    report = validate_program(program, require_main=require_main, check_references=check_references)
    if not report.valid:
        raise ScriptValidationError(errors=report.errors, warnings=report.warnings)
    return report
