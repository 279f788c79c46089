from __future__ import annotations

from vnstudio.modules.script.errors import ScriptParseError


def diag(
    *,
    code: str,
    path: str | None,
    message: str,
    suggestion: str | None = None,
) -> dict[str, str | None]:
    return {
        "code": code,
        "path": path,
        "message": message,
        "suggestion": suggestion,
    }


def parse_error_diag(exc: ScriptParseError) -> dict[str, str | None]:
    return diag(
        code="PARSE_ERROR",
        path=f"line:{exc.line}",
        message=str(exc),
        suggestion=f"Check the syntax near line {exc.line}; the parser expected {exc.expected}.",
    )
