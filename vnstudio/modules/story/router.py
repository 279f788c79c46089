from __future__ import annotations

from fastapi import APIRouter, HTTPException

from vnstudio.modules.script.diagnostics import parse_error_diag
from vnstudio.modules.script.errors import ScriptParseError, ScriptValidationError
from vnstudio.modules.story.schemas import (
    AnalyzeScriptResponse,
    GraphScriptResponse,
    ScriptSourceRequest,
    ValidateScriptResponse,
)
from vnstudio.modules.story.service import analyze_source, graph_source, validate_source

router = APIRouter(prefix="/api/v1/scripts", tags=["scripts"])


def script_error_detail(exc: ScriptParseError | ScriptValidationError) -> dict:
    if isinstance(exc, ScriptParseError):
        return {
            "code": "SCRIPT_PARSE_ERROR",
            "message": str(exc),
            "errors": [parse_error_diag(exc)],
        }
    return {
        "code": "SCRIPT_INVALID",
        "message": str(exc),
        "errors": exc.errors,
        "warnings": exc.warnings,
    }


@router.post("/validate", response_model=ValidateScriptResponse)
def validate_script(payload: ScriptSourceRequest):
    return validate_source(payload.source)


@router.post("/analyze", response_model=AnalyzeScriptResponse)
def analyze_script(payload: ScriptSourceRequest):
    try:
        return analyze_source(payload.source)
    except (ScriptParseError, ScriptValidationError) as exc:
        raise HTTPException(status_code=422, detail=script_error_detail(exc)) from exc


@router.post("/graph", response_model=GraphScriptResponse)
def graph_script(payload: ScriptSourceRequest):
    try:
        return graph_source(payload.source)
    except (ScriptParseError, ScriptValidationError) as exc:
        raise HTTPException(status_code=422, detail=script_error_detail(exc)) from exc
