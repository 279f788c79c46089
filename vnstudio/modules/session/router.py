import uuid

from fastapi import APIRouter, HTTPException

from vnstudio.modules.script.errors import ScriptParseError, ScriptValidationError
from vnstudio.modules.session import service
from vnstudio.modules.session.schemas import (
    ChoiceRequest,
    ResumeRequest,
    SessionCreateOut,
    SessionCreateRequest,
    SessionEndOut,
    SessionStateOut,
    StepResponse,
)
from vnstudio.modules.story.router import script_error_detail

router = APIRouter(prefix="/api/v1", tags=["sessions"])


def _http_error(exc: service.SessionError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail())


@router.post("/sessions", response_model=SessionCreateOut)
def create_session(payload: SessionCreateRequest):
    try:
        return service.create_session(payload.source)
    except (ScriptParseError, ScriptValidationError) as exc:
        raise HTTPException(status_code=422, detail=script_error_detail(exc)) from exc


@router.get("/sessions/{session_id}", response_model=SessionStateOut)
def get_session(session_id: uuid.UUID):
    try:
        return service.get_session_state(session_id)
    except service.SessionError as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/advance", response_model=StepResponse)
def advance(session_id: uuid.UUID):
    try:
        return service.advance_session(session_id)
    except service.SessionError as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/choice", response_model=StepResponse)
def choose(session_id: uuid.UUID, payload: ChoiceRequest):
    try:
        return service.choose_option(session_id, payload.index)
    except service.SessionError as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/resume", response_model=StepResponse)
def resume(session_id: uuid.UUID, payload: ResumeRequest):
    try:
        return service.resume_session(session_id, payload.scene_id, payload.image_ref)
    except service.SessionError as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/undo", response_model=StepResponse)
def undo(session_id: uuid.UUID):
    try:
        return service.undo_step(session_id)
    except service.SessionError as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/redo", response_model=StepResponse)
def redo(session_id: uuid.UUID):
    try:
        return service.redo_step(session_id)
    except service.SessionError as exc:
        raise _http_error(exc) from exc


@router.delete("/sessions/{session_id}", response_model=SessionEndOut)
def end_session(session_id: uuid.UUID):
    try:
        return service.end_session(session_id)
    except service.SessionError as exc:
        raise _http_error(exc) from exc
