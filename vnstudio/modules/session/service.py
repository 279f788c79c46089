from __future__ import annotations

import logging
import time
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock

from vnstudio.config import settings
from vnstudio.modules.runtime.interpreter import Interpreter
from vnstudio.modules.runtime.presentation import CueRecorder
from vnstudio.modules.runtime.results import Interaction
from vnstudio.modules.script.errors import ScriptParseError, ScriptValidationError
from vnstudio.modules.telemetry.service import record_load, record_step

logger = logging.getLogger(__name__)


class SessionError(Exception):
    status_code = 400

    def __init__(self, *, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)

    def detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class SessionNotFoundError(SessionError):
    status_code = 404

    def __init__(self, *, session_id: uuid.UUID) -> None:
        self.session_id = session_id
        super().__init__(code="SESSION_NOT_FOUND", message=f"session {session_id} not found")


class NothingToUndoError(SessionError):
    status_code = 409

    def __init__(self, *, session_id: uuid.UUID) -> None:
        self.session_id = session_id
        super().__init__(code="NOTHING_TO_UNDO", message="no earlier checkpoint to return to")


class NothingToRedoError(SessionError):
    status_code = 409

    def __init__(self, *, session_id: uuid.UUID) -> None:
        self.session_id = session_id
        super().__init__(code="NOTHING_TO_REDO", message="no undone checkpoint to replay")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PlaySession:
    session_id: uuid.UUID
    game: str
    interpreter: Interpreter
    recorder: CueRecorder
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    steps: int = 0
    lock: Lock = field(default_factory=Lock)


class _SessionRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._sessions: OrderedDict[uuid.UUID, PlaySession] = OrderedDict()

    def add(self, session: PlaySession, *, capacity: int) -> None:
        with self._lock:
            self._sessions[session.session_id] = session
            while len(self._sessions) > capacity:
                evicted_id, _evicted = self._sessions.popitem(last=False)
                logger.info("session registry full, evicted session %s", evicted_id)

    def get(self, session_id: uuid.UUID) -> PlaySession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id=session_id)
        return session

    def pop(self, session_id: uuid.UUID) -> PlaySession:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id=session_id)
        return session

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()


_registry = _SessionRegistry()


def reset_sessions() -> None:
    _registry.reset()


def active_session_count() -> int:
    return _registry.count()


def create_session(source: str) -> dict:
    recorder = CueRecorder()
    interpreter = Interpreter(recorder)
    try:
        loaded = interpreter.load(source)
    except (ScriptParseError, ScriptValidationError):
        record_load(ok=False)
        raise
    record_load(ok=True)

    session = PlaySession(
        session_id=uuid.uuid4(),
        game=loaded.game,
        interpreter=interpreter,
        recorder=recorder,
    )
    _registry.add(session, capacity=settings.session_capacity)
    logger.info("session %s started for game '%s'", session.session_id, session.game)
    return {
        "session_id": session.session_id,
        "game": session.game,
        "state": interpreter.state.value,
        "interaction": loaded.model_dump(),
    }


def _step_payload(session: PlaySession, interaction: Interaction) -> dict:
    interpreter = session.interpreter
    return {
        "session_id": session.session_id,
        "state": interpreter.state.value,
        "interaction": interaction.model_dump(),
        "cues": [cue.model_dump() for cue in session.recorder.drain()],
        "flags": interpreter.flags,
        "can_undo": interpreter.can_undo,
        "can_redo": interpreter.can_redo,
    }


def _run_step(
    session_id: uuid.UUID,
    operation: str,
    action: Callable[[Interpreter], Interaction | None],
    *,
    on_empty: Callable[[uuid.UUID], SessionError] | None = None,
) -> dict:
    session = _registry.get(session_id)
    with session.lock:
        started = time.perf_counter()
        interaction = action(session.interpreter)
        latency_ms = (time.perf_counter() - started) * 1000.0
        if interaction is None:
            record_step(operation=operation, result_type=None, latency_ms=latency_ms)
            if on_empty is None:
                raise RuntimeError(f"{operation} produced no interaction")
            raise on_empty(session_id)
        record_step(operation=operation, result_type=interaction.type, latency_ms=latency_ms)
        session.steps += 1
        session.updated_at = _utc_now()
        logger.debug("session %s %s -> %s", session_id, operation, interaction.type)
        return _step_payload(session, interaction)


def advance_session(session_id: uuid.UUID) -> dict:
    return _run_step(session_id, "advance", lambda interpreter: interpreter.advance())


def choose_option(session_id: uuid.UUID, index: int) -> dict:
    return _run_step(session_id, "choice", lambda interpreter: interpreter.make_choice(index))


def resume_session(session_id: uuid.UUID, scene_id: str, image_ref: str | None = None) -> dict:
    return _run_step(
        session_id,
        "resume",
        lambda interpreter: interpreter.resume_with_scene(scene_id, image_ref),
    )


def undo_step(session_id: uuid.UUID) -> dict:
    return _run_step(
        session_id,
        "undo",
        lambda interpreter: interpreter.undo(),
        on_empty=lambda sid: NothingToUndoError(session_id=sid),
    )


def redo_step(session_id: uuid.UUID) -> dict:
    return _run_step(
        session_id,
        "redo",
        lambda interpreter: interpreter.redo(),
        on_empty=lambda sid: NothingToRedoError(session_id=sid),
    )


def get_session_state(session_id: uuid.UUID) -> dict:
    session = _registry.get(session_id)
    with session.lock:
        interpreter = session.interpreter
        return {
            "session_id": session.session_id,
            "game": session.game,
            "state": interpreter.state.value,
            "scene_id": interpreter.scene_id,
            "flags": interpreter.flags,
            "interaction": interpreter.current_interaction().model_dump(),
            "can_undo": interpreter.can_undo,
            "can_redo": interpreter.can_redo,
            "history_depth": interpreter.history.depth,
            "steps": session.steps,
            "created_at": session.created_at,
            "updated_at": session.updated_at,
        }


def end_session(session_id: uuid.UUID) -> dict:
    session = _registry.pop(session_id)
    logger.info("session %s ended after %d steps", session.session_id, session.steps)
    return {"session_id": session.session_id, "ended": True}
