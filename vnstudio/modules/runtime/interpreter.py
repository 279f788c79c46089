from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from vnstudio.config import settings
from vnstudio.modules.runtime.history import Frame, Snapshot, TimeMachine
from vnstudio.modules.runtime.presentation import NullPresentation, Presentation
from vnstudio.modules.runtime.results import (
    DialogueResult,
    ErrorResult,
    FinishedResult,
    Interaction,
    LoadBackgroundRequest,
    LoadedResult,
    WaitingChoiceResult,
    restored_placeholder,
)
from vnstudio.modules.script.ast import (
    CharacterDeclaration,
    Choice,
    NodeKind,
    Program,
    Scene,
    Statement,
)
from vnstudio.modules.script.parser import parse_script
from vnstudio.modules.script.validation import ensure_valid

logger = logging.getLogger(__name__)

END_OF_GAME_MESSAGE = "End of game."
NOT_LOADED_MESSAGE = "No script loaded."
INVALID_CHOICE_MESSAGE = "Invalid choice selection."

# Result types that end an external step and leave something on screen to undo to.
CHECKPOINT_RESULT_TYPES = frozenset({"dialogue", "waiting_choice"})


class InterpreterState(str, Enum):
    UNLOADED = "unloaded"
    READY = "ready"
    RUNNING = "running"
    WAITING_CHOICE = "waiting_choice"
    SUSPENDED = "suspended"
    FINISHED = "finished"


def _scene_not_found(scene_id: str) -> ErrorResult:
    return ErrorResult(message=f"Runtime Error: Scene '{scene_id}' not found.")


def _step(frames: tuple[Frame, ...]) -> tuple[tuple[Frame, ...], Statement | None]:
    """Move the innermost unfinished frame forward by one entry.

    Exhausted frames are popped. Returns the new stack and the statement now
    under the cursor, or ``None`` once every frame is exhausted.
    """
    while frames:
        statements, index = frames[-1]
        if index + 1 < len(statements):
            return frames[:-1] + ((statements, index + 1),), statements[index + 1]
        frames = frames[:-1]
    return frames, None


class Interpreter:
    """Steps through a loaded program one displayable interaction at a time.

    The parsed program is never modified. Taken branches are pushed as frames
    on the interpreter's own cursor stacks, so several interpreters can play
    the same ``Program`` at once.
    """

    def __init__(
        self,
        presentation: Presentation | None = None,
        *,
        history_capacity: int | None = None,
        background_generate_prefix: str | None = None,
        strict_references: bool | None = None,
        max_instant_steps: int | None = None,
    ) -> None:
        self.presentation: Presentation = presentation or NullPresentation()
        self.background_generate_prefix = (
            background_generate_prefix
            if background_generate_prefix is not None
            else settings.background_generate_prefix
        )
        self.strict_references = (
            strict_references if strict_references is not None else settings.strict_references
        )
        self.max_instant_steps = (
            max_instant_steps if max_instant_steps is not None else settings.max_instant_steps
        )
        self._history = TimeMachine(
            history_capacity if history_capacity is not None else settings.history_capacity
        )

        self._program: Program | None = None
        self._characters: dict[str, CharacterDeclaration] = {}
        self._scenes: dict[str, Scene] = {}
        self._flags: dict[str, bool] = {}

        self._scene_id: str | None = None
        self._scene_frames: tuple[Frame, ...] = ()
        self._main_frames: tuple[Frame, ...] = ()
        self._pending_choice: Choice | None = None
        self._finished = False
        self._suspended: LoadBackgroundRequest | None = None

    # -- loading -----------------------------------------------------------

    def load(self, source: str) -> LoadedResult:
        return self.load_program(parse_script(source))

    def load_program(self, program: Program) -> LoadedResult:
        """Validate an already parsed program and start a fresh playthrough of it.

        Nothing is committed unless validation passes, so a failed load leaves
        the previous program and cursor in place.
        """
        report = ensure_valid(program, require_main=True, check_references=self.strict_references)
        for warning in report.warnings:
            logger.warning("%s at %s: %s", warning["code"], warning["path"], warning["message"])

        characters = {decl.id: decl for decl in program.characters}
        flags = {decl.id: decl.initial_value for decl in program.flags}
        scenes = {scene.id: scene for scene in program.scenes}

        self._program = program
        self._characters = characters
        self._scenes = scenes
        self._flags = flags
        self._scene_id = None
        self._scene_frames = ()
        self._main_frames = ((program.main.statements, -1),)
        self._pending_choice = None
        self._finished = False
        self._suspended = None
        self._history.clear()

        logger.info(
            "loaded game '%s' (%d scenes, %d characters, %d flags)",
            program.name,
            len(scenes),
            len(characters),
            len(flags),
        )
        return LoadedResult(game=program.name)

    # -- inspection --------------------------------------------------------

    @property
    def program(self) -> Program | None:
        return self._program

    @property
    def characters(self) -> Mapping[str, CharacterDeclaration]:
        return MappingProxyType(self._characters)

    @property
    def flags(self) -> dict[str, bool]:
        return dict(self._flags)

    @property
    def scene_id(self) -> str | None:
        return self._scene_id

    @property
    def state(self) -> InterpreterState:
        if self._program is None:
            return InterpreterState.UNLOADED
        if self._finished:
            return InterpreterState.FINISHED
        if self._suspended is not None:
            return InterpreterState.SUSPENDED
        if self._pending_choice is not None:
            return InterpreterState.WAITING_CHOICE
        if self._scene_id is None and len(self._main_frames) == 1 and self._main_frames[0][1] == -1:
            return InterpreterState.READY
        return InterpreterState.RUNNING

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def history(self) -> TimeMachine:
        return self._history

    def snapshot(self) -> Snapshot:
        return Snapshot.capture(
            scene_id=self._scene_id,
            scene_frames=self._scene_frames,
            main_frames=self._main_frames,
            finished=self._finished,
            pending_choice=self._pending_choice,
            flags=self._flags,
            suspended=self._suspended,
        )

    def current_interaction(self) -> Interaction:
        if self._program is None:
            return ErrorResult(message=NOT_LOADED_MESSAGE)
        if self._finished:
            return FinishedResult(message=END_OF_GAME_MESSAGE)
        if self._pending_choice is not None:
            return WaitingChoiceResult(options=self._pending_choice.labels)
        if self._suspended is not None:
            return self._suspended
        if self._scene_frames:
            statements, index = self._scene_frames[-1]
            if 0 <= index < len(statements) and statements[index].kind == NodeKind.DIALOGUE:
                return self._dialogue(statements[index])
        return restored_placeholder()

    # -- stepping ----------------------------------------------------------

    def advance(self) -> Interaction:
        if self._program is None:
            return ErrorResult(message=NOT_LOADED_MESSAGE)
        if self._finished:
            return FinishedResult(message=END_OF_GAME_MESSAGE)
        if self._pending_choice is not None:
            return WaitingChoiceResult(options=self._pending_choice.labels)
        if self._suspended is not None:
            return self._suspended
        return self._run(self.snapshot())

    def make_choice(self, index: int) -> Interaction:
        choice = self._pending_choice
        if choice is None or not 0 <= index < len(choice.options):
            return ErrorResult(message=INVALID_CHOICE_MESSAGE)
        before = self.snapshot()
        self._pending_choice = None
        self._scene_frames = self._scene_frames + ((choice.options[index].events, -1),)
        logger.debug("choice %d selected: %s", index, choice.options[index].text)
        return self._run(before)

    def resume_with_scene(self, scene_id: str, image_ref: str | None = None) -> Interaction:
        if self._program is None:
            return ErrorResult(message=NOT_LOADED_MESSAGE)
        scene = self._scenes.get(scene_id)
        if scene is None:
            return _scene_not_found(scene_id)
        before = self.snapshot()
        self._suspended = None
        if image_ref:
            self.presentation.set_background(image_ref)
        self._enter_scene(scene)
        logger.info("resumed with scene '%s'", scene_id)
        return self._run(before)

    def undo(self) -> Interaction | None:
        snapshot = self._history.undo(self.snapshot())
        if snapshot is None:
            return None
        self._restore(snapshot)
        return self.current_interaction()

    def redo(self) -> Interaction | None:
        snapshot = self._history.redo(self.snapshot())
        if snapshot is None:
            return None
        self._restore(snapshot)
        return self.current_interaction()

    # -- internals ---------------------------------------------------------

    def _restore(self, snapshot: Snapshot) -> None:
        self._scene_id = snapshot.scene_id
        self._scene_frames = snapshot.scene_frames
        self._main_frames = snapshot.main_frames
        self._finished = snapshot.finished
        self._pending_choice = snapshot.pending_choice
        self._flags = dict(snapshot.flags)
        self._suspended = snapshot.suspended
        logger.debug(
            "restored snapshot scene=%s event_index=%d main_flow_position=%d",
            snapshot.scene_id,
            snapshot.event_index,
            snapshot.main_flow_position,
        )

    def _enter_scene(self, scene: Scene) -> None:
        self._scene_id = scene.id
        self._scene_frames = ((scene.events, -1),)

    def _dialogue(self, node) -> DialogueResult:
        declaration = self._characters.get(node.character_id)
        speaker = declaration.display_name if declaration is not None else node.character_id
        return DialogueResult(speaker=speaker, text=node.text)

    def _run(self, before: Snapshot) -> Interaction:
        """Execute instant events until something has to be shown.

        A step that runs ``max_instant_steps`` statements without reaching a
        dialogue, a choice or the end of the game (a goto cycle, say) is
        abandoned: the interpreter is put back to ``before`` and an error is
        returned.
        """
        for _ in range(self.max_instant_steps):
            self._scene_frames, event = _step(self._scene_frames)
            if event is not None:
                result = self._execute_event(event)
            else:
                result = self._execute_main_step()
            if result is None:
                continue
            if result.type in CHECKPOINT_RESULT_TYPES:
                self._history.checkpoint(before)
            return result

        logger.warning(
            "no dialogue or choice reached within %d steps from scene '%s', step abandoned",
            self.max_instant_steps,
            self._scene_id,
        )
        self._restore(before)
        return ErrorResult(
            message=f"Runtime Error: no dialogue or choice reached within {self.max_instant_steps} steps."
        )

    def _execute_main_step(self) -> Interaction | None:
        self._main_frames, statement = _step(self._main_frames)
        if statement is None:
            self._finished = True
            logger.info("main flow exhausted, game finished")
            return FinishedResult(message=END_OF_GAME_MESSAGE)

        if statement.kind == NodeKind.SCENE_CALL:
            scene = self._scenes.get(statement.scene_id)
            if scene is None:
                return _scene_not_found(statement.scene_id)
            background = scene.background
            prefix = self.background_generate_prefix
            if background and background.startswith(prefix):
                self._suspended = LoadBackgroundRequest(
                    prompt=background[len(prefix):].strip(),
                    scene_id=scene.id,
                )
                logger.info("suspended for background generation of scene '%s'", scene.id)
                return self._suspended
            if background:
                self.presentation.set_background(background)
            self._enter_scene(scene)
            return None

        if statement.kind == NodeKind.IF_STATEMENT:
            branch = statement.true_branch if self._flags.get(statement.flag_id, False) else statement.false_branch
            self._main_frames = self._main_frames + ((branch, -1),)
            return None

        if statement.kind == NodeKind.GOTO:
            return self._goto(statement.target_scene_id)

        return None

    def _goto(self, scene_id: str) -> Interaction | None:
        scene = self._scenes.get(scene_id)
        if scene is None:
            return _scene_not_found(scene_id)
        self._enter_scene(scene)
        return None

    def _execute_event(self, event) -> Interaction | None:
        kind = event.kind
        if kind == NodeKind.DIALOGUE:
            return self._dialogue(event)
        if kind == NodeKind.CHOICE:
            self._pending_choice = event
            return WaitingChoiceResult(options=event.labels)
        if kind == NodeKind.SHOW_CHARACTER:
            declaration = self._characters.get(event.character_id)
            self.presentation.show_character(declaration.sprite if declaration is not None else "", event.position)
        elif kind == NodeKind.SET_FLAG:
            self._flags[event.flag_id] = event.value
        elif kind == NodeKind.GOTO:
            return self._goto(event.target_scene_id)
        elif kind == NodeKind.IF_EVENT:
            branch = event.true_events if self._flags.get(event.flag_id, False) else event.false_events
            self._scene_frames = self._scene_frames + ((branch, -1),)
        elif kind == NodeKind.BACKGROUND:
            self.presentation.set_background(event.image)
        elif kind == NodeKind.PLAY_MUSIC:
            self.presentation.play_music(event.track, event.options)
        elif kind == NodeKind.PLAY_SFX:
            self.presentation.play_sfx(event.sound, event.options)
        elif kind == NodeKind.PLAY_AMBIENT:
            self.presentation.play_ambient(event.sound, event.options)
        elif kind == NodeKind.STOP_MUSIC:
            self.presentation.stop_music(event.options)
        elif kind == NodeKind.SET_VOLUME:
            self.presentation.set_volume(event.channel, event.volume)
        return None
