"""Immutable syntax tree for VN scripts.

Every node is a frozen dataclass tagged with a ``kind`` discriminant. Event and
statement sequences are tuples so a parsed program can be shared between
interpreters without any of them mutating it.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Union


class NodeKind(str, Enum):
    PROGRAM = "program"
    CHARACTER_DECLARATION = "character_declaration"
    FLAG_DECLARATION = "flag_declaration"
    SCENE = "scene"
    MAIN_BLOCK = "main_block"
    SCENE_CALL = "scene_call"
    IF_STATEMENT = "if_statement"
    SHOW_CHARACTER = "show_character"
    DIALOGUE = "dialogue"
    SET_FLAG = "set_flag"
    GOTO = "goto"
    IF_EVENT = "if_event"
    CHOICE = "choice"
    PLAY_MUSIC = "play_music"
    PLAY_SFX = "play_sfx"
    STOP_MUSIC = "stop_music"
    PLAY_AMBIENT = "play_ambient"
    SET_VOLUME = "set_volume"
    BACKGROUND = "background"


Options = Mapping[str, float]


@dataclass(frozen=True, slots=True)
class CharacterDeclaration:
    kind: ClassVar[NodeKind] = NodeKind.CHARACTER_DECLARATION

    id: str
    display_name: str
    sprite: str


@dataclass(frozen=True, slots=True)
class FlagDeclaration:
    kind: ClassVar[NodeKind] = NodeKind.FLAG_DECLARATION

    id: str
    initial_value: bool


@dataclass(frozen=True, slots=True)
class ShowCharacter:
    kind: ClassVar[NodeKind] = NodeKind.SHOW_CHARACTER

    character_id: str
    position: str


@dataclass(frozen=True, slots=True)
class Dialogue:
    kind: ClassVar[NodeKind] = NodeKind.DIALOGUE

    character_id: str
    text: str


@dataclass(frozen=True, slots=True)
class SetFlag:
    kind: ClassVar[NodeKind] = NodeKind.SET_FLAG

    flag_id: str
    value: bool


@dataclass(frozen=True, slots=True)
class Goto:
    kind: ClassVar[NodeKind] = NodeKind.GOTO

    target_scene_id: str


@dataclass(frozen=True, slots=True)
class IfEvent:
    kind: ClassVar[NodeKind] = NodeKind.IF_EVENT

    flag_id: str
    true_events: tuple[Event, ...]
    false_events: tuple[Event, ...] = ()


@dataclass(frozen=True, slots=True)
class ChoiceOption:
    text: str
    events: tuple[Event, ...]


@dataclass(frozen=True, slots=True)
class Choice:
    kind: ClassVar[NodeKind] = NodeKind.CHOICE

    options: tuple[ChoiceOption, ...]

    @property
    def labels(self) -> list[str]:
        return [option.text for option in self.options]


@dataclass(frozen=True, slots=True)
class PlayMusic:
    kind: ClassVar[NodeKind] = NodeKind.PLAY_MUSIC

    track: str
    options: Options = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PlaySfx:
    kind: ClassVar[NodeKind] = NodeKind.PLAY_SFX

    sound: str
    options: Options = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StopMusic:
    kind: ClassVar[NodeKind] = NodeKind.STOP_MUSIC

    options: Options = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PlayAmbient:
    kind: ClassVar[NodeKind] = NodeKind.PLAY_AMBIENT

    sound: str
    options: Options = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SetVolume:
    kind: ClassVar[NodeKind] = NodeKind.SET_VOLUME

    channel: str
    volume: float


@dataclass(frozen=True, slots=True)
class BackgroundChange:
    kind: ClassVar[NodeKind] = NodeKind.BACKGROUND

    image: str
    options: Options = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SceneCall:
    kind: ClassVar[NodeKind] = NodeKind.SCENE_CALL

    scene_id: str


@dataclass(frozen=True, slots=True)
class IfStatement:
    kind: ClassVar[NodeKind] = NodeKind.IF_STATEMENT

    flag_id: str
    true_branch: tuple[MainStatement, ...]
    false_branch: tuple[MainStatement, ...] = ()


@dataclass(frozen=True, slots=True)
class Scene:
    kind: ClassVar[NodeKind] = NodeKind.SCENE

    id: str
    background: str | None
    events: tuple[Event, ...]


@dataclass(frozen=True, slots=True)
class MainBlock:
    kind: ClassVar[NodeKind] = NodeKind.MAIN_BLOCK

    statements: tuple[MainStatement, ...]


@dataclass(frozen=True, slots=True)
class Program:
    kind: ClassVar[NodeKind] = NodeKind.PROGRAM

    name: str
    declarations: tuple[Declaration, ...]
    scenes: tuple[Scene, ...]
    main: MainBlock | None = None

    @property
    def characters(self) -> list[CharacterDeclaration]:
        return [decl for decl in self.declarations if decl.kind == NodeKind.CHARACTER_DECLARATION]

    @property
    def flags(self) -> list[FlagDeclaration]:
        return [decl for decl in self.declarations if decl.kind == NodeKind.FLAG_DECLARATION]


Declaration = Union[CharacterDeclaration, FlagDeclaration]
Event = Union[
    ShowCharacter,
    Dialogue,
    SetFlag,
    Goto,
    IfEvent,
    Choice,
    PlayMusic,
    PlaySfx,
    StopMusic,
    PlayAmbient,
    SetVolume,
    BackgroundChange,
]
MainStatement = Union[SceneCall, IfStatement, Goto]
Statement = Union[Event, SceneCall, IfStatement]


def link_target(node: Statement) -> str | None:
    if node.kind == NodeKind.GOTO:
        return node.target_scene_id
    if node.kind == NodeKind.SCENE_CALL:
        return node.scene_id
    return None


def child_sequences(node: Statement) -> list[tuple[str | None, tuple[Statement, ...]]]:
    """Nested sequences of a branching node as ``(choice label, statements)`` pairs."""
    if node.kind == NodeKind.IF_EVENT:
        return [(None, node.true_events), (None, node.false_events)]
    if node.kind == NodeKind.IF_STATEMENT:
        return [(None, node.true_branch), (None, node.false_branch)]
    if node.kind == NodeKind.CHOICE:
        return [(option.text, option.events) for option in node.options]
    return []
