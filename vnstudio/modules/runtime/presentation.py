from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel, Field


class Presentation(Protocol):
    """Side-effect sink for the interpreter. Return values are ignored."""

    def show_character(self, sprite: str, position: str) -> None: ...

    def set_background(self, image: str) -> None: ...

    def play_music(self, track: str, options: Mapping[str, float]) -> None: ...

    def play_sfx(self, sound: str, options: Mapping[str, float]) -> None: ...

    def play_ambient(self, sound: str, options: Mapping[str, float]) -> None: ...

    def stop_music(self, options: Mapping[str, float]) -> None: ...

    def set_volume(self, channel: str, level: float) -> None: ...


class NullPresentation:
    def show_character(self, sprite: str, position: str) -> None:
        return None

    def set_background(self, image: str) -> None:
        return None

    def play_music(self, track: str, options: Mapping[str, float]) -> None:
        return None

    def play_sfx(self, sound: str, options: Mapping[str, float]) -> None:
        return None

    def play_ambient(self, sound: str, options: Mapping[str, float]) -> None:
        return None

    def stop_music(self, options: Mapping[str, float]) -> None:
        return None

    def set_volume(self, channel: str, level: float) -> None:
        return None


class Cue(BaseModel):
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class CueRecorder:
    """Presentation that records every call so it can be replayed by a client."""

    def __init__(self) -> None:
        self.cues: list[Cue] = []

    def _record(self, name: str, **args: Any) -> None:
        self.cues.append(Cue(name=name, args=args))

    def drain(self) -> list[Cue]:
        cues, self.cues = self.cues, []
        return cues

    def show_character(self, sprite: str, position: str) -> None:
        self._record("show_character", sprite=sprite, position=position)

    def set_background(self, image: str) -> None:
        self._record("set_background", image=image)

    def play_music(self, track: str, options: Mapping[str, float]) -> None:
        self._record("play_music", track=track, options=dict(options))

    def play_sfx(self, sound: str, options: Mapping[str, float]) -> None:
        self._record("play_sfx", sound=sound, options=dict(options))

    def play_ambient(self, sound: str, options: Mapping[str, float]) -> None:
        self._record("play_ambient", sound=sound, options=dict(options))

    def stop_music(self, options: Mapping[str, float]) -> None:
        self._record("stop_music", options=dict(options))

    def set_volume(self, channel: str, level: float) -> None:
        self._record("set_volume", channel=channel, level=level)
