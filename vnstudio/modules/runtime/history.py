from __future__ import annotations

import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from vnstudio.modules.runtime.results import LoadBackgroundRequest
from vnstudio.modules.script.ast import Choice, Statement

logger = logging.getLogger(__name__)

Frame = tuple[tuple[Statement, ...], int]
"""A statement sequence and the index of its last executed entry (-1 before the first)."""


@dataclass(frozen=True, slots=True)
class Snapshot:
    scene_id: str | None
    scene_frames: tuple[Frame, ...]
    main_frames: tuple[Frame, ...]
    finished: bool
    pending_choice: Choice | None
    flags: Mapping[str, bool]
    suspended: LoadBackgroundRequest | None = None

    @classmethod
    def capture(
        cls,
        *,
        scene_id: str | None,
        scene_frames: tuple[Frame, ...],
        main_frames: tuple[Frame, ...],
        finished: bool,
        pending_choice: Choice | None,
        flags: Mapping[str, bool],
        suspended: LoadBackgroundRequest | None = None,
    ) -> Snapshot:
        return cls(
            scene_id=scene_id,
            scene_frames=scene_frames,
            main_frames=main_frames,
            finished=finished,
            pending_choice=pending_choice,
            flags=MappingProxyType(dict(flags)),
            suspended=suspended,
        )

    @property
    def event_index(self) -> int:
        if not self.scene_frames:
            return -1
        return self.scene_frames[-1][1]

    @property
    def main_flow_position(self) -> int:
        if not self.main_frames:
            return -1
        return self.main_frames[-1][1]


class TimeMachine:
    """Bounded undo/redo stacks of interpreter snapshots.

    The past holds at most ``capacity`` snapshots; pushing past that silently
    drops the oldest one. Any new checkpoint invalidates the redo future.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self.capacity = capacity
        self._past: deque[Snapshot] = deque(maxlen=capacity)
        self._future: list[Snapshot] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def depth(self) -> int:
        return len(self._past)

    def checkpoint(self, snapshot: Snapshot) -> None:
        if len(self._past) == self.capacity:
            logger.debug("history full (capacity=%s), evicting oldest snapshot", self.capacity)
        self._past.append(snapshot)
        self._future.clear()

    def undo(self, current: Snapshot) -> Snapshot | None:
        if not self._past:
            return None
        self._future.append(current)
        return self._past.pop()

    def redo(self, current: Snapshot) -> Snapshot | None:
        if not self._future:
            return None
        self._past.append(current)
        return self._future.pop()

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
