import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from vnstudio.modules.runtime.presentation import Cue
from vnstudio.modules.runtime.results import Interaction


class SessionCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: str = Field(min_length=1, max_length=1_000_000)


class SessionCreateOut(BaseModel):
    session_id: uuid.UUID
    game: str
    state: str
    interaction: Interaction


class ChoiceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    index: int


class ResumeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scene_id: str = Field(min_length=1)
    image_ref: str | None = None


class StepResponse(BaseModel):
    session_id: uuid.UUID
    state: str
    interaction: Interaction
    cues: list[Cue] = Field(default_factory=list)
    flags: dict[str, bool] = Field(default_factory=dict)
    can_undo: bool = False
    can_redo: bool = False


class SessionStateOut(BaseModel):
    session_id: uuid.UUID
    game: str
    state: str
    scene_id: str | None = None
    flags: dict[str, bool] = Field(default_factory=dict)
    interaction: Interaction
    can_undo: bool = False
    can_redo: bool = False
    history_depth: int = 0
    steps: int = 0
    created_at: datetime
    updated_at: datetime


class SessionEndOut(BaseModel):
    session_id: uuid.UUID
    ended: bool = True
