from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

RESTORED_SPEAKER = "System"
RESTORED_TEXT = "State restored. Press continue."


class LoadedResult(BaseModel):
    type: Literal["loaded"] = "loaded"
    game: str


class DialogueResult(BaseModel):
    type: Literal["dialogue"] = "dialogue"
    speaker: str
    text: str


class WaitingChoiceResult(BaseModel):
    type: Literal["waiting_choice"] = "waiting_choice"
    options: list[str]


class LoadBackgroundRequest(BaseModel):
    type: Literal["load_background"] = "load_background"
    prompt: str
    scene_id: str


class FinishedResult(BaseModel):
    type: Literal["finished"] = "finished"
    message: str


class ErrorResult(BaseModel):
    type: Literal["error"] = "error"
    message: str


Interaction = Annotated[
    Union[
        LoadedResult,
        DialogueResult,
        WaitingChoiceResult,
        LoadBackgroundRequest,
        FinishedResult,
        ErrorResult,
    ],
    Field(discriminator="type"),
]


def restored_placeholder() -> DialogueResult:
    return DialogueResult(speaker=RESTORED_SPEAKER, text=RESTORED_TEXT)
