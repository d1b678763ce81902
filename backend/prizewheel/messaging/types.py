from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from prizewheel.logic.outcome import SpinOutcome
from prizewheel.session.display import DisplaySnapshot, DisplayState


class ClientMessageType(StrEnum):
    PING = "ping"
    DEMO_SPIN = "demo_spin"


class ServerMessageType(StrEnum):
    DISPLAY_STATE = "display_state"
    PONG = "pong"
    ERROR = "display_error"


class DisplayErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    GAME_NOT_FOUND = "game_not_found"
    DEMO_SPIN_FAILED = "demo_spin_failed"


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


class DemoSpinMessage(BaseModel):
    type: Literal[ClientMessageType.DEMO_SPIN] = ClientMessageType.DEMO_SPIN


ClientMessage = Annotated[PingMessage | DemoSpinMessage, Field(discriminator="type")]


class DisplayStateMessage(BaseModel):
    """Everything a TV needs to render its current screen."""

    type: Literal[ServerMessageType.DISPLAY_STATE] = ServerMessageType.DISPLAY_STATE
    game_id: str
    state: DisplayState
    timestamp: datetime | None = None
    winning_id: str | None = None
    player_name: str | None = None
    outcome: SpinOutcome | None = None

    @classmethod
    def from_snapshot(cls, snapshot: DisplaySnapshot) -> DisplayStateMessage:
        return cls(**snapshot.model_dump())


class PongMessage(BaseModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: DisplayErrorCode
    message: str


_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> PingMessage | DemoSpinMessage:
    return _client_message_adapter.validate_python(data)
