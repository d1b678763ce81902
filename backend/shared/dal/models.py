"""Persistence models for the data access layer.

Field names are snake_case in Python and camelCase on the wire, so the same
models serve the database JSON column, the HTTP API and the display channel.
"""

from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Identifiers travel in URLs and request bodies.
ID_PATTERN = r"^[a-zA-Z0-9_-]+$"
MAX_ID_LENGTH = 100
MAX_NAME_LENGTH = 200


class WireModel(BaseModel):
    """Frozen model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class GameStatus(StrEnum):
    ACTIVE = "active"
    DEMO = "demo"


class Segment(WireModel):
    """One slice of the wheel: a real prize or a decorative "no win" slot."""

    id: str = Field(min_length=1, max_length=MAX_ID_LENGTH)
    name: str = Field(max_length=MAX_NAME_LENGTH)
    # preferred in notifications and result screens
    formal_name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    is_real_prize: bool = False
    probability_weight: float = Field(default=0, ge=0)  # only meaningful for real prizes
    stock_controlled: bool = False
    quantity: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _validate_stock(self) -> Self:
        if self.stock_controlled and not self.is_real_prize:
            raise ValueError(f"Segment '{self.id}' is stock controlled but not a real prize")
        return self

    @property
    def display_name(self) -> str:
        return self.formal_name or self.name

    @property
    def remaining_stock(self) -> int | None:
        """Units left for stock-controlled prizes, None when stock is unlimited."""
        if not self.stock_controlled:
            return None
        return self.quantity or 0

    @property
    def is_exhausted(self) -> bool:
        return self.is_real_prize and self.stock_controlled and (self.quantity or 0) <= 0


class SpinRequest(WireModel):
    """The single in-flight spin signal of a game, observed by its displays."""

    timestamp: datetime
    customer_id: str
    winning_id: str


class Game(WireModel):
    """A prize wheel campaign with its catalog, counters and spin slot."""

    game_id: str = Field(min_length=1, max_length=MAX_ID_LENGTH, pattern=ID_PATTERN)
    name: str = ""
    status: GameStatus = GameStatus.ACTIVE
    segments: tuple[Segment, ...] = ()
    plays: int = Field(default=0, ge=0)
    prizes_awarded: int = Field(default=0, ge=0)
    spin_request: SpinRequest | None = None
    last_spin_at: datetime | None = None  # timestamp of the latest spin, survives clearing the slot
    exempted_emails: tuple[str, ...] = ()  # emails allowed to register more than once

    @model_validator(mode="after")
    def _validate_unique_segment_ids(self) -> Self:
        ids = [s.id for s in self.segments]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate segment id in game '{self.game_id}'")
        return self

    @property
    def is_demo(self) -> bool:
        return self.status == GameStatus.DEMO

    def get_segment(self, segment_id: str) -> Segment | None:
        for segment in self.segments:
            if segment.id == segment_id:
                return segment
        return None

    def is_exempted(self, email: str) -> bool:
        return normalize_email(email) in {normalize_email(e) for e in self.exempted_emails}


class Customer(WireModel):
    """A visitor registered for one game. Spin fields are set once, at commit."""

    customer_id: str
    game_id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    birthdate: str = ""
    registered_at: datetime | None = None
    has_played: bool = False
    prize_won_name: str | None = None
    prize_won_at: datetime | None = None


def normalize_email(email: str) -> str:
    return email.strip().lower()
