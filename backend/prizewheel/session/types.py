"""
Pydantic models for the session layer.

These are the bodies the player sends to the spin service, whether in-process
or over HTTP. Their limits match the persisted catalog, so any game the
repository accepts yields a request these models accept.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.dal.models import ID_PATTERN, MAX_ID_LENGTH, MAX_NAME_LENGTH

_ID_FIELD = Field(min_length=1, max_length=MAX_ID_LENGTH, pattern=ID_PATTERN)


class SpinCommitRequest(BaseModel):
    """Body of POST /spin, as sent by the player after its local draw.

    prizeName is informational: the committed prize name always comes from
    the stored catalog.
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True)

    game_id: str = _ID_FIELD
    customer_id: str = _ID_FIELD
    winning_id: str = Field(min_length=1, max_length=MAX_ID_LENGTH)
    prize_name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    is_real_prize: bool
    use_stock_control: bool = False


class Registration(BaseModel):
    """Customer registration fields collected by the player form."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=254)
    phone: str = Field(default="", max_length=50)
    birthdate: str = Field(default="", max_length=20)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v
