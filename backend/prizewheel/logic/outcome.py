"""Spin outcome shown on both the player's phone and the display."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from shared.dal.models import Segment


class SpinOutcome(BaseModel, frozen=True):
    """What a screen reveals once the wheel stops."""

    name: str
    is_real_prize: bool


def resolve_outcome(segment: Segment) -> SpinOutcome:
    """Derive the outcome from the winning segment.

    The player and the display both call this on the same winning segment id,
    never on independently drawn data, so the two screens always agree.
    """
    return SpinOutcome(name=segment.display_name, is_real_prize=segment.is_real_prize)
