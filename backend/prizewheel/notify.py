"""
Prize notification trigger.

After a real-prize win the committer hands a PrizeNotification to a notifier
and moves on; delivering emails is the job of an external service. Each
notification carries a human-readable validation code the winner shows when
claiming the prize.
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import httpx
import structlog
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    import random

logger = structlog.get_logger()

# No O or 0, they are easy to confuse when read aloud.
VALIDATION_CODE_ALPHABET = "ABCDEFGHIJKLMNPQRSTUVWXYZ123456789"
VALIDATION_CODE_LENGTH = 9
VALIDATION_CODE_GROUP = 3


def generate_validation_code(rng: random.Random | None = None) -> str:
    """Return a code like ``K7D-M2Q-9XA``."""
    choose = rng.choice if rng is not None else secrets.choice
    chars = [choose(VALIDATION_CODE_ALPHABET) for _ in range(VALIDATION_CODE_LENGTH)]
    groups = [
        "".join(chars[i : i + VALIDATION_CODE_GROUP]) for i in range(0, VALIDATION_CODE_LENGTH, VALIDATION_CODE_GROUP)
    ]
    return "-".join(groups)


class PrizeNotification(BaseModel, frozen=True):
    game_id: str
    customer_id: str
    prize_name: str
    validation_code: str = Field(min_length=1)


class NotificationError(Exception):
    """The notification service could not be reached or rejected the request."""


class PrizeNotifier(ABC):
    """Fire-and-forget delivery of prize notifications."""

    @abstractmethod
    async def notify(self, notification: PrizeNotification) -> None: ...


class HttpPrizeNotifier(PrizeNotifier):
    """POST notifications as JSON to an external notification endpoint."""

    def __init__(self, url: str, *, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def notify(self, notification: PrizeNotification) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self._url,
                    json={
                        "gameId": notification.game_id,
                        "customerId": notification.customer_id,
                        "prizeName": notification.prize_name,
                        "validationCode": notification.validation_code,
                    },
                )
            except httpx.RequestError as e:
                raise NotificationError(f"Failed to reach notification service: {e}") from e
        if response.is_error:
            raise NotificationError(f"Notification service returned {response.status_code}: {response.text}")
        logger.info(
            "prize notification sent",
            game_id=notification.game_id,
            customer_id=notification.customer_id,
        )
