"""
Spin commit: the single writer of stock, counters and the spin slot.

A commit re-reads the game and customer inside one transaction, validates the
draw against that fresh state, and writes every effect at once or not at all:

1. a new SpinRequest overwrites the slot (timestamps strictly increase per game)
2. plays += 1
3. for real prizes prizes_awarded += 1, and stock-controlled quantity drops by
   one, clamped at zero
4. the customer is marked as played, with the prize name for real prizes

Only after the transaction returns is the snapshot published to displays and,
for real prizes, the notification trigger fired without awaiting it.
"""

from __future__ import annotations

import asyncio
import random
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from prizewheel.logic.exceptions import (
    CustomerAlreadyPlayedError,
    GameNotFoundError,
    InvalidSpinError,
    NoEligiblePrizesError,
)
from prizewheel.notify import PrizeNotification, generate_validation_code
from shared.dal.models import Customer, Game, SpinRequest

if TYPE_CHECKING:
    from collections.abc import Callable

    from prizewheel.notify import PrizeNotifier
    from prizewheel.session.channel import SpinChannel
    from shared.dal import GameRepository

logger = structlog.get_logger()

DEMO_CUSTOMER_ID = "demo-user"

_TIMESTAMP_STEP = timedelta(microseconds=1)


class SpinCommand(BaseModel, frozen=True):
    """What the player drew, as sent to the commit endpoint."""

    game_id: str
    customer_id: str
    winning_id: str
    is_real_prize: bool
    stock_controlled: bool


def next_timestamp(last: datetime | None, now: datetime) -> datetime:
    """Return now, or just after last when the clock has not moved past it."""
    if last is not None and now <= last:
        return last + _TIMESTAMP_STEP
    return now


def apply_spin(
    game: Game | None,
    customer: Customer | None,
    command: SpinCommand,
    now: datetime,
) -> tuple[Game, Customer]:
    """Compute the records a spin commit writes. Raises before any write on a bad command."""
    if game is None:
        raise GameNotFoundError(command.game_id)

    segment = game.get_segment(command.winning_id)
    if segment is None:
        raise InvalidSpinError(f"segment '{command.winning_id}' is not in the catalog of game '{game.game_id}'")
    if segment.is_real_prize != command.is_real_prize or segment.stock_controlled != command.stock_controlled:
        raise InvalidSpinError(f"segment '{segment.id}' changed since the draw")
    if customer is not None and customer.has_played:
        raise CustomerAlreadyPlayedError(command.customer_id)

    timestamp = next_timestamp(game.last_spin_at, now)

    segments = game.segments
    if segment.is_real_prize and segment.stock_controlled:
        remaining = segment.remaining_stock or 0
        if remaining <= 0:
            logger.warning("stock exhausted at commit, clamping", game_id=game.game_id, segment_id=segment.id)
        segments = tuple(
            s.model_copy(update={"quantity": max(0, remaining - 1)}) if s.id == segment.id else s for s in segments
        )

    new_game = game.model_copy(
        update={
            "segments": segments,
            "plays": game.plays + 1,
            "prizes_awarded": game.prizes_awarded + int(segment.is_real_prize),
            "spin_request": SpinRequest(
                timestamp=timestamp,
                customer_id=command.customer_id,
                winning_id=segment.id,
            ),
            "last_spin_at": timestamp,
        },
    )

    base = customer or Customer(customer_id=command.customer_id, game_id=game.game_id)
    changes: dict[str, object] = {"has_played": True}
    if segment.is_real_prize:
        changes["prize_won_name"] = segment.display_name
        changes["prize_won_at"] = timestamp
    return new_game, base.model_copy(update=changes)


class SpinCommitter:
    """Commit spins and demo spins, then publish them to the channel."""

    def __init__(
        self,
        game_repository: GameRepository,
        channel: SpinChannel,
        notifier: PrizeNotifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._game_repository = game_repository
        self._channel = channel
        self._notifier = notifier
        self._clock = clock or (lambda: datetime.now(UTC))
        self._notification_tasks: set[asyncio.Task[None]] = set()

    async def commit(
        self,
        game_id: str,
        customer_id: str,
        winning_segment_id: str,
        *,
        is_real_prize: bool,
        stock_controlled: bool,
        prize_name: str | None = None,
    ) -> SpinRequest:
        """Atomically commit a drawn spin. Returns the published SpinRequest."""
        command = SpinCommand(
            game_id=game_id,
            customer_id=customer_id,
            winning_id=winning_segment_id,
            is_real_prize=is_real_prize,
            stock_controlled=stock_controlled,
        )
        now = self._clock()
        game, customer = await self._game_repository.run_spin_transaction(
            game_id,
            customer_id,
            lambda g, c: apply_spin(g, c, command, now),
        )
        request = game.spin_request
        if request is None:  # pragma: no cover
            raise RuntimeError("spin transaction did not write a spin request")

        if prize_name is not None and prize_name != customer.prize_won_name and is_real_prize:
            logger.debug("client prize name differs from catalog", client_name=prize_name)
        logger.info(
            "spin committed",
            game_id=game_id,
            customer_id=customer_id,
            winning_id=winning_segment_id,
            real_prize=is_real_prize,
            plays=game.plays,
        )

        self._channel.publish(game)
        if is_real_prize and customer.prize_won_name is not None:
            self._schedule_notification(
                PrizeNotification(
                    game_id=game_id,
                    customer_id=customer_id,
                    prize_name=customer.prize_won_name,
                    validation_code=generate_validation_code(),
                ),
            )
        return request

    async def demo_spin(self, game_id: str, rng: random.Random | None = None) -> SpinRequest:
        """Show a test spin on the displays of a demo game.

        Picks a segment uniformly and writes only the spin slot; counters,
        stock and customers are untouched.
        """
        rng = rng or random.Random()  # noqa: S311
        now = self._clock()

        def _mutate(game: Game | None) -> Game:
            if game is None:
                raise GameNotFoundError(game_id)
            if not game.is_demo:
                raise InvalidSpinError(f"game '{game_id}' is not in demo mode")
            if not game.segments:
                raise NoEligiblePrizesError(f"game '{game_id}' has no segments")
            segment = rng.choice(game.segments)
            timestamp = next_timestamp(game.last_spin_at, now)
            return game.model_copy(
                update={
                    "spin_request": SpinRequest(
                        timestamp=timestamp,
                        customer_id=DEMO_CUSTOMER_ID,
                        winning_id=segment.id,
                    ),
                    "last_spin_at": timestamp,
                },
            )

        game = await self._game_repository.update_game(game_id, _mutate)
        if game is None or game.spin_request is None:  # pragma: no cover
            raise RuntimeError("demo spin did not write a spin request")
        logger.info("demo spin", game_id=game_id, winning_id=game.spin_request.winning_id)
        self._channel.publish(game)
        return game.spin_request

    def _schedule_notification(self, notification: PrizeNotification) -> None:
        if self._notifier is None:
            return
        task = asyncio.create_task(self._send_notification(self._notifier, notification))
        self._notification_tasks.add(task)
        task.add_done_callback(self._notification_tasks.discard)

    async def _send_notification(self, notifier: PrizeNotifier, notification: PrizeNotification) -> None:
        try:
            await notifier.notify(notification)
        except Exception:
            logger.exception(
                "prize notification failed",
                game_id=notification.game_id,
                customer_id=notification.customer_id,
            )

    async def drain_notifications(self) -> None:
        """Wait for in-flight notifications. Used on shutdown."""
        if self._notification_tasks:
            await asyncio.gather(*self._notification_tasks, return_exceptions=True)
