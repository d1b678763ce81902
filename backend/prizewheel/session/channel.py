"""
Observable per-game spin slot.

The channel is not a queue. Each game has one latest snapshot; subscribers
are woken when it changes and always read the newest value, so a display that
falls behind skips intermediate snapshots instead of replaying a backlog. If
two spins commit faster than a display can animate, only the latest one is
guaranteed to be seen.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from datetime import datetime

    from shared.dal import Game, GameRepository

logger = structlog.get_logger()


class ChannelSubscription:
    """A subscriber's view of one game: the latest undelivered snapshot."""

    def __init__(self, channel: SpinChannel, game_id: str) -> None:
        self._channel = channel
        self.game_id = game_id
        self._pending: Game | None = None
        self._wakeup = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, game: Game) -> None:
        """Replace the pending snapshot. Older undelivered snapshots are dropped."""
        if self._closed:
            return
        self._pending = game
        self._wakeup.set()

    async def next_snapshot(self) -> Game | None:
        """Wait for the next snapshot. Returns None once the subscription is closed."""
        while not self._closed:
            if self._pending is not None:
                game, self._pending = self._pending, None
                self._wakeup.clear()
                return game
            await self._wakeup.wait()
            self._wakeup.clear()
        return None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending = None
        self._wakeup.set()
        self._channel.unsubscribe(self)

    def __aiter__(self) -> ChannelSubscription:
        return self

    async def __anext__(self) -> Game:
        game = await self.next_snapshot()
        if game is None:
            raise StopAsyncIteration
        return game


class SpinChannel:
    """
    Fan out game snapshots to every subscribed display of that game.

    Publishing is synchronous and never blocks on slow subscribers.
    """

    def __init__(self, game_repository: GameRepository) -> None:
        self._game_repository = game_repository
        self._latest: dict[str, Game] = {}
        self._subscribers: defaultdict[str, set[ChannelSubscription]] = defaultdict(set)

    def subscriber_count(self, game_id: str) -> int:
        return len(self._subscribers.get(game_id, ()))

    def latest(self, game_id: str) -> Game | None:
        return self._latest.get(game_id)

    def publish(self, game: Game) -> None:
        """Store the snapshot as the game's latest state and wake its subscribers."""
        self._latest[game.game_id] = game
        subscribers = list(self._subscribers.get(game.game_id, ()))
        for subscription in subscribers:
            subscription.offer(game)
        logger.debug(
            "channel publish",
            game_id=game.game_id,
            subscribers=len(subscribers),
            has_request=game.spin_request is not None,
        )

    async def subscribe(self, game_id: str) -> ChannelSubscription:
        """Subscribe to a game. The current snapshot, if any, is delivered first."""
        subscription = ChannelSubscription(self, game_id)
        self._subscribers[game_id].add(subscription)
        current = self._latest.get(game_id)
        if current is None:
            current = await self._game_repository.get_game(game_id)
            if current is not None:
                self._latest.setdefault(game_id, current)
                current = self._latest[game_id]
        if current is not None:
            subscription.offer(current)
        return subscription

    def unsubscribe(self, subscription: ChannelSubscription) -> None:
        subscribers = self._subscribers.get(subscription.game_id)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.game_id]

    async def clear_request(self, game_id: str, timestamp: datetime) -> bool:
        """Empty the spin slot if it still holds the request with this timestamp.

        A newer request that overwrote the slot is left alone. Returns True when
        the slot was cleared.
        """

        def _clear(game: Game | None) -> Game | None:
            if game is None or game.spin_request is None or game.spin_request.timestamp != timestamp:
                return None
            return game.model_copy(update={"spin_request": None})

        updated = await self._game_repository.update_game(game_id, _clear)
        if updated is None:
            logger.debug("spin slot already moved on", game_id=game_id)
            return False
        self.publish(updated)
        logger.info("spin slot cleared", game_id=game_id)
        return True
