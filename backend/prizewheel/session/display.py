"""
TV display state machine.

    IDLE --request_observed--> SPINNING --animation_elapsed--> SHOWING_RESULT
      ^                                                              |
      +-------------------- result_window_elapsed -------------------+

The display is driven purely by game snapshots from the channel. A request is
new when its timestamp differs from the last one this display started; the
same timestamp is never animated twice, and requests that arrive while the
display is busy are ignored. When the display returns to IDLE it looks at the
newest snapshot it has received, so a request that overwrote the slot during
the result window is picked up then.

The outcome comes from the winning segment id in the request, never from the
player, so both screens resolve it through the same resolve_outcome call.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from prizewheel.logic.outcome import SpinOutcome, resolve_outcome
from prizewheel.logic.timer import TimingConfig

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from prizewheel.logic.timer import PhaseTimer
    from shared.dal.models import Customer, Game, Segment, SpinRequest

logger = structlog.get_logger()


class DisplayState(StrEnum):
    IDLE = "idle"
    SPINNING = "spinning"
    SHOWING_RESULT = "showing_result"


class DisplaySnapshot(BaseModel, frozen=True):
    """What the TV currently shows."""

    game_id: str
    state: DisplayState
    timestamp: datetime | None = None
    winning_id: str | None = None
    player_name: str | None = None
    outcome: SpinOutcome | None = None


class DisplayStateMachine:
    """
    One TV screen subscribed to one game.

    clear_request empties the spin slot after the animation and
    lookup_customer resolves the player's name; both are best-effort and their
    failures are logged, never raised. With a timer the elapsed events fire
    on their own; without one the caller drives them.
    """

    def __init__(
        self,
        game_id: str,
        *,
        clear_request: Callable[[str, datetime], Awaitable[object]],
        lookup_customer: Callable[[str, str], Awaitable[Customer | None]] | None = None,
        timing: TimingConfig | None = None,
        timer: PhaseTimer | None = None,
        on_change: Callable[[DisplaySnapshot], Awaitable[None]] | None = None,
    ) -> None:
        self.game_id = game_id
        self._clear_request = clear_request
        self._lookup_customer = lookup_customer
        self._timing = timing or TimingConfig()
        self._timer = timer
        self._on_change = on_change

        self._state = DisplayState.IDLE
        self._last_seen: datetime | None = None
        self._latest_game: Game | None = None
        self._request: SpinRequest | None = None
        self._segment: Segment | None = None
        self._player_name: str | None = None
        self._outcome: SpinOutcome | None = None

    @property
    def state(self) -> DisplayState:
        return self._state

    @property
    def last_seen_timestamp(self) -> datetime | None:
        return self._last_seen

    @property
    def outcome(self) -> SpinOutcome | None:
        return self._outcome

    @property
    def player_name(self) -> str | None:
        return self._player_name

    def snapshot(self) -> DisplaySnapshot:
        return DisplaySnapshot(
            game_id=self.game_id,
            state=self._state,
            timestamp=self._request.timestamp if self._request else None,
            winning_id=self._request.winning_id if self._request else None,
            player_name=self._player_name,
            outcome=self._outcome,
        )

    async def request_observed(self, game: Game) -> bool:
        """Handle a game snapshot. Returns True when it started a new animation."""
        self._latest_game = game
        request = game.spin_request
        if request is None or request.timestamp == self._last_seen:
            return False
        if self._state != DisplayState.IDLE:
            logger.info(
                "spin request ignored, display busy",
                game_id=self.game_id,
                state=self._state,
                timestamp=request.timestamp.isoformat(),
            )
            return False

        self._last_seen = request.timestamp
        segment = game.get_segment(request.winning_id)
        if segment is None:
            logger.warning("spin request for unknown segment", game_id=self.game_id, winning_id=request.winning_id)
            await self._clear_slot(request)
            return False

        self._request = request
        self._segment = segment
        self._player_name = None
        self._outcome = None
        self._state = DisplayState.SPINNING
        logger.info("display spinning", game_id=self.game_id, winning_id=segment.id)
        if self._timer is not None:
            self._timer.start(self._timing.spin_animation_seconds, self.animation_elapsed)
        await self._notify()

        name = await self._find_player_name(request)
        if name is not None and self._state == DisplayState.SPINNING and self._request is request:
            self._player_name = name
            await self._notify()
        return True

    async def animation_elapsed(self) -> None:
        if self._state != DisplayState.SPINNING or self._segment is None or self._request is None:
            return
        self._outcome = resolve_outcome(self._segment)
        self._state = DisplayState.SHOWING_RESULT
        logger.info(
            "display showing result",
            game_id=self.game_id,
            prize=self._outcome.name,
            real_prize=self._outcome.is_real_prize,
        )
        if self._timer is not None:
            self._timer.start(self._timing.result_window_seconds, self.result_window_elapsed)
        await self._clear_slot(self._request)
        await self._notify()

    async def result_window_elapsed(self) -> None:
        if self._state != DisplayState.SHOWING_RESULT:
            return
        self._state = DisplayState.IDLE
        self._request = None
        self._segment = None
        self._player_name = None
        self._outcome = None
        await self._notify()
        if self._latest_game is not None:
            await self.request_observed(self._latest_game)

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    async def _clear_slot(self, request: SpinRequest) -> None:
        try:
            await self._clear_request(self.game_id, request.timestamp)
        except Exception:
            # The next request overwrites the slot, and its new timestamp
            # passes the duplicate check.
            logger.exception("failed to clear spin request", game_id=self.game_id)

    async def _find_player_name(self, request: SpinRequest) -> str | None:
        if self._lookup_customer is None:
            return None
        try:
            customer = await self._lookup_customer(self.game_id, request.customer_id)
        except Exception:
            logger.exception("customer lookup failed", game_id=self.game_id, customer_id=request.customer_id)
            return None
        if customer is None or not customer.name:
            return None
        return customer.name

    async def _notify(self) -> None:
        if self._on_change is not None:
            await self._on_change(self.snapshot())
