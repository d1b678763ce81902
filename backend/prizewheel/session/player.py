"""
Mobile player state machine.

    FORM --submit--> SUBMITTING --> READY --spin--> SPINNING --animation_elapsed--> SUCCESS
                          |                             |
                          +--> ALREADY_PLAYED <---------+
                          +--> ERROR <------------------+   (retry -> FORM)

The player draws the prize itself, commits it, and reveals it after the same
animation window the display uses. It never waits for, or hears from, the
display: both screens agree because they resolve the same winning segment
with the same function and wait the same configured duration.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from prizewheel.logic.exceptions import (
    CustomerAlreadyPlayedError,
    DuplicateRegistrationError,
    GameNotFoundError,
    InvalidSpinError,
    SpinBackendError,
    SpinError,
)
from prizewheel.logic.outcome import resolve_outcome
from prizewheel.logic.selector import select_prize
from prizewheel.logic.timer import TimingConfig
from prizewheel.session.registration import requires_unique_email
from prizewheel.session.types import SpinCommitRequest

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from prizewheel.client.backend import SpinBackend
    from prizewheel.logic.outcome import SpinOutcome
    from prizewheel.logic.timer import PhaseTimer
    from prizewheel.session.types import Registration
    from shared.dal.models import Game

logger = structlog.get_logger()

# A wheel with a single slice is a configuration mistake, not a game.
MIN_SEGMENTS = 2


class PlayerState(StrEnum):
    FORM = "form"
    SUBMITTING = "submitting"
    READY = "ready"
    SPINNING = "spinning"
    SUCCESS = "success"
    ALREADY_PLAYED = "already_played"
    ERROR = "error"


class PlayerStateMachine:
    """One visitor's phone playing one game."""

    def __init__(
        self,
        game_id: str,
        backend: SpinBackend,
        *,
        timing: TimingConfig | None = None,
        timer: PhaseTimer | None = None,
        rng: random.Random | None = None,
        on_change: Callable[[PlayerState], Awaitable[None]] | None = None,
    ) -> None:
        self.game_id = game_id
        self._backend = backend
        self._timing = timing or TimingConfig()
        self._timer = timer
        self._rng = rng
        self._on_change = on_change

        self._state = PlayerState.FORM
        self._customer_id: str | None = None
        self._registered_email: str | None = None
        self._outcome: SpinOutcome | None = None
        self._timestamp: datetime | None = None
        self._error: str | None = None

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def customer_id(self) -> str | None:
        return self._customer_id

    @property
    def outcome(self) -> SpinOutcome | None:
        """The resolved outcome, known from the commit on; revealed in SUCCESS."""
        return self._outcome

    @property
    def spin_timestamp(self) -> datetime | None:
        return self._timestamp

    @property
    def error(self) -> str | None:
        return self._error

    async def submit(self, registration: Registration) -> None:
        if self._state != PlayerState.FORM:
            logger.debug("submit ignored", game_id=self.game_id, state=self._state)
            return
        await self._set_state(PlayerState.SUBMITTING)

        # After a retry, the same visitor resubmitting is not a duplicate of themselves.
        if self._customer_id is not None and registration.email == self._registered_email:
            await self._set_state(PlayerState.READY)
            return

        try:
            game = await self._load_game()
            if requires_unique_email(game, registration.email):
                existing = await self._backend.find_customer_by_email(self.game_id, registration.email)
                if existing is not None:
                    await self._set_state(PlayerState.ALREADY_PLAYED)
                    return
            self._customer_id = await self._backend.register_customer(self.game_id, registration)
        except DuplicateRegistrationError:
            await self._set_state(PlayerState.ALREADY_PLAYED)
            return
        except (SpinError, SpinBackendError) as e:
            await self._fail(e)
            return
        except Exception as e:
            logger.exception("unexpected player failure", game_id=self.game_id, state=self._state)
            await self._fail(e)
            return

        self._registered_email = registration.email
        logger.info("player registered", game_id=self.game_id, customer_id=self._customer_id)
        await self._set_state(PlayerState.READY)

    async def spin(self) -> None:
        """Draw, commit, and start the local animation timer."""
        if self._state != PlayerState.READY or self._customer_id is None:
            logger.debug("spin ignored", game_id=self.game_id, state=self._state)
            return
        await self._set_state(PlayerState.SPINNING)

        try:
            game = await self._load_game()
            segment = select_prize(game.segments, self._rng)
            outcome = resolve_outcome(segment)
            request = await self._backend.commit_spin(
                SpinCommitRequest(
                    game_id=self.game_id,
                    customer_id=self._customer_id,
                    winning_id=segment.id,
                    prize_name=outcome.name,
                    is_real_prize=segment.is_real_prize,
                    use_stock_control=segment.stock_controlled,
                ),
            )
        except CustomerAlreadyPlayedError:
            await self._set_state(PlayerState.ALREADY_PLAYED)
            return
        except (SpinError, SpinBackendError) as e:
            await self._fail(e)
            return
        except Exception as e:
            logger.exception("unexpected player failure", game_id=self.game_id, state=self._state)
            await self._fail(e)
            return

        self._outcome = outcome
        self._timestamp = request.timestamp
        logger.info("player spin committed", game_id=self.game_id, winning_id=segment.id)
        if self._timer is not None:
            self._timer.start(self._timing.spin_animation_seconds, self.animation_elapsed)

    async def animation_elapsed(self) -> None:
        if self._state != PlayerState.SPINNING or self._outcome is None:
            return
        await self._set_state(PlayerState.SUCCESS)

    async def retry(self) -> None:
        if self._state != PlayerState.ERROR:
            return
        self._error = None
        await self._set_state(PlayerState.FORM)

    def close(self) -> None:
        """Drop the local timer. A committed spin stays committed."""
        if self._timer is not None:
            self._timer.cancel()

    async def _load_game(self) -> Game:
        game = await self._backend.get_game(self.game_id)
        if game is None:
            raise GameNotFoundError(self.game_id)
        if len(game.segments) < MIN_SEGMENTS:
            raise InvalidSpinError(f"game '{self.game_id}' is not configured")
        return game

    async def _fail(self, error: Exception) -> None:
        logger.warning("player error", game_id=self.game_id, state=self._state, error=str(error))
        self._error = str(error)
        await self._set_state(PlayerState.ERROR)

    async def _set_state(self, state: PlayerState) -> None:
        self._state = state
        if self._on_change is not None:
            await self._on_change(state)
