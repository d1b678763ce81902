"""
Fixed-duration phase timers shared by the display and the player.

Both screens wait the same spin animation window before revealing the
outcome. They never coordinate at runtime; they agree because both read the
same TimingConfig. The display then holds the result for a second window
before returning to idle.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from prizewheel.server.settings import WheelServerSettings

SPIN_ANIMATION_SECONDS = 10.0
RESULT_WINDOW_SECONDS = 15.0


class TimingConfig(BaseModel, frozen=True):
    """Durations of the timed phases of a spin."""

    spin_animation_seconds: float = Field(default=SPIN_ANIMATION_SECONDS, ge=0)
    result_window_seconds: float = Field(default=RESULT_WINDOW_SECONDS, ge=0)

    @classmethod
    def from_settings(cls, settings: WheelServerSettings) -> TimingConfig:
        """Build TimingConfig from server settings."""
        return cls(
            spin_animation_seconds=settings.spin_animation_seconds,
            result_window_seconds=settings.result_window_seconds,
        )


class PhaseTimer:
    """
    Run one timed phase at a time.

    Starting a new phase cancels the pending one, so a state machine can never
    receive a stale elapsed event from a phase it already left.
    """

    def __init__(self) -> None:
        self._active_task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._active_task is not None and not self._active_task.done()

    def start(self, duration: float, on_elapsed: Callable[[], Awaitable[None]]) -> None:
        """Start a phase of the given duration, replacing any pending one."""
        self.cancel()
        self._active_task = asyncio.create_task(self._run_timer(duration, on_elapsed))

    def cancel(self) -> None:
        """Cancel the pending phase, if any. Has no effect on server state."""
        if self._active_task is not None and not self._active_task.done():
            self._active_task.cancel()
        self._active_task = None

    async def _run_timer(self, seconds: float, on_elapsed: Callable[[], Awaitable[None]]) -> None:
        try:
            await asyncio.sleep(seconds)
            # Release the slot first: the callback may start the next phase.
            self._active_task = None
            await on_elapsed()
        except asyncio.CancelledError:
            pass
        except (RuntimeError, OSError, ConnectionError, ValueError):  # fmt: skip
            logger.exception("timer callback failed")
