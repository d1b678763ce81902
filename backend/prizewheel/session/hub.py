"""
Server side of the TV displays.

Each connected display gets its own DisplayStateMachine, subscribed to the
game's channel, and every state change is pushed to its connection. The
machines are independent: two TVs showing the same game each animate the
request once.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from prizewheel.logic.timer import PhaseTimer, TimingConfig
from prizewheel.messaging.types import DisplayStateMessage, PongMessage
from prizewheel.session.display import DisplayStateMachine

if TYPE_CHECKING:
    from typing import Any

    from prizewheel.messaging.protocol import ConnectionProtocol
    from prizewheel.session.channel import ChannelSubscription, SpinChannel
    from prizewheel.session.committer import SpinCommitter
    from prizewheel.session.display import DisplaySnapshot
    from shared.dal import CustomerRepository

logger = structlog.get_logger()


class _AttachedDisplay:
    __slots__ = ("connection", "machine", "pump", "subscription")

    def __init__(
        self,
        connection: ConnectionProtocol,
        machine: DisplayStateMachine,
        subscription: ChannelSubscription,
        pump: asyncio.Task[None],
    ) -> None:
        self.connection = connection
        self.machine = machine
        self.subscription = subscription
        self.pump = pump


async def send_to_connection(connection: ConnectionProtocol, message: dict[str, Any]) -> None:
    """Send a message, ignoring connections that went away mid-send."""
    with contextlib.suppress(RuntimeError, OSError):
        await connection.send_message(message)


class DisplayHub:
    def __init__(
        self,
        channel: SpinChannel,
        committer: SpinCommitter,
        customer_repository: CustomerRepository,
        timing: TimingConfig | None = None,
    ) -> None:
        self._channel = channel
        self._committer = committer
        self._customer_repository = customer_repository
        self._timing = timing or TimingConfig()
        self._displays: dict[str, _AttachedDisplay] = {}

    @property
    def committer(self) -> SpinCommitter:
        return self._committer

    @property
    def display_count(self) -> int:
        return len(self._displays)

    def get_machine(self, connection_id: str) -> DisplayStateMachine | None:
        attached = self._displays.get(connection_id)
        return attached.machine if attached else None

    async def attach(self, connection: ConnectionProtocol) -> bool:
        """Start driving a display for the connection's game.

        Returns False, without attaching, when the game does not exist.
        """
        game_id = connection.game_id
        subscription = await self._channel.subscribe(game_id)
        if self._channel.latest(game_id) is None:
            subscription.close()
            return False

        async def push(snapshot: DisplaySnapshot) -> None:
            await send_to_connection(connection, DisplayStateMessage.from_snapshot(snapshot).model_dump(mode="json"))

        machine = DisplayStateMachine(
            game_id,
            clear_request=self._channel.clear_request,
            lookup_customer=self._customer_repository.get_customer,
            timing=self._timing,
            timer=PhaseTimer(),
            on_change=push,
        )
        await push(machine.snapshot())
        pump = asyncio.create_task(self._pump(subscription, machine))
        self._displays[connection.connection_id] = _AttachedDisplay(connection, machine, subscription, pump)
        logger.info("display attached", game_id=game_id, connection_id=connection.connection_id)
        return True

    async def detach(self, connection: ConnectionProtocol) -> None:
        attached = self._displays.pop(connection.connection_id, None)
        if attached is None:
            return
        attached.subscription.close()
        attached.machine.close()
        attached.pump.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await attached.pump
        logger.info("display detached", game_id=connection.game_id, connection_id=connection.connection_id)

    async def detach_all(self) -> None:
        for attached in list(self._displays.values()):
            await self.detach(attached.connection)

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await send_to_connection(connection, PongMessage().model_dump(mode="json"))

    async def _pump(self, subscription: ChannelSubscription, machine: DisplayStateMachine) -> None:
        async for game in subscription:
            await machine.request_observed(game)
