from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from prizewheel.logic.exceptions import SpinError
from prizewheel.messaging.types import (
    DemoSpinMessage,
    DisplayErrorCode,
    ErrorMessage,
    PingMessage,
    parse_client_message,
)
from prizewheel.session.display import DisplayState
from prizewheel.session.hub import send_to_connection

if TYPE_CHECKING:
    from prizewheel.messaging.protocol import ConnectionProtocol
    from prizewheel.session.hub import DisplayHub

logger = structlog.get_logger()


class DisplayRouter:
    """
    Routes display connection events and messages to the hub.

    Holds no state of its own, so it can be tested with mock connections.
    """

    def __init__(self, hub: DisplayHub) -> None:
        self._hub = hub

    async def handle_message(self, connection: ConnectionProtocol, raw_message: dict[str, Any]) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await self._send_error(connection, DisplayErrorCode.INVALID_MESSAGE, str(e))
            return

        if isinstance(message, PingMessage):
            await self._hub.handle_ping(connection)
        elif isinstance(message, DemoSpinMessage):
            await self._handle_demo_spin(connection)

    async def _handle_demo_spin(self, connection: ConnectionProtocol) -> None:
        # Only a wheel at rest may start a demo spin.
        machine = self._hub.get_machine(connection.connection_id)
        if machine is None or machine.state != DisplayState.IDLE:
            logger.info("demo spin ignored, display busy", game_id=connection.game_id)
            await self._send_error(connection, DisplayErrorCode.DEMO_SPIN_FAILED, "display is busy")
            return
        try:
            await self._hub.committer.demo_spin(connection.game_id)
        except SpinError as e:
            logger.warning("demo spin rejected", game_id=connection.game_id, error=str(e))
            await self._send_error(connection, DisplayErrorCode.DEMO_SPIN_FAILED, str(e))

    async def handle_connect(self, connection: ConnectionProtocol) -> bool:
        """Attach the display. Returns False when its game does not exist."""
        if await self._hub.attach(connection):
            return True
        await self._send_error(connection, DisplayErrorCode.GAME_NOT_FOUND, f"game '{connection.game_id}' not found")
        return False

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._hub.detach(connection)

    async def _send_error(self, connection: ConnectionProtocol, code: DisplayErrorCode, message: str) -> None:
        await send_to_connection(connection, ErrorMessage(code=code, message=message).model_dump(mode="json"))
