from __future__ import annotations

import contextlib
import re
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from prizewheel.messaging.encoder import DecodeError, decode
from prizewheel.messaging.protocol import ConnectionProtocol
from prizewheel.messaging.types import DisplayErrorCode, ErrorMessage
from shared.dal.models import ID_PATTERN, MAX_ID_LENGTH

logger = structlog.get_logger()

if TYPE_CHECKING:
    from prizewheel.messaging.router import DisplayRouter

_GAME_ID_PATTERN = re.compile(ID_PATTERN)

# Disconnect after this many consecutive decode errors
_MAX_DECODE_ERRORS = 5

CLOSE_INVALID_GAME_ID = 4000
CLOSE_GAME_NOT_FOUND = 4004
CLOSE_TOO_MANY_DECODE_ERRORS = 4005


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, game_id: str, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._game_id = game_id
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def game_id(self) -> str:
        return self._game_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, router: DisplayRouter) -> None:
    """Serve one TV display for the game in the URL path."""
    game_id = websocket.path_params["game_id"]
    if not _GAME_ID_PATTERN.match(game_id) or len(game_id) > MAX_ID_LENGTH:
        await websocket.close(code=CLOSE_INVALID_GAME_ID, reason="invalid_game_id")
        return

    await websocket.accept()

    connection = WebSocketConnection(websocket, game_id=game_id)
    structlog.contextvars.bind_contextvars(game_id=game_id, connection_id=connection.connection_id)
    logger.info("display connected")
    if not await router.handle_connect(connection):
        await connection.close(code=CLOSE_GAME_NOT_FOUND, reason="game_not_found")
        structlog.contextvars.clear_contextvars()
        return

    decode_errors = 0
    try:
        while True:
            raw = await connection.receive_bytes()
            try:
                data = decode(raw)
            except DecodeError as e:
                decode_errors += 1
                logger.warning("decode error", error=str(e), strikes=decode_errors)
                await connection.send_message(
                    ErrorMessage(code=DisplayErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(mode="json"),
                )
                if decode_errors >= _MAX_DECODE_ERRORS:
                    logger.info("too many decode errors, disconnecting")
                    await connection.close(code=CLOSE_TOO_MANY_DECODE_ERRORS, reason="too_many_decode_errors")
                    return
                continue

            decode_errors = 0
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("display disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
