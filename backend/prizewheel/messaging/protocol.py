"""Transport-independent display connection."""

from abc import ABC, abstractmethod
from typing import Any

from prizewheel.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    A display's bidirectional connection, bound to one game.

    Lets the hub and router be exercised without a real WebSocket.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str: ...

    @property
    @abstractmethod
    def game_id(self) -> str:
        """Game id from the WebSocket path (/ws/{game_id})."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        return decode(await self.receive_bytes())
