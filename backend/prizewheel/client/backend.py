"""
Spin backends used by the player state machine.

LocalSpinBackend calls the repositories and committer in-process (kiosk mode,
tests). HttpSpinBackend talks to the wheel server over HTTP with httpx and
maps error responses back to the domain exceptions, so the player handles
both the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import TYPE_CHECKING

import httpx
import structlog

from prizewheel.logic.exceptions import (
    CustomerAlreadyPlayedError,
    DuplicateRegistrationError,
    GameNotFoundError,
    InvalidSpinError,
    SpinBackendError,
)
from prizewheel.session.registration import register_customer
from shared.dal.models import Game, SpinRequest

if TYPE_CHECKING:
    from prizewheel.session.committer import SpinCommitter
    from prizewheel.session.types import Registration, SpinCommitRequest
    from shared.dal import CustomerRepository, GameRepository

logger = structlog.get_logger()

ALREADY_PLAYED_CODE = "already_played"


class SpinBackend(ABC):
    """Everything the player needs from the server side."""

    @abstractmethod
    async def get_game(self, game_id: str) -> Game | None: ...

    @abstractmethod
    async def find_customer_by_email(self, game_id: str, email: str) -> str | None:
        """Return the id of an earlier registration with this email, if any."""
        ...

    @abstractmethod
    async def register_customer(self, game_id: str, registration: Registration) -> str:
        """Create a customer and return its id."""
        ...

    @abstractmethod
    async def commit_spin(self, request: SpinCommitRequest) -> SpinRequest: ...


class LocalSpinBackend(SpinBackend):
    def __init__(
        self,
        game_repository: GameRepository,
        customer_repository: CustomerRepository,
        committer: SpinCommitter,
    ) -> None:
        self._game_repository = game_repository
        self._customer_repository = customer_repository
        self._committer = committer

    async def get_game(self, game_id: str) -> Game | None:
        return await self._game_repository.get_game(game_id)

    async def find_customer_by_email(self, game_id: str, email: str) -> str | None:
        customer = await self._customer_repository.find_by_email(game_id, email)
        return customer.customer_id if customer else None

    async def register_customer(self, game_id: str, registration: Registration) -> str:
        customer = await register_customer(self._game_repository, self._customer_repository, game_id, registration)
        return customer.customer_id

    async def commit_spin(self, request: SpinCommitRequest) -> SpinRequest:
        return await self._committer.commit(
            request.game_id,
            request.customer_id,
            request.winning_id,
            is_real_prize=request.is_real_prize,
            stock_controlled=request.use_stock_control,
            prize_name=request.prize_name,
        )


class HttpSpinBackend(SpinBackend):
    """Spin backend over the wheel server's HTTP API.

    Pass an httpx transport (e.g. httpx.ASGITransport) to talk to an
    in-process app.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: object) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                return await client.request(method, path, **kwargs)  # type: ignore[arg-type]
            except httpx.RequestError as e:
                raise SpinBackendError(f"Failed to reach wheel server: {e}") from e

    async def get_game(self, game_id: str) -> Game | None:
        response = await self._request("GET", f"/games/{game_id}")
        if response.status_code == HTTPStatus.NOT_FOUND:
            return None
        _raise_for_unexpected(response, HTTPStatus.OK)
        return Game.model_validate(response.json())

    async def find_customer_by_email(self, game_id: str, email: str) -> str | None:
        response = await self._request("GET", f"/games/{game_id}/customers", params={"email": email})
        if response.status_code == HTTPStatus.NOT_FOUND:
            return None
        _raise_for_unexpected(response, HTTPStatus.OK)
        return response.json()["customerId"]

    async def register_customer(self, game_id: str, registration: Registration) -> str:
        response = await self._request(
            "POST",
            f"/games/{game_id}/customers",
            json=registration.model_dump(by_alias=True),
        )
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise GameNotFoundError(game_id)
        if response.status_code == HTTPStatus.CONFLICT:
            raise DuplicateRegistrationError(_error_text(response))
        _raise_for_unexpected(response, HTTPStatus.CREATED)
        return response.json()["customerId"]

    async def commit_spin(self, request: SpinCommitRequest) -> SpinRequest:
        response = await self._request("POST", "/spin", json=request.model_dump(by_alias=True))
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise GameNotFoundError(request.game_id)
        if response.status_code == HTTPStatus.CONFLICT:
            if response.json().get("code") == ALREADY_PLAYED_CODE:
                raise CustomerAlreadyPlayedError(request.customer_id)
            raise InvalidSpinError(_error_text(response))
        if response.status_code == HTTPStatus.BAD_REQUEST:
            raise InvalidSpinError(_error_text(response))
        _raise_for_unexpected(response, HTTPStatus.OK)
        return SpinRequest.model_validate(response.json()["spinRequest"])


def _error_text(response: httpx.Response) -> str:
    try:
        return str(response.json().get("error", response.text))
    except ValueError:
        return response.text


def _raise_for_unexpected(response: httpx.Response, expected: HTTPStatus) -> None:
    if response.status_code != expected:
        logger.warning("unexpected wheel server response", status=response.status_code, url=str(response.url))
        raise SpinBackendError(f"Wheel server returned {response.status_code}: {response.text}")
