from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING, TypeVar

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from prizewheel.client.backend import ALREADY_PLAYED_CODE
from prizewheel.logic.exceptions import (
    CustomerAlreadyPlayedError,
    DuplicateRegistrationError,
    GameNotFoundError,
    InvalidSpinError,
    NoEligiblePrizesError,
)
from prizewheel.logic.timer import TimingConfig
from prizewheel.messaging.router import DisplayRouter
from prizewheel.notify import HttpPrizeNotifier
from prizewheel.server.settings import WheelServerSettings
from prizewheel.server.websocket import websocket_endpoint
from prizewheel.session.channel import SpinChannel
from prizewheel.session.committer import SpinCommitter
from prizewheel.session.hub import DisplayHub
from prizewheel.session.registration import register_customer
from prizewheel.session.types import Registration, SpinCommitRequest
from shared.db import Database, SqliteCustomerRepository, SqliteGameRepository
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pydantic import BaseModel
    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from prizewheel.notify import PrizeNotifier
    from shared.dal import CustomerRepository, GameRepository

_MAX_REQUEST_BODY_SIZE = 4096

T = TypeVar("T", bound="BaseModel")


def _error(message: str, status_code: int, code: str | None = None) -> JSONResponse:
    body = {"error": message}
    if code is not None:
        body["code"] = code
    return JSONResponse(body, status_code=status_code)


async def _parse_body(request: Request, model: type[T]) -> T | None:
    """Validate a small JSON body. Returns None when it is missing, too large or invalid."""
    try:
        raw_body = await request.body()
        if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
            return None
        return model.model_validate(json.loads(raw_body))
    except (ValueError, TypeError, json.JSONDecodeError, UnicodeDecodeError, ValidationError):  # fmt: skip
        return None


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def commit_spin(request: Request) -> JSONResponse:
    committer: SpinCommitter = request.app.state.committer

    body = await _parse_body(request, SpinCommitRequest)
    if body is None:
        return _error("Invalid request body", 400)

    structlog.contextvars.bind_contextvars(game_id=body.game_id, customer_id=body.customer_id)
    try:
        spin_request = await committer.commit(
            body.game_id,
            body.customer_id,
            body.winning_id,
            is_real_prize=body.is_real_prize,
            stock_controlled=body.use_stock_control,
            prize_name=body.prize_name,
        )
    except GameNotFoundError as e:
        return _error(str(e), 404)
    except CustomerAlreadyPlayedError as e:
        return _error(str(e), 409, ALREADY_PLAYED_CODE)
    except InvalidSpinError as e:
        logger.warning("spin rejected", error=str(e))
        return _error(str(e), 409, "invalid_spin")
    finally:
        structlog.contextvars.unbind_contextvars("game_id", "customer_id")

    return JSONResponse({"success": True, "spinRequest": spin_request.to_wire()})


async def get_game(request: Request) -> JSONResponse:
    game_repository: GameRepository = request.app.state.game_repository
    game = await game_repository.get_game(request.path_params["game_id"])
    if game is None:
        return _error("Game not found", 404)
    return JSONResponse(game.to_wire())


async def find_customer(request: Request) -> JSONResponse:
    customer_repository: CustomerRepository = request.app.state.customer_repository
    email = request.query_params.get("email", "").strip()
    if not email:
        return _error("Missing email parameter", 400)
    customer = await customer_repository.find_by_email(request.path_params["game_id"], email)
    if customer is None:
        return _error("Customer not found", 404)
    return JSONResponse({"customerId": customer.customer_id})


async def create_customer(request: Request) -> JSONResponse:
    game_id = request.path_params["game_id"]
    registration = await _parse_body(request, Registration)
    if registration is None:
        return _error("Invalid request body", 400)

    try:
        customer = await register_customer(
            request.app.state.game_repository,
            request.app.state.customer_repository,
            game_id,
            registration,
        )
    except GameNotFoundError as e:
        return _error(str(e), 404)
    except DuplicateRegistrationError as e:
        return _error(str(e), 409, "duplicate_registration")
    return JSONResponse({"customerId": customer.customer_id}, status_code=201)


async def demo_spin(request: Request) -> JSONResponse:
    committer: SpinCommitter = request.app.state.committer
    try:
        spin_request = await committer.demo_spin(request.path_params["game_id"])
    except GameNotFoundError as e:
        return _error(str(e), 404)
    except (InvalidSpinError, NoEligiblePrizesError) as e:
        return _error(str(e), 409, "invalid_spin")
    return JSONResponse({"success": True, "spinRequest": spin_request.to_wire()})


def create_app(
    settings: WheelServerSettings | None = None,
    game_repository: GameRepository | None = None,
    customer_repository: CustomerRepository | None = None,
    notifier: PrizeNotifier | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = WheelServerSettings()

    # When the app opens its own database, it owns the DB lifecycle.
    owned_db: Database | None = None
    if game_repository is None or customer_repository is None:
        db = Database(settings.database_path)
        db.connect()
        owned_db = db
        game_repository = game_repository or SqliteGameRepository(db)
        customer_repository = customer_repository or SqliteCustomerRepository(db)

    if notifier is None and settings.notify_url:
        notifier = HttpPrizeNotifier(settings.notify_url, timeout=settings.notify_timeout_seconds)

    timing = TimingConfig.from_settings(settings)
    channel = SpinChannel(game_repository)
    committer = SpinCommitter(game_repository, channel, notifier=notifier)
    hub = DisplayHub(channel, committer, customer_repository, timing=timing)
    router = DisplayRouter(hub)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, router)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/spin", commit_spin, methods=["POST"]),
        Route("/games/{game_id}", get_game, methods=["GET"]),
        Route("/games/{game_id}/customers", find_customer, methods=["GET"]),
        Route("/games/{game_id}/customers", create_customer, methods=["POST"]),
        Route("/games/{game_id}/demo-spin", demo_spin, methods=["POST"]),
        WebSocketRoute("/ws/{game_id}", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        await hub.detach_all()
        await committer.drain_notifications()
        if owned_db is not None:
            owned_db.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.game_repository = game_repository
    app.state.customer_repository = customer_repository
    app.state.channel = channel
    app.state.committer = committer
    app.state.hub = hub

    logger.info("wheel server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = WheelServerSettings()
    setup_logging(settings.log_dir)
    return create_app(settings=settings)
