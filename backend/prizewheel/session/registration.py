"""Customer registration with the one-play-per-email rule."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from prizewheel.logic.exceptions import DuplicateRegistrationError, GameNotFoundError
from shared.dal.models import Customer, normalize_email

if TYPE_CHECKING:
    from prizewheel.session.types import Registration
    from shared.dal import CustomerRepository, Game, GameRepository

logger = structlog.get_logger()


def requires_unique_email(game: Game, email: str) -> bool:
    """Demo games and exempted emails may register any number of times."""
    return not game.is_demo and not game.is_exempted(email)


async def register_customer(
    game_repository: GameRepository,
    customer_repository: CustomerRepository,
    game_id: str,
    registration: Registration,
) -> Customer:
    """Create a customer record for a game.

    Raises GameNotFoundError for an unknown game and DuplicateRegistrationError
    when the email already registered for a game that enforces one play per
    email.
    """
    game = await game_repository.get_game(game_id)
    if game is None:
        raise GameNotFoundError(game_id)

    email = normalize_email(registration.email)
    if requires_unique_email(game, email):
        existing = await customer_repository.find_by_email(game_id, email)
        if existing is not None:
            logger.info("duplicate registration", game_id=game_id, customer_id=existing.customer_id)
            raise DuplicateRegistrationError(f"email already registered for game '{game_id}'")

    customer = Customer(
        customer_id=uuid4().hex,
        game_id=game_id,
        name=registration.name,
        email=email,
        phone=registration.phone,
        birthdate=registration.birthdate,
        registered_at=datetime.now(UTC),
    )
    try:
        await customer_repository.create_customer(customer)
    except ValueError as e:
        # The only foreign key is the game, which may have been removed since the read.
        raise GameNotFoundError(game_id) from e
    return customer
