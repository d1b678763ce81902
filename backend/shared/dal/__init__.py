"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.customer_repository import CustomerRepository
from shared.dal.game_repository import GameMutation, GameRepository, SpinMutation
from shared.dal.models import Customer, Game, GameStatus, Segment, SpinRequest

__all__ = [
    "Customer",
    "CustomerRepository",
    "Game",
    "GameMutation",
    "GameRepository",
    "GameStatus",
    "Segment",
    "SpinMutation",
    "SpinRequest",
]
