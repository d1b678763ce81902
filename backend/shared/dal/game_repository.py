"""Abstract interface for campaign persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import Customer, Game

# Receives the game and customer as read inside the transaction (None when
# missing) and returns the records to write back.
SpinMutation = Callable[["Game | None", "Customer | None"], "tuple[Game, Customer]"]

# Receives the game as read inside the transaction and returns the new record,
# or None to leave it untouched.
GameMutation = Callable[["Game | None"], "Game | None"]


class GameRepository(ABC):
    """Abstract interface for campaign persistence.

    Mutations run inside a transaction scoped to a single game: the mutation
    callable sees a fresh read, and any exception it raises rolls back every
    write.
    """

    @abstractmethod
    async def create_game(self, game: Game) -> None: ...

    @abstractmethod
    async def get_game(self, game_id: str) -> Game | None: ...

    @abstractmethod
    async def update_game(self, game_id: str, mutate: GameMutation) -> Game | None: ...

    @abstractmethod
    async def run_spin_transaction(
        self,
        game_id: str,
        customer_id: str,
        mutate: SpinMutation,
    ) -> tuple[Game, Customer]: ...
