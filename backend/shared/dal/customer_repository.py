"""Abstract interface for customer persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import Customer


class CustomerRepository(ABC):
    """Abstract interface for customer registrations.

    Spin outcome fields are written only through
    GameRepository.run_spin_transaction, never through this interface.
    """

    @abstractmethod
    async def create_customer(self, customer: Customer) -> None: ...

    @abstractmethod
    async def get_customer(self, game_id: str, customer_id: str) -> Customer | None: ...

    @abstractmethod
    async def find_by_email(self, game_id: str, email: str) -> Customer | None: ...
