"""SQLite-backed customer repository."""

from __future__ import annotations

import asyncio
import sqlite3
from typing import TYPE_CHECKING

import structlog

from shared.dal.customer_repository import CustomerRepository
from shared.dal.models import Customer, normalize_email

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteCustomerRepository(CustomerRepository):
    """SQLite implementation of CustomerRepository.

    Emails are stored normalized (trimmed, lower-cased) so duplicate checks
    are a plain equality lookup.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_customer(self, customer: Customer) -> None:
        """Insert a customer. Raises ValueError on duplicate id or unknown game."""
        customer = customer.model_copy(update={"email": normalize_email(customer.email)})
        async with self._lock:
            try:
                with self._db.transaction() as conn:
                    conn.execute(
                        "INSERT INTO customers (id, game_id, email, has_played, data) VALUES (?, ?, ?, ?, ?)",
                        (
                            customer.customer_id,
                            customer.game_id,
                            customer.email,
                            int(customer.has_played),
                            customer.model_dump_json(by_alias=True),
                        ),
                    )
            except sqlite3.IntegrityError as exc:
                raise ValueError(
                    f"Cannot register customer '{customer.customer_id}' for game '{customer.game_id}'",
                ) from exc
        logger.info("customer registered", game_id=customer.game_id, customer_id=customer.customer_id)

    async def get_customer(self, game_id: str, customer_id: str) -> Customer | None:
        row = self._db.connection.execute(
            "SELECT data FROM customers WHERE game_id = ? AND id = ?",
            (game_id, customer_id),
        ).fetchone()
        if row is None:
            return None
        return Customer.model_validate_json(row[0])

    async def find_by_email(self, game_id: str, email: str) -> Customer | None:
        """Return the earliest registration for this email in the game, if any."""
        row = self._db.connection.execute(
            "SELECT data FROM customers WHERE game_id = ? AND email = ? ORDER BY rowid LIMIT 1",
            (game_id, normalize_email(email)),
        ).fetchone()
        if row is None:
            return None
        return Customer.model_validate_json(row[0])
