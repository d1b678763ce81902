"""SQLite-backed game repository."""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
from typing import TYPE_CHECKING

import structlog

from shared.dal.game_repository import GameMutation, GameRepository, SpinMutation
from shared.dal.models import Customer, Game

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteGameRepository(GameRepository):
    """SQLite implementation of GameRepository.

    Stores each game as a JSON document. Writes to the same game serialize on
    a per-game asyncio lock and run inside an immediate SQLite transaction, so
    every read-modify-write sees the result of the previous one. Different
    games hold different locks. A lock lives only while some write holds or
    waits on it, so writes against unknown game ids leave nothing behind.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}  # game_id -> writers holding or waiting

    @contextlib.asynccontextmanager
    async def _game_lock(self, game_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(game_id)
        if lock is None:
            lock = self._locks[game_id] = asyncio.Lock()
        self._lock_users[game_id] = self._lock_users.get(game_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[game_id] -= 1
            if not self._lock_users[game_id]:
                del self._lock_users[game_id]
                del self._locks[game_id]

    async def create_game(self, game: Game) -> None:
        """Insert a game record. Raises ValueError on duplicate game_id."""
        async with self._game_lock(game.game_id):
            try:
                with self._db.transaction() as conn:
                    conn.execute(
                        "INSERT INTO games (id, status, data) VALUES (?, ?, ?)",
                        (game.game_id, game.status.value, game.model_dump_json(by_alias=True)),
                    )
            except sqlite3.IntegrityError as exc:
                raise ValueError(f"Game with id '{game.game_id}' already exists") from exc

    async def get_game(self, game_id: str) -> Game | None:
        """Snapshot read of a game; may be stale by the time it is used."""
        return _read_game(self._db.connection, game_id)

    async def update_game(self, game_id: str, mutate: GameMutation) -> Game | None:
        """Apply mutate to a fresh read of the game inside one transaction.

        Returns the written game, or None when mutate left it untouched.
        """
        async with self._game_lock(game_id):
            with self._db.transaction() as conn:
                updated = mutate(_read_game(conn, game_id))
                if updated is None:
                    return None
                _write_game(conn, updated)
        return updated

    async def run_spin_transaction(
        self,
        game_id: str,
        customer_id: str,
        mutate: SpinMutation,
    ) -> tuple[Game, Customer]:
        """Read game and customer, apply mutate, and write both back atomically.

        The customer row is upserted: a spin may arrive for a customer that was
        never registered through this service.
        """
        async with self._game_lock(game_id):
            with self._db.transaction() as conn:
                game = _read_game(conn, game_id)
                customer = _read_customer(conn, game_id, customer_id)
                new_game, new_customer = mutate(game, customer)
                _write_game(conn, new_game)
                conn.execute(
                    "INSERT INTO customers (id, game_id, email, has_played, data) VALUES (?, ?, ?, ?, ?) "
                    "ON CONFLICT (game_id, id) DO UPDATE SET "
                    "email = excluded.email, has_played = excluded.has_played, data = excluded.data",
                    (
                        new_customer.customer_id,
                        new_customer.game_id,
                        new_customer.email,
                        int(new_customer.has_played),
                        new_customer.model_dump_json(by_alias=True),
                    ),
                )
        return new_game, new_customer


def _read_game(conn: sqlite3.Connection, game_id: str) -> Game | None:
    row = conn.execute("SELECT data FROM games WHERE id = ?", (game_id,)).fetchone()
    if row is None:
        return None
    return Game.model_validate_json(row[0])


def _read_customer(conn: sqlite3.Connection, game_id: str, customer_id: str) -> Customer | None:
    row = conn.execute(
        "SELECT data FROM customers WHERE game_id = ? AND id = ?",
        (game_id, customer_id),
    ).fetchone()
    if row is None:
        return None
    return Customer.model_validate_json(row[0])


def _write_game(conn: sqlite3.Connection, game: Game) -> None:
    cursor = conn.execute(
        "UPDATE games SET status = ?, data = ? WHERE id = ?",
        (game.status.value, game.model_dump_json(by_alias=True), game.game_id),
    )
    if cursor.rowcount == 0:
        raise LookupError(f"game '{game.game_id}' disappeared during transaction")
