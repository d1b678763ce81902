"""Tests for SqliteCustomerRepository."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shared.dal.models import Customer, Game
from shared.db.connection import Database
from shared.db.customer_repository import SqliteCustomerRepository
from shared.db.game_repository import SqliteGameRepository

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
async def repo(tmp_path: Path):
    db = Database(tmp_path / "test.db")
    db.connect()
    games = SqliteGameRepository(db)
    await games.create_game(Game(game_id="g1"))
    await games.create_game(Game(game_id="g2"))
    yield SqliteCustomerRepository(db)
    db.close()


def _customer(customer_id: str = "c1", game_id: str = "g1", email: str = "ana@example.com") -> Customer:
    return Customer(customer_id=customer_id, game_id=game_id, name="Ana", email=email)


class TestCreateCustomer:
    async def test_create_and_get(self, repo: SqliteCustomerRepository) -> None:
        await repo.create_customer(_customer())

        result = await repo.get_customer("g1", "c1")
        assert result is not None
        assert result.name == "Ana"
        assert result.has_played is False

    async def test_email_is_stored_normalized(self, repo: SqliteCustomerRepository) -> None:
        await repo.create_customer(_customer(email="  Ana@Example.COM "))

        result = await repo.get_customer("g1", "c1")
        assert result is not None
        assert result.email == "ana@example.com"

    async def test_duplicate_id_raises(self, repo: SqliteCustomerRepository) -> None:
        await repo.create_customer(_customer())
        with pytest.raises(ValueError, match="Cannot register"):
            await repo.create_customer(_customer(email="other@example.com"))

    async def test_unknown_game_raises(self, repo: SqliteCustomerRepository) -> None:
        with pytest.raises(ValueError, match="Cannot register"):
            await repo.create_customer(_customer(game_id="missing"))

    async def test_same_id_in_different_games(self, repo: SqliteCustomerRepository) -> None:
        await repo.create_customer(_customer(game_id="g1"))
        await repo.create_customer(_customer(game_id="g2"))

        assert await repo.get_customer("g1", "c1") is not None
        assert await repo.get_customer("g2", "c1") is not None


class TestFindByEmail:
    async def test_matches_case_insensitively(self, repo: SqliteCustomerRepository) -> None:
        await repo.create_customer(_customer())

        result = await repo.find_by_email("g1", " ANA@example.com")
        assert result is not None
        assert result.customer_id == "c1"

    async def test_scoped_to_game(self, repo: SqliteCustomerRepository) -> None:
        await repo.create_customer(_customer(game_id="g1"))

        assert await repo.find_by_email("g2", "ana@example.com") is None

    async def test_returns_earliest_registration(self, repo: SqliteCustomerRepository) -> None:
        await repo.create_customer(_customer(customer_id="first"))
        await repo.create_customer(_customer(customer_id="second"))

        result = await repo.find_by_email("g1", "ana@example.com")
        assert result is not None
        assert result.customer_id == "first"

    async def test_unknown_email(self, repo: SqliteCustomerRepository) -> None:
        assert await repo.find_by_email("g1", "nobody@example.com") is None
