"""Tests for SqliteGameRepository."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from shared.dal.models import Customer, Game, GameStatus, Segment, SpinRequest
from shared.db.connection import Database
from shared.db.customer_repository import SqliteCustomerRepository
from shared.db.game_repository import SqliteGameRepository

if TYPE_CHECKING:
    from pathlib import Path


def _game(game_id: str = "g1", quantity: int = 3) -> Game:
    return Game(
        game_id=game_id,
        name="Spring campaign",
        segments=(
            Segment(id="mug", name="Mug", is_real_prize=True, probability_weight=10, stock_controlled=True, quantity=quantity),
            Segment(id="none", name="Try again"),
        ),
    )


def _take_one(game: Game | None, customer: Customer | None, customer_id: str = "c1") -> tuple[Game, Customer]:
    assert game is not None
    segment = game.get_segment("mug")
    assert segment is not None
    segments = (segment.model_copy(update={"quantity": (segment.quantity or 0) - 1}), *game.segments[1:])
    new_game = game.model_copy(update={"plays": game.plays + 1, "segments": segments})
    base = customer or Customer(customer_id=customer_id, game_id=game.game_id)
    return new_game, base.model_copy(update={"has_played": True})


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def repo(db: Database) -> SqliteGameRepository:
    return SqliteGameRepository(db)


class TestCreateAndGet:
    async def test_create_and_get_game(self, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())

        result = await repo.get_game("g1")
        assert result is not None
        assert result == _game()

    async def test_get_returns_none_for_unknown(self, repo: SqliteGameRepository) -> None:
        assert await repo.get_game("nonexistent") is None

    async def test_duplicate_create_raises(self, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())
        with pytest.raises(ValueError, match="already exists"):
            await repo.create_game(_game())

    async def test_round_trips_spin_request(self, repo: SqliteGameRepository) -> None:
        ts = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
        game = _game().model_copy(
            update={"spin_request": SpinRequest(timestamp=ts, customer_id="c1", winning_id="mug"), "status": GameStatus.DEMO},
        )
        await repo.create_game(game)

        result = await repo.get_game("g1")
        assert result is not None
        assert result.spin_request == game.spin_request
        assert result.status == GameStatus.DEMO


class TestUpdateGame:
    async def test_applies_mutation(self, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())

        updated = await repo.update_game("g1", lambda g: g.model_copy(update={"name": "Renamed"}))

        assert updated is not None
        assert updated.name == "Renamed"
        stored = await repo.get_game("g1")
        assert stored is not None
        assert stored.name == "Renamed"

    async def test_none_leaves_game_untouched(self, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())

        assert await repo.update_game("g1", lambda _g: None) is None
        assert await repo.get_game("g1") == _game()

    async def test_mutation_sees_missing_game_as_none(self, repo: SqliteGameRepository) -> None:
        seen = []

        def mutate(game: Game | None) -> Game | None:
            seen.append(game)

        await repo.update_game("missing", mutate)
        assert seen == [None]

    async def test_error_in_mutation_propagates(self, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())

        def mutate(_game: Game | None) -> Game | None:
            raise LookupError("nope")

        with pytest.raises(LookupError, match="nope"):
            await repo.update_game("g1", mutate)
        assert await repo.get_game("g1") == _game()


class TestRunSpinTransaction:
    async def test_writes_game_and_customer(self, db: Database, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())

        game, customer = await repo.run_spin_transaction("g1", "c1", _take_one)

        assert game.plays == 1
        assert customer.has_played is True
        stored = await SqliteCustomerRepository(db).get_customer("g1", "c1")
        assert stored is not None
        assert stored.has_played is True

    async def test_updates_existing_customer_in_place(self, db: Database, repo: SqliteGameRepository) -> None:
        customers = SqliteCustomerRepository(db)
        await repo.create_game(_game())
        await customers.create_customer(Customer(customer_id="c1", game_id="g1", name="Ana", email="ana@example.com"))

        await repo.run_spin_transaction("g1", "c1", _take_one)

        stored = await customers.get_customer("g1", "c1")
        assert stored is not None
        assert stored.name == "Ana"
        assert stored.has_played is True
        assert await customers.find_by_email("g1", "ana@example.com") == stored

    async def test_error_rolls_back_both_records(self, db: Database, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())

        def mutate(game: Game | None, customer: Customer | None) -> tuple[Game, Customer]:
            _take_one(game, customer)
            raise ValueError("rejected")

        with pytest.raises(ValueError, match="rejected"):
            await repo.run_spin_transaction("g1", "c1", mutate)

        assert await repo.get_game("g1") == _game()
        assert await SqliteCustomerRepository(db).get_customer("g1", "c1") is None

    async def test_write_to_missing_game_raises(self, repo: SqliteGameRepository) -> None:
        def mutate(_game: Game | None, _customer: Customer | None) -> tuple[Game, Customer]:
            return _game_for_missing(), Customer(customer_id="c1", game_id="ghost")

        with pytest.raises(LookupError, match="disappeared"):
            await repo.run_spin_transaction("ghost", "c1", mutate)

    async def test_concurrent_transactions_see_each_others_writes(self, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game(quantity=50))

        await asyncio.gather(
            *(
                repo.run_spin_transaction("g1", f"c{i}", lambda g, c, cid=f"c{i}": _take_one(g, c, cid))
                for i in range(20)
            ),
        )

        game = await repo.get_game("g1")
        assert game is not None
        assert game.plays == 20
        mug = game.get_segment("mug")
        assert mug is not None
        assert mug.quantity == 30
        assert repo._locks == {}


class TestLockLifetime:
    async def test_writes_to_unknown_games_leave_no_locks(self, repo: SqliteGameRepository) -> None:
        def reject(_game: Game | None, _customer: Customer | None) -> tuple[Game, Customer]:
            raise LookupError("unknown game")

        for i in range(500):
            with pytest.raises(LookupError):
                await repo.run_spin_transaction(f"ghost-{i}", "c1", reject)
            await repo.update_game(f"ghost-{i}", lambda _game: None)

        assert repo._locks == {}
        assert repo._lock_users == {}

    async def test_waiting_writer_keeps_the_lock_alive(self, repo: SqliteGameRepository) -> None:
        await repo.create_game(_game())

        async with repo._game_lock("g1"):
            waiting = asyncio.create_task(repo.run_spin_transaction("g1", "c1", _take_one))
            await asyncio.sleep(0.01)
            assert not waiting.done()
            assert repo._lock_users == {"g1": 2}

        game, _customer = await waiting
        assert game.plays == 1
        assert repo._locks == {}
        assert repo._lock_users == {}


def _game_for_missing() -> Game:
    return Game(game_id="ghost")
