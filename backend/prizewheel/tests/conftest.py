import pytest

from prizewheel.logic.timer import TimingConfig
from prizewheel.session.channel import SpinChannel
from prizewheel.session.committer import SpinCommitter
from prizewheel.tests.helpers.games import make_game
from prizewheel.tests.mocks.connection import MockConnection
from shared.db import Database, SqliteCustomerRepository, SqliteGameRepository

# Short enough that tests driven by real timers finish quickly.
FAST_TIMING = TimingConfig(spin_animation_seconds=0.05, result_window_seconds=0.05)


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "wheel.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def game_repository(db):
    return SqliteGameRepository(db)


@pytest.fixture
def customer_repository(db):
    return SqliteCustomerRepository(db)


@pytest.fixture
def channel(game_repository):
    return SpinChannel(game_repository)


@pytest.fixture
def committer(game_repository, channel):
    return SpinCommitter(game_repository, channel)


@pytest.fixture
async def game(game_repository):
    created = make_game()
    await game_repository.create_game(created)
    return created


@pytest.fixture
def mock_connection():
    return MockConnection(game_id="g1")


@pytest.fixture
def fast_timing():
    return FAST_TIMING
