import pytest

from prizewheel.logic.exceptions import DuplicateRegistrationError, GameNotFoundError
from prizewheel.session.registration import register_customer, requires_unique_email
from prizewheel.session.types import Registration
from prizewheel.tests.helpers.games import make_game
from shared.dal.models import GameStatus


def _registration(email: str = "ana@example.com") -> Registration:
    return Registration(name="Ana", email=email)


class TestRequiresUniqueEmail:
    def test_active_game(self):
        assert requires_unique_email(make_game(), "ana@example.com") is True

    def test_demo_game(self):
        assert requires_unique_email(make_game(status=GameStatus.DEMO), "ana@example.com") is False

    def test_exempted_email_any_case(self):
        game = make_game(exempted_emails=("Staff@Example.com",))
        assert requires_unique_email(game, "staff@example.com") is False


class TestRegisterCustomer:
    async def test_creates_customer(self, game_repository, customer_repository, game):
        customer = await register_customer(game_repository, customer_repository, "g1", _registration())

        stored = await customer_repository.get_customer("g1", customer.customer_id)
        assert stored == customer
        assert stored.registered_at is not None
        assert stored.has_played is False

    async def test_ids_are_unique(self, game_repository, customer_repository, game_repository_with_demo):
        first = await register_customer(game_repository, customer_repository, "demo", _registration())
        second = await register_customer(game_repository, customer_repository, "demo", _registration())

        assert first.customer_id != second.customer_id

    async def test_duplicate_email_rejected(self, game_repository, customer_repository, game):
        await register_customer(game_repository, customer_repository, "g1", _registration())

        with pytest.raises(DuplicateRegistrationError):
            await register_customer(game_repository, customer_repository, "g1", _registration("ANA@example.com"))

    async def test_same_email_in_another_game(self, game_repository, customer_repository, game):
        await game_repository.create_game(make_game(game_id="g2"))
        await register_customer(game_repository, customer_repository, "g1", _registration())

        customer = await register_customer(game_repository, customer_repository, "g2", _registration())

        assert customer.game_id == "g2"

    async def test_unknown_game(self, game_repository, customer_repository):
        with pytest.raises(GameNotFoundError):
            await register_customer(game_repository, customer_repository, "ghost", _registration())


@pytest.fixture
async def game_repository_with_demo(game_repository):
    await game_repository.create_game(make_game(game_id="demo", status=GameStatus.DEMO))
    return game_repository
