"""Typed domain exceptions for spin resolution and commit.

Domain code raises subclasses of SpinError rather than raw ValueError, so the
HTTP layer and the player state machine can catch and convert them at one
boundary. A failed commit is never partially applied.
"""


class SpinError(Exception):
    """Base exception for spins that cannot be resolved or committed."""


class NoEligiblePrizesError(SpinError):
    """Every segment is excluded from the draw (all stocked prizes exhausted, no decorative slots)."""


class GameNotFoundError(SpinError):
    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"game '{game_id}' not found")


class InvalidSpinError(SpinError):
    """The spin request does not match the current state of the game.

    Covers malformed requests and catalog changes between the draw and the
    commit (winning segment removed, prize flags edited).
    """


class CustomerAlreadyPlayedError(InvalidSpinError):
    def __init__(self, customer_id: str) -> None:
        self.customer_id = customer_id
        super().__init__(f"customer '{customer_id}' has already played")


class DuplicateRegistrationError(Exception):
    """An email is already registered for a game that enforces one play per email."""


class SpinBackendError(Exception):
    """Transport-level failure talking to the spin backend (network, unexpected status)."""
