"""Error taxonomy for draw creation and match generation."""
from __future__ import annotations


class GiftDrawError(RuntimeError):
    """Base class for every error raised by the giftdraw services."""
    pass


class StoreError(GiftDrawError):
    """A persistence call failed; the session has been rolled back."""
    pass


class DrawCreationError(GiftDrawError):
    """The draw header could not be inserted. Nothing was created."""
    pass


class ParticipantCreationError(GiftDrawError):
    """Every participant insert attempt failed; the draw was deleted again."""

    def __init__(self, attempts: int, last_error: BaseException | None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to create participants after {attempts} attempts: {last_error}")


class InsufficientParticipantsError(GiftDrawError):
    def __init__(self, count: int, minimum: int = 3):
        self.count = count
        self.minimum = minimum
        super().__init__(f"At least {minimum} participants are required for matching")


class MatchPersistenceError(GiftDrawError):
    pass


class MatchesAlreadyExistError(GiftDrawError):
    def __init__(self, draw_id: int):
        self.draw_id = draw_id
        super().__init__("Matches have already been generated for this draw")


class AccountProvisioningError(GiftDrawError):
    """Scoped to one participant; collected by the caller, never fatal to a batch."""

    def __init__(self, email: str, reason: str):
        self.email = email
        super().__init__(f"Account provisioning failed for {email}: {reason}")
