from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..errors import (
    AccountProvisioningError,
    InsufficientParticipantsError,
    MatchPersistenceError,
    StoreError,
)
from .assignments import MIN_PARTICIPANTS, MatchPair, run_matching_algorithm
from .provisioning import ProvisionedAccount

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    draw_id: int
    pairs: list[MatchPair]
    provisioned: list[ProvisionedAccount] = field(default_factory=list)
    # Participants left without a linked account; there is no automatic retry.
    provisioning_failures: list[int] = field(default_factory=list)


class MatchingService:
    def __init__(self, store, provisioner):
        self.store = store
        self.provisioner = provisioner

    def matches_exist(self, draw_id: int) -> bool:
        return self.store.count_matches(draw_id) > 0

    def generate_matches(self, draw_id: int) -> MatchResult:
        """
        Match every participant of a draw to exactly one recipient.

        Does not check ``matches_exist`` itself. The unique constraints on
        the matches table reject a second set, which surfaces as
        MatchesAlreadyExistError.
        """
        participants = self.store.select_participants(draw_id)
        if len(participants) < MIN_PARTICIPANTS:
            raise InsufficientParticipantsError(len(participants), MIN_PARTICIPANTS)

        provisioned, failures = self._provision_missing_accounts(participants)

        pairs = run_matching_algorithm([p.id for p in participants])
        self._save_matches(draw_id, pairs)

        logger.info(
            "Generated %d matches for draw %s (%d accounts provisioned, %d failed)",
            len(pairs), draw_id, len(provisioned), len(failures),
        )
        return MatchResult(draw_id, pairs, provisioned, failures)

    def _provision_missing_accounts(self, participants) -> tuple[list[ProvisionedAccount], list[int]]:
        provisioned: list[ProvisionedAccount] = []
        failures: list[int] = []

        for p in participants:
            if p.user_id is not None:
                continue
            try:
                grant = self.provisioner.provision_account(p.email)
                self.store.update_participant_user_id(p.id, grant.user_id)
            except (AccountProvisioningError, StoreError) as e:
                logger.error("Account provisioning failed for participant %s: %s", p.id, e)
                failures.append(p.id)
                continue
            provisioned.append(ProvisionedAccount(p.id, p.email, grant.user_id, grant.temporary_password))

        return provisioned, failures

    def _save_matches(self, draw_id: int, pairs: list[MatchPair]) -> None:
        if not pairs:
            raise MatchPersistenceError("No matches to save")
        try:
            self.store.bulk_insert_matches(draw_id, pairs)
        except StoreError as e:
            logger.error("Failed to save matches for draw %s: %s", draw_id, e)
            raise MatchPersistenceError(f"Failed to save matches: {e}") from e
