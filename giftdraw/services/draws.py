from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Sequence

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import DrawCreationError, ParticipantCreationError, StoreError
from ..models import Draw

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_BACKOFF_BASE = 1.0
DEFAULT_BACKOFF_MAX = 5.0


class DrawService:
    """
    Creates a draw together with its participants.

    The store cannot wrap both inserts in one transaction, so creation runs
    as a two-phase saga: commit the draw, then commit the participants with
    bounded retries, and delete the draw again if they never land.
    """

    def __init__(
        self,
        store,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.sleep = sleep

    @classmethod
    def from_config(cls, store, config: Mapping) -> "DrawService":
        return cls(
            store,
            max_attempts=int(config.get("DRAW_CREATE_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
            backoff_base=float(config.get("DRAW_CREATE_BACKOFF_BASE", DEFAULT_BACKOFF_BASE)),
            backoff_max=float(config.get("DRAW_CREATE_BACKOFF_MAX", DEFAULT_BACKOFF_MAX)),
        )

    def create_draw(self, name: str, participants: Sequence, author_id: int) -> Draw:
        # Phase 1: nothing exists yet, so a failure here needs no cleanup.
        try:
            draw = self.store.insert_draw(name.strip(), author_id)
        except StoreError as e:
            logger.error("Failed to create draw %r for author %s: %s", name, author_id, e)
            raise DrawCreationError("Failed to create draw") from e

        # A failed attempt rolls the session back and expires `draw`; only the id is used from here.
        draw_id = draw.id

        records = [
            {
                "draw_id": draw_id,
                "name": p.name,
                "surname": p.surname,
                "email": p.email,
                "gift_preferences": p.gift_preferences,
            }
            for p in participants
        ]

        # Phase 2
        attempts = 0
        try:
            for attempt in self._retrying(draw_id):
                with attempt:
                    attempts += 1
                    self.store.bulk_insert_participants(draw_id, records)
        except StoreError as e:
            self._compensate(draw_id, attempts)
            raise ParticipantCreationError(attempts, e) from e

        logger.info(
            "Created draw %s with %d participants (attempt %d/%d)",
            draw_id, len(records), attempts, self.max_attempts,
        )
        return draw

    def _retrying(self, draw_id: int) -> Retrying:
        def log_retry(retry_state) -> None:
            logger.warning(
                "Participant insert for draw %s failed on attempt %d/%d, retrying in %.1fs: %s",
                draw_id,
                retry_state.attempt_number,
                self.max_attempts,
                retry_state.next_action.sleep,
                retry_state.outcome.exception(),
            )

        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base, max=self.backoff_max),
            retry=retry_if_exception_type(StoreError),
            sleep=self.sleep,
            before_sleep=log_retry,
            reraise=True,
        )

    def _compensate(self, draw_id: int, attempts: int) -> None:
        logger.error(
            "Participant insert for draw %s failed after %d attempts, rolling back draw",
            draw_id, attempts,
        )
        try:
            self.store.delete_draw(draw_id)
        except StoreError as e:
            # Surface the original failure to the caller; the orphan is logged for cleanup.
            logger.error("Compensating delete of draw %s failed: %s", draw_id, e)

    def get_draws_by_author(self, author_id: int) -> list[Draw]:
        return self.store.list_draws_by_author(author_id)

    def get_participants(self, draw_id: int):
        return self.store.select_participants(draw_id)
