from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import MatchesAlreadyExistError, StoreError
from ..extensions import db
from ..models import Draw, Match, Participant

logger = logging.getLogger(__name__)


class DrawStore:
    """
    Persistence for draws, participants and matches.

    Every write commits on its own and rolls the session back on failure,
    so a bulk insert either lands completely or not at all.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Failed to {action}: {e}") from e

    # --- draws ---

    def insert_draw(self, name: str, author_id: int) -> Draw:
        draw = Draw(name=name, author_id=author_id)
        self.session.add(draw)
        self._commit("insert draw")
        return draw

    def delete_draw(self, draw_id: int) -> None:
        try:
            draw = self.session.get(Draw, draw_id)
            if draw is None:
                return
            self.session.delete(draw)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Failed to delete draw {draw_id}: {e}") from e
        self._commit(f"delete draw {draw_id}")

    def get_draw(self, draw_id: int) -> Draw | None:
        return self.session.get(Draw, draw_id)

    def list_draws_by_author(self, author_id: int) -> list[Draw]:
        return (
            self.session.query(Draw).filter_by(author_id=author_id)
            .order_by(Draw.created_at.desc(), Draw.id.desc())
            .all()
        )

    # --- participants ---

    def bulk_insert_participants(self, draw_id: int, records: Sequence[Mapping]) -> list[Participant]:
        if any(r["draw_id"] != draw_id for r in records):
            raise ValueError(f"Participant records must all reference draw {draw_id}.")

        rows = [Participant(**r) for r in records]
        self.session.add_all(rows)
        self._commit(f"insert participants for draw {draw_id}")
        logger.info("Inserted %d participants for draw %s", len(rows), draw_id)
        return rows

    def select_participants(self, draw_id: int) -> list[Participant]:
        return (
            self.session.query(Participant).filter_by(draw_id=draw_id)
            .order_by(Participant.created_at.asc(), Participant.id.asc())
            .all()
        )

    def update_participant_user_id(self, participant_id: int, user_id: int) -> None:
        participant = self.session.get(Participant, participant_id)
        if participant is None:
            raise StoreError(f"Participant {participant_id} does not exist")
        participant.user_id = user_id
        self._commit(f"link participant {participant_id} to user {user_id}")

    # --- matches ---

    def bulk_insert_matches(self, draw_id: int, pairs: Iterable) -> None:
        self.session.add_all(
            Match(draw_id=draw_id, giver_id=giver_id, recipient_id=recipient_id)
            for giver_id, recipient_id in pairs
        )
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            # A concurrent generation beat us to it; the unique constraints kept the draw consistent.
            if self.count_matches(draw_id):
                raise MatchesAlreadyExistError(draw_id) from e
            raise StoreError(f"Failed to insert matches for draw {draw_id}: {e}") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Failed to insert matches for draw {draw_id}: {e}") from e

    def count_matches(self, draw_id: int) -> int:
        return self.session.query(Match).filter_by(draw_id=draw_id).count()
