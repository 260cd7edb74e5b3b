from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

from sqlalchemy.exc import SQLAlchemyError

from ..errors import AccountProvisioningError
from ..extensions import db
from ..models import User
from ..security import generate_temp_password, hash_password

logger = logging.getLogger(__name__)


class AccountGrant(NamedTuple):
    user_id: int
    # None when the email already belonged to an account.
    temporary_password: str | None


@dataclass(frozen=True)
class ProvisionedAccount:
    participant_id: int
    email: str
    user_id: int
    # Handed to the draw author once; only the hash is stored.
    temporary_password: str | None


class AccountProvisioner:
    """
    Links a participant email to a user account, creating one if needed.

    New accounts get a random temporary password and must change it on
    first login.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def provision_account(self, email: str) -> AccountGrant:
        email = (email or "").strip().lower()
        if not email:
            raise AccountProvisioningError(email, "email is empty")

        try:
            existing = self.session.query(User).filter_by(email=email).first()
            if existing:
                logger.info("User already exists for %s (user %s)", email, existing.id)
                return AccountGrant(existing.id, None)

            temp = generate_temp_password()
            user = User(email=email, password_hash=hash_password(temp), must_change_password=True)
            self.session.add(user)
            self.session.commit()
            user_id = user.id
        except SQLAlchemyError as e:
            self.session.rollback()
            raise AccountProvisioningError(email, str(e)) from e

        logger.info("Provisioned user %s for %s", user_id, email)
        return AccountGrant(user_id, temp)
