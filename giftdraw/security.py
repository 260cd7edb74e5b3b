from __future__ import annotations

import secrets

from passlib.context import CryptContext


pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, stored_hash: str) -> bool:
    return pwd_context.verify(password, stored_hash)


def generate_temp_password(num_bytes: int = 12) -> str:
    # ~16 url-safe chars; handed to the participant once, never stored in clear
    return secrets.token_urlsafe(num_bytes)
