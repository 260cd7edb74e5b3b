"""Request and response shapes for the JSON API.

Requests are validated here before they reach the services, which assume
well-formed input.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_serializer

from .services.assignments import MIN_PARTICIPANTS

MAX_PARTICIPANTS = 32

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ParticipantIn(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    surname: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    email: EmailStr
    gift_preferences: str = Field(max_length=10000)


class CreateDrawRequest(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    participants: list[ParticipantIn] = Field(min_length=MIN_PARTICIPANTS, max_length=MAX_PARTICIPANTS)


class DrawOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        return value.isoformat()


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    surname: str
    email: str
    gift_preferences: str


class CredentialsRequest(BaseModel):
    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=8, max_length=256)]


class LoginRequest(BaseModel):
    email: EmailStr
    password: NonEmptyStr


class ChangePasswordRequest(BaseModel):
    current_password: NonEmptyStr
    new_password: Annotated[str, StringConstraints(min_length=8, max_length=256)]


def validation_details(exc) -> list[dict]:
    """Flatten a pydantic ValidationError into ``[{field, message}]``."""
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
