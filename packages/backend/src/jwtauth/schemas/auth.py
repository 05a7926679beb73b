"""Pydantic schemas for the auth routes.

Learn: Email is trimmed and lower-cased before it reaches the service, so
"A@X.com " and "a@x.com" are the same identity as far as the unique
constraint is concerned.
"""

import uuid

from pydantic import BaseModel, EmailStr, field_validator


class CreateUserRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: EmailStr) -> str:
        return str(v).lower()


class CreateUserResponse(BaseModel):
    detail: str
    id: uuid.UUID


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class CurrentUserResponse(BaseModel):
    id: uuid.UUID
    email: str

    model_config = {"from_attributes": True}
