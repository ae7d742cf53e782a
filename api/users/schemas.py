"""
User API schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

PASSWORD_MIN_LENGTH = 6


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)
    password_confirmation: str = Field(..., min_length=1, max_length=128)

    @model_validator(mode="after")
    def _passwords_match(self) -> "CreateUserRequest":
        if self.password != self.password_confirmation:
            raise ValueError("Password confirmation does not match.")
        return self


class UpdateUserRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    password: str | None = Field(default=None, min_length=PASSWORD_MIN_LENGTH, max_length=128)


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    createdAt: datetime
    updatedAt: datetime
