"""Pydantic models for validating user input before records are created."""

import re
from datetime import UTC, datetime
from typing import TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from walkmate.core.config import constants
from walkmate.domain.dog import DogSize
from walkmate.domain.user import UserRole


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_input(model: type[ModelT], **data: object) -> ModelT:
    """Validate form input, raising ValueError with the first readable message."""
    try:
        return model(**data)
    except ValidationError as e:
        first = e.errors()[0]
        msg = str(first.get("msg", "Invalid input")).removeprefix("Value error, ")
        raise ValueError(msg) from e


def validate_nickname(value: str) -> str:
    """Validate a display nickname, returning it stripped."""
    value = value.strip()
    if len(value) < constants.MIN_NICKNAME_LENGTH:
        msg = f"Nickname must be at least {constants.MIN_NICKNAME_LENGTH} characters"
        raise ValueError(msg)
    if len(value) > constants.MAX_NICKNAME_LENGTH:
        msg = f"Nickname too long (max {constants.MAX_NICKNAME_LENGTH} characters)"
        raise ValueError(msg)
    return value


class SignUpCreate(BaseModel):
    """Sign-up form."""

    email: str = Field(..., description="Login e-mail")
    password: str = Field(..., description="Login password")
    nickname: str = Field(..., description="Display name")
    role: UserRole = Field(..., description="Owner or walker")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate e-mail shape."""
        v = v.strip().lower()
        if not re.match(EMAIL_PATTERN, v):
            msg = "Enter a valid e-mail address"
            raise ValueError(msg)
        return v

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Validate password is long enough for the identity provider."""
        if len(v) < constants.MIN_PASSWORD_LENGTH:
            msg = f"Password must be at least {constants.MIN_PASSWORD_LENGTH} characters"
            raise ValueError(msg)
        return v

    @field_validator("nickname")
    @classmethod
    def validate_nickname_length(cls, v: str) -> str:
        """Validate nickname length."""
        return validate_nickname(v)


class DogCreate(BaseModel):
    """Dog registration form."""

    name: str = Field(..., description="Dog name")
    breed: str = Field(..., description="Breed label")
    size: DogSize = Field(default=DogSize.S, description="Size class")
    notes: str | None = Field(default=None, description="Temperament and care notes")

    @field_validator("name", "breed")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        """Name and breed must not be blank."""
        v = v.strip()
        if not v:
            msg = "Name and breed are required"
            raise ValueError(msg)
        return v

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        """Blank notes are stored as absent."""
        if v is None:
            return None
        return v.strip() or None


class WalkRequestCreate(BaseModel):
    """Walk request form. The lead-time rule needs a clock and is checked by the service."""

    dog_id: str = Field(..., description="Dog to be walked")
    scheduled_at: datetime = Field(..., description="Walk start time")
    duration: int = Field(..., description="Walk length in minutes")
    reward: int = Field(..., description="Offered reward in KRW")
    region: str | None = Field(default=None, description="District label; defaults to the owner's region")

    @field_validator("dog_id")
    @classmethod
    def validate_dog_selected(cls, v: str) -> str:
        """A dog must be selected."""
        if not v.strip():
            msg = "Select a dog for the walk"
            raise ValueError(msg)
        return v.strip()

    @field_validator("scheduled_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Naive times are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        """Duration must be one of the offered lengths."""
        if v not in constants.ALLOWED_DURATIONS_MINUTES:
            msg = f"Duration must be one of {list(constants.ALLOWED_DURATIONS_MINUTES)} minutes"
            raise ValueError(msg)
        return v

    @field_validator("reward")
    @classmethod
    def validate_reward(cls, v: int) -> int:
        """Reward must be positive."""
        if v <= 0:
            msg = "Reward must be a positive amount"
            raise ValueError(msg)
        return v

    @field_validator("region")
    @classmethod
    def strip_region(cls, v: str | None) -> str | None:
        """Blank region falls back to the owner's region."""
        if v is None:
            return None
        return v.strip() or None
