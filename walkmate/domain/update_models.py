"""Update models for profile self-edit."""

from pydantic import BaseModel, field_validator

from walkmate.domain.create_models import validate_nickname


class ProfileUpdate(BaseModel):
    """Self-edit payload; role and trust score are not editable."""

    nickname: str | None = None
    region_code: str | None = None

    @field_validator("nickname")
    @classmethod
    def validate_nickname_length(cls, v: str | None) -> str | None:
        """Validate nickname length when provided."""
        if v is None:
            return None
        return validate_nickname(v)

    @field_validator("region_code")
    @classmethod
    def strip_region(cls, v: str | None) -> str | None:
        """Blank region means no change."""
        if v is None:
            return None
        return v.strip() or None
