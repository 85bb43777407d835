"""User profile domain models and enums."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from walkmate.core.config import constants


class UserRole(StrEnum):
    """Account role in the marketplace."""

    OWNER = "OWNER"
    WALKER = "WALKER"


class Profile(BaseModel):
    """Profile projection of a signed-in or displayed user."""

    id: str = Field(..., description="Auth user ID; the profile row shares it")
    nickname: str = Field(..., description="Display name")
    role: UserRole = Field(default=UserRole.OWNER, description="Owner or walker")
    region_code: str = Field(default=constants.DEFAULT_REGION_CODE, description="Home district code")
    trust_score: float = Field(default=constants.DEFAULT_TRUST_SCORE, description="Display-only reputation")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Profile":
        """Build a profile from a profiles record."""
        return cls(
            id=record["id"],
            nickname=record.get("nickname") or "",
            role=record.get("role") or UserRole.OWNER,
            region_code=record.get("region_code") or constants.DEFAULT_REGION_CODE,
            trust_score=(
                constants.DEFAULT_TRUST_SCORE if record.get("trust_score") is None else record["trust_score"]
            ),
        )

    def home_path(self) -> str:
        """Landing view for this user's role."""
        return "/owner" if self.role == UserRole.OWNER else "/walker"
