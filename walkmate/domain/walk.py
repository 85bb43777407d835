"""Walk request and application domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from walkmate.domain.dog import Dog
from walkmate.domain.user import Profile


class WalkStatus(StrEnum):
    """Walk request lifecycle state."""

    OPEN = "OPEN"
    MATCHED = "MATCHED"
    COMPLETED = "COMPLETED"


class ApplicationStatus(StrEnum):
    """Application decision state."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


STATUS_LABELS: dict[str, str] = {
    WalkStatus.OPEN: "지원자 찾는 중",
    WalkStatus.MATCHED: "산책 예정",
    WalkStatus.COMPLETED: "산책 완료",
    ApplicationStatus.PENDING: "지원 대기",
    ApplicationStatus.ACCEPTED: "매칭됨",
    ApplicationStatus.REJECTED: "거절됨",
}


def status_label(status: str) -> str:
    """User-facing label for a request or application status."""
    return STATUS_LABELS.get(status, status)


class WalkRequest(BaseModel):
    """Walk request data transfer object with its dog embedded."""

    id: str = Field(..., description="Unique request ID")
    owner_id: str = Field(..., description="Profile ID of the posting owner")
    dog_id: str = Field(..., description="Dog to be walked")
    dog: Dog | None = Field(default=None, description="Embedded dog, when expanded")
    scheduled_at: datetime = Field(..., description="Walk start time")
    duration: int = Field(..., description="Walk length in minutes")
    reward: int = Field(..., description="Offered reward in KRW")
    region: str = Field(..., description="District label")
    status: WalkStatus = Field(default=WalkStatus.OPEN, description="Lifecycle state")
    created: datetime | None = Field(default=None, description="Creation timestamp")


class Application(BaseModel):
    """Walker application data transfer object with the walker profile embedded."""

    id: str = Field(..., description="Unique application ID")
    request_id: str = Field(..., description="Walk request applied to")
    walker_id: str = Field(..., description="Profile ID of the applicant")
    walker: Profile | None = Field(default=None, description="Embedded walker profile, when expanded")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING, description="Decision state")
    created: datetime | None = Field(default=None, description="Creation timestamp")
