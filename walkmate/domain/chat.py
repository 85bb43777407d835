"""Chat message domain model."""

from datetime import datetime

from pydantic import BaseModel, Field


class ChatSender(BaseModel):
    """Sender fields shown next to a message."""

    id: str
    nickname: str


class ChatMessage(BaseModel):
    """Chat message scoped to one walk request."""

    id: str = Field(..., description="Message ID; provisional messages use a local id")
    request_id: str = Field(..., description="Walk request the chat belongs to")
    sender_id: str = Field(..., description="Profile ID of the sender")
    sender: ChatSender | None = Field(default=None, description="Embedded sender, when known")
    content: str = Field(..., description="Message text")
    created: datetime = Field(..., description="Creation timestamp")
    pending: bool = Field(default=False, description="True until the backend confirms the write")
