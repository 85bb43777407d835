"""Domain models and DTOs."""

from walkmate.domain.chat import ChatMessage, ChatSender
from walkmate.domain.create_models import DogCreate, SignUpCreate, WalkRequestCreate
from walkmate.domain.dog import Dog, DogSize
from walkmate.domain.update_models import ProfileUpdate
from walkmate.domain.user import Profile, UserRole
from walkmate.domain.walk import Application, ApplicationStatus, WalkRequest, WalkStatus, status_label


__all__ = [
    "Application",
    "ApplicationStatus",
    "ChatMessage",
    "ChatSender",
    "Dog",
    "DogCreate",
    "DogSize",
    "Profile",
    "ProfileUpdate",
    "SignUpCreate",
    "UserRole",
    "WalkRequest",
    "WalkRequestCreate",
    "WalkStatus",
    "status_label",
]
