"""Application context shared by services and views.

One AppContext is built at process start and passed to every service call.
It owns the backend client, the warm-start cache, the realtime feed, the
session, the in-memory catalog and the open chat channels.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from walkmate.core.local_cache import LocalCache
from walkmate.core.realtime import ChangeFeed
from walkmate.domain.dog import Dog
from walkmate.domain.user import Profile
from walkmate.domain.walk import Application, WalkRequest


if TYPE_CHECKING:
    from walkmate.services.chat_service import ChatChannel


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class SessionState:
    """Signed-in identity and its profile projection."""

    user: Profile | None = None
    email: str | None = None
    loading: bool = True
    awaiting_confirmation: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


@dataclass
class Catalog:
    """Working set of the current viewer; each collection is replaced wholesale on refresh."""

    requests: list[WalkRequest] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)
    dogs: list[Dog] = field(default_factory=list)

    def clear(self) -> None:
        self.requests = []
        self.applications = []
        self.dogs = []


@dataclass
class AppContext:
    """Everything a service needs, passed by reference."""

    backend: Any
    cache: LocalCache | None = None
    feed: ChangeFeed | None = None
    session: SessionState = field(default_factory=SessionState)
    catalog: Catalog = field(default_factory=Catalog)
    channels: dict[str, "ChatChannel"] = field(default_factory=dict)
    clock: Callable[[], datetime] = utc_now

    def __post_init__(self) -> None:
        if self.feed is None:
            self.feed = ChangeFeed(self.backend)

    @property
    def current_user(self) -> Profile | None:
        return self.session.user

    def now(self) -> datetime:
        return self.clock()
