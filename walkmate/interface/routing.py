"""Role-aware route resolution for the views."""

import re
from dataclasses import dataclass

from walkmate.domain.user import UserRole


LANDING_PATH = "/"

PUBLIC_PATHS = frozenset({LANDING_PATH})
SHARED_PATHS = frozenset({"/walks", "/history", "/profile"})
OWNER_PATHS = frozenset({"/owner", "/requests/new", "/dogs/new"})
WALKER_PATHS = frozenset({"/walker"})

CHAT_PATH_PATTERN = re.compile(r"^/chat/[^/]+$")


@dataclass(frozen=True)
class RouteDecision:
    """Outcome of resolving a path: render it, or redirect elsewhere."""

    path: str
    redirect_to: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.redirect_to is not None


def home_path(role: UserRole | str) -> str:
    """Landing view for a role."""
    return "/owner" if role == UserRole.OWNER else "/walker"


def required_role(path: str) -> UserRole | None:
    """Role a path is restricted to, or None for public, shared and unknown paths."""
    if path in OWNER_PATHS:
        return UserRole.OWNER
    if path in WALKER_PATHS:
        return UserRole.WALKER
    return None


def is_protected(path: str) -> bool:
    """Return True if the path needs a signed-in user."""
    return (
        path in SHARED_PATHS
        or path in OWNER_PATHS
        or path in WALKER_PATHS
        or CHAT_PATH_PATTERN.match(path) is not None
    )


def _normalize(path: str) -> str:
    path = path.split("?", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path or LANDING_PATH


def resolve_route(*, is_authenticated: bool, role: UserRole | str | None, path: str) -> RouteDecision:
    """Decide where a viewer lands when asking for a path.

    Signed-out viewers are sent to the landing page from every protected path.
    Signed-in viewers skip the landing page, and are sent home from views of
    the other role. Unknown paths are returned unchanged for the view layer
    to 404.
    """
    path = _normalize(path)

    if not is_authenticated:
        if is_protected(path):
            return RouteDecision(path=path, redirect_to=LANDING_PATH)
        return RouteDecision(path=path)

    home = home_path(role or UserRole.OWNER)
    if path in PUBLIC_PATHS:
        return RouteDecision(path=path, redirect_to=home)

    needed = required_role(path)
    if needed is not None and needed != role:
        return RouteDecision(path=path, redirect_to=home)

    return RouteDecision(path=path)
