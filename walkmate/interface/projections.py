"""Read-only projections of the catalog for the dashboards, schedule and history views."""

from pydantic import BaseModel, Field

from walkmate.core.context import Catalog
from walkmate.domain.dog import Dog
from walkmate.domain.user import Profile, UserRole
from walkmate.domain.walk import Application, ApplicationStatus, WalkRequest, WalkStatus, status_label


class RequestCard(BaseModel):
    """A walk request as listed in a view."""

    request: WalkRequest
    status_label: str
    walker: Profile | None = None
    applicant_count: int = 0
    already_applied: bool = False


class OwnerDashboard(BaseModel):
    dogs: list[Dog] = Field(default_factory=list)
    matched: list[RequestCard] = Field(default_factory=list)
    open: list[RequestCard] = Field(default_factory=list)


class WalkerDashboard(BaseModel):
    available: list[RequestCard] = Field(default_factory=list)
    matched: list[RequestCard] = Field(default_factory=list)
    completed_count: int = 0
    total_earnings: int = 0


class HistoryEntry(BaseModel):
    request: WalkRequest
    status_label: str
    reward: int
    walker: Profile | None = None


def _card(request: WalkRequest, **kwargs: object) -> RequestCard:
    return RequestCard(request=request, status_label=status_label(request.status), **kwargs)


def accepted_application(catalog: Catalog, request_id: str) -> Application | None:
    """The ACCEPTED application of a request, if it is in the catalog."""
    return next(
        (
            application
            for application in catalog.applications
            if application.request_id == request_id and application.status == ApplicationStatus.ACCEPTED
        ),
        None,
    )


def is_matched_walker(catalog: Catalog, request_id: str, walker_id: str) -> bool:
    application = accepted_application(catalog, request_id)
    return application is not None and application.walker_id == walker_id


def _involves(catalog: Catalog, request: WalkRequest, viewer: Profile) -> bool:
    if viewer.role == UserRole.OWNER:
        return request.owner_id == viewer.id
    return is_matched_walker(catalog, request.id, viewer.id)


def owner_dashboard(catalog: Catalog, viewer: Profile) -> OwnerDashboard:
    """Own dogs, own MATCHED requests with their walker, own OPEN requests with applicant counts."""
    own = [request for request in catalog.requests if request.owner_id == viewer.id]

    matched = []
    for request in own:
        if request.status != WalkStatus.MATCHED:
            continue
        application = accepted_application(catalog, request.id)
        matched.append(_card(request, walker=application.walker if application else None))

    open_cards = [
        _card(
            request,
            applicant_count=sum(1 for application in catalog.applications if application.request_id == request.id),
        )
        for request in own
        if request.status == WalkStatus.OPEN
    ]

    return OwnerDashboard(
        dogs=[dog for dog in catalog.dogs if dog.owner_id == viewer.id],
        matched=matched,
        open=open_cards,
    )


def walker_dashboard(catalog: Catalog, viewer: Profile) -> WalkerDashboard:
    """OPEN requests of others, own MATCHED walks, completed count and total earnings."""
    applied_to = {
        application.request_id for application in catalog.applications if application.walker_id == viewer.id
    }

    available = [
        _card(request, already_applied=request.id in applied_to)
        for request in catalog.requests
        if request.status == WalkStatus.OPEN and request.owner_id != viewer.id
    ]
    matched = [
        _card(request, walker=viewer)
        for request in catalog.requests
        if request.status == WalkStatus.MATCHED and is_matched_walker(catalog, request.id, viewer.id)
    ]
    completed = [
        request
        for request in catalog.requests
        if request.status == WalkStatus.COMPLETED and is_matched_walker(catalog, request.id, viewer.id)
    ]

    return WalkerDashboard(
        available=available,
        matched=matched,
        completed_count=len(completed),
        total_earnings=sum(request.reward for request in completed),
    )


def schedule(catalog: Catalog, viewer: Profile) -> list[RequestCard]:
    """Walks not yet completed that the viewer owns or was matched to."""
    cards = []
    for request in catalog.requests:
        if request.status == WalkStatus.COMPLETED or not _involves(catalog, request, viewer):
            continue
        application = accepted_application(catalog, request.id)
        cards.append(_card(request, walker=application.walker if application else None))
    return cards


def history(catalog: Catalog, viewer: Profile) -> list[HistoryEntry]:
    """Completed walks the viewer owns or was matched to, with the reward attributed."""
    entries = []
    for request in catalog.requests:
        if request.status != WalkStatus.COMPLETED or not _involves(catalog, request, viewer):
            continue
        application = accepted_application(catalog, request.id)
        entries.append(
            HistoryEntry(
                request=request,
                status_label=status_label(request.status),
                reward=request.reward,
                walker=application.walker if application else None,
            )
        )
    return entries
