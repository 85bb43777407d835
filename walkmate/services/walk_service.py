"""Walk service: create requests, apply, accept and complete.

Role gating runs before any backend call. Every successful action reloads
the catalog so the views see the new state.
"""

import logging
from datetime import datetime, timedelta

from walkmate.core.config import constants
from walkmate.core.context import AppContext
from walkmate.core.db_client import DatabaseError, RecordNotFoundError, sanitize_param
from walkmate.core.logging import span
from walkmate.domain.create_models import WalkRequestCreate, parse_input
from walkmate.domain.user import Profile, UserRole
from walkmate.domain.walk import Application, ApplicationStatus, WalkRequest, WalkStatus
from walkmate.services import catalog_service, walk_state_machine
from walkmate.services.catalog_service import APPLICATIONS, DOGS, WALK_REQUESTS


logger = logging.getLogger(__name__)


def _require_role(ctx: AppContext, role: UserRole, action: str) -> Profile:
    user = ctx.current_user
    if user is None:
        msg = f"Sign in to {action}"
        raise PermissionError(msg)
    if user.role != role:
        msg = f"Only {role.lower()}s can {action}"
        raise PermissionError(msg)
    return user


async def create_request(
    ctx: AppContext,
    *,
    dog_id: str,
    scheduled_at: datetime,
    duration: int,
    reward: int,
    region: str | None = None,
) -> WalkRequest:
    """Post a new OPEN walk request for one of the owner's dogs.

    Args:
        ctx: Application context
        dog_id: Dog to be walked; must belong to the caller
        scheduled_at: Walk start, at least one hour from now
        duration: Walk length in minutes, one of the offered lengths
        reward: Offered reward in KRW, positive
        region: District label; defaults to the owner's region

    Raises:
        PermissionError: If the caller is not an owner or does not own the dog
        ValueError: If any field is invalid; nothing is created
    """
    with span("walk_service.create_request"):
        user = _require_role(ctx, UserRole.OWNER, "post walk requests")

        form = parse_input(
            WalkRequestCreate,
            dog_id=dog_id,
            scheduled_at=scheduled_at,
            duration=duration,
            reward=reward,
            region=region,
        )

        earliest = ctx.now() + timedelta(hours=constants.MIN_LEAD_TIME_HOURS)
        if form.scheduled_at < earliest:
            msg = f"Walks must be scheduled at least {constants.MIN_LEAD_TIME_HOURS} hour ahead"
            raise ValueError(msg)

        region_label = form.region or user.region_code
        if not region_label or region_label == constants.DEFAULT_REGION_CODE:
            msg = "Enter the district for the walk"
            raise ValueError(msg)

        dog = await ctx.backend.get_record(collection=DOGS, record_id=form.dog_id)
        if dog["owner_id"] != user.id:
            msg = f"Dog {form.dog_id} does not belong to you"
            raise PermissionError(msg)

        record = await ctx.backend.create_record(
            collection=WALK_REQUESTS,
            data={
                "owner_id": user.id,
                "dog_id": form.dog_id,
                "scheduled_at": form.scheduled_at.isoformat(),
                "duration": form.duration,
                "reward": form.reward,
                "region": region_label,
                "status": WalkStatus.OPEN,
            },
        )

        logger.info(
            "Created walk request",
            extra={"request_id": record["id"], "owner_id": user.id, "dog_id": form.dog_id, "reward": form.reward},
        )

        await catalog_service.refresh(ctx)
        return catalog_service.find_request(ctx, record["id"]) or catalog_service.request_from_record(ctx, record)


async def apply_to_request(ctx: AppContext, *, request_id: str) -> Application:
    """Apply to an OPEN walk request as a walker.

    Raises:
        PermissionError: If the caller is not a walker or owns the request
        ValueError: If the request is not OPEN or the walker already applied
        RecordNotFoundError: If the request does not exist
    """
    with span("walk_service.apply_to_request"):
        user = _require_role(ctx, UserRole.WALKER, "apply to walks")

        request = await ctx.backend.get_record(collection=WALK_REQUESTS, record_id=request_id)
        if request["owner_id"] == user.id:
            msg = "You cannot apply to your own walk request"
            raise PermissionError(msg)
        if request["status"] != WalkStatus.OPEN:
            msg = f"Cannot apply: walk request {request_id} is {request['status']}"
            raise ValueError(msg)

        existing = await ctx.backend.get_first_record(
            collection=APPLICATIONS,
            filter_query=f'request_id = "{sanitize_param(request_id)}" && walker_id = "{sanitize_param(user.id)}"',
        )
        if existing is not None:
            msg = f"You have already applied to walk request {request_id}"
            raise ValueError(msg)

        try:
            record = await ctx.backend.create_record(
                collection=APPLICATIONS,
                data={"request_id": request_id, "walker_id": user.id, "status": ApplicationStatus.PENDING},
            )
        except DatabaseError as e:
            if "unique" not in str(e).lower():
                raise
            msg = f"You have already applied to walk request {request_id}"
            raise ValueError(msg) from e

        logger.info("Applied to walk request", extra={"request_id": request_id, "walker_id": user.id})

        await catalog_service.refresh(ctx)
        return Application(
            id=record["id"],
            request_id=request_id,
            walker_id=user.id,
            walker=user,
            status=record.get("status") or ApplicationStatus.PENDING,
            created=record.get("created") or None,
        )


async def accept_application(ctx: AppContext, *, application_id: str) -> WalkRequest | None:
    """Accept one application: it becomes ACCEPTED, its siblings REJECTED, the request MATCHED.

    Raises:
        PermissionError: If the caller is not the owner of the request
        ValueError: If the request is not OPEN or the application not PENDING
        RecordNotFoundError: If the application or its request does not exist
    """
    with span("walk_service.accept_application"):
        user = _require_role(ctx, UserRole.OWNER, "accept applications")

        application = await ctx.backend.get_record(collection=APPLICATIONS, record_id=application_id)
        request = await ctx.backend.get_record(collection=WALK_REQUESTS, record_id=application["request_id"])
        if request["owner_id"] != user.id:
            msg = f"Walk request {request['id']} does not belong to you"
            raise PermissionError(msg)

        await walk_state_machine.transition_to_matched(ctx, request=request, application=application)

        logger.info(
            "Accepted application",
            extra={
                "request_id": request["id"],
                "application_id": application_id,
                "walker_id": application["walker_id"],
            },
        )

        await catalog_service.refresh(ctx)
        return catalog_service.find_request(ctx, request["id"])


async def _accepted_walker_id(ctx: AppContext, request_id: str) -> str | None:
    accepted = await ctx.backend.get_first_record(
        collection=APPLICATIONS,
        filter_query=f'request_id = "{sanitize_param(request_id)}" && status = "{ApplicationStatus.ACCEPTED}"',
    )
    return accepted["walker_id"] if accepted else None


async def complete_request(ctx: AppContext, *, request_id: str) -> WalkRequest | None:
    """Mark a MATCHED walk COMPLETED; only the matched walker may do this.

    Raises:
        PermissionError: If the caller is not the matched walker
        ValueError: If the request is not MATCHED
        RecordNotFoundError: If the request does not exist
    """
    with span("walk_service.complete_request"):
        user = _require_role(ctx, UserRole.WALKER, "complete walks")

        request = await ctx.backend.get_record(collection=WALK_REQUESTS, record_id=request_id)
        walk_state_machine.ensure_request_transition(
            request_id=request_id, current=request["status"], target=WalkStatus.COMPLETED
        )
        if await _accepted_walker_id(ctx, request_id) != user.id:
            msg = f"Only the matched walker can complete walk request {request_id}"
            raise PermissionError(msg)

        await walk_state_machine.transition_to_completed(ctx, request=request)

        logger.info(
            "Completed walk",
            extra={"request_id": request_id, "walker_id": user.id, "reward": request.get("reward")},
        )

        await catalog_service.refresh(ctx)
        return catalog_service.find_request(ctx, request_id)


async def matched_walker_id(ctx: AppContext, *, request_id: str) -> str | None:
    """Walker of the ACCEPTED application, from the catalog or else the backend."""
    for application in ctx.catalog.applications:
        if application.request_id == request_id and application.status == ApplicationStatus.ACCEPTED:
            return application.walker_id
    try:
        return await _accepted_walker_id(ctx, request_id)
    except RecordNotFoundError:
        return None
