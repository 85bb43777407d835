"""State transition functions for the walk request and application lifecycle."""

import logging
from typing import Any

from walkmate.core.config import constants, settings
from walkmate.core.context import AppContext
from walkmate.core.db_client import BatchUpdate, DatabaseError, RecordNotFoundError, sanitize_param
from walkmate.core.logging import span
from walkmate.domain.walk import ApplicationStatus, WalkStatus
from walkmate.services.catalog_service import APPLICATIONS, WALK_REQUESTS


logger = logging.getLogger(__name__)

# MATCHED -> OPEN is not supported; there is no cancellation.
REQUEST_TRANSITIONS: dict[WalkStatus, frozenset[WalkStatus]] = {
    WalkStatus.OPEN: frozenset({WalkStatus.MATCHED}),
    WalkStatus.MATCHED: frozenset({WalkStatus.COMPLETED}),
    WalkStatus.COMPLETED: frozenset(),
}

APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.ACCEPTED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


def can_transition_request(current: str, target: str) -> bool:
    """Return True if a walk request may move from current to target."""
    return WalkStatus(target) in REQUEST_TRANSITIONS.get(WalkStatus(current), frozenset())


def ensure_request_transition(*, request_id: str, current: str, target: str) -> None:
    """Raise ValueError unless the walk request may move from current to target."""
    if not can_transition_request(current, target):
        msg = f"Cannot move walk request {request_id} from {current} to {target}"
        raise ValueError(msg)


def ensure_application_transition(*, application_id: str, current: str, target: str) -> None:
    """Raise ValueError unless the application may move from current to target."""
    if ApplicationStatus(target) not in APPLICATION_TRANSITIONS.get(ApplicationStatus(current), frozenset()):
        msg = f"Cannot move application {application_id} from {current} to {target}"
        raise ValueError(msg)


async def _apply_sequentially(ctx: AppContext, updates: list[BatchUpdate]) -> None:
    # Program order: accepted, rejected siblings, then the request.
    for update in updates:
        await ctx.backend.update_record(collection=update.collection, record_id=update.record_id, data=update.data)


async def transition_to_matched(
    ctx: AppContext,
    *,
    request: dict[str, Any],
    application: dict[str, Any],
) -> list[dict[str, Any]]:
    """Accept one application, reject its siblings and mark the request MATCHED.

    The writes go out as one batch request, which the backend runs in a
    single transaction. When batching is disabled, the batch endpoint fails or
    the writes exceed MAX_BATCH_REQUESTS, they are issued one by one and the
    result is not atomic.

    Returns:
        The sibling application records that were rejected
    """
    with span("walk_state_machine.transition_to_matched"):
        if application["request_id"] != request["id"]:
            msg = f"Application {application['id']} does not belong to walk request {request['id']}"
            raise PermissionError(msg)

        ensure_request_transition(request_id=request["id"], current=request["status"], target=WalkStatus.MATCHED)
        ensure_application_transition(
            application_id=application["id"], current=application["status"], target=ApplicationStatus.ACCEPTED
        )

        siblings = await ctx.backend.list_all_records(
            collection=APPLICATIONS,
            filter_query=(
                f'request_id = "{sanitize_param(request["id"])}" && id != "{sanitize_param(application["id"])}"'
            ),
        )
        rejected = [sibling for sibling in siblings if sibling["status"] == ApplicationStatus.PENDING]

        updates = [
            BatchUpdate(
                collection=APPLICATIONS, record_id=application["id"], data={"status": ApplicationStatus.ACCEPTED}
            ),
            *(
                BatchUpdate(
                    collection=APPLICATIONS, record_id=sibling["id"], data={"status": ApplicationStatus.REJECTED}
                )
                for sibling in rejected
            ),
            BatchUpdate(collection=WALK_REQUESTS, record_id=request["id"], data={"status": WalkStatus.MATCHED}),
        ]

        if len(updates) > constants.MAX_BATCH_REQUESTS:
            logger.warning(
                "Accept exceeds the batch limit, using non-atomic sequential writes",
                extra={"request_id": request["id"], "updates": len(updates)},
            )
            await _apply_sequentially(ctx, updates)
        elif settings.use_batch_accept:
            try:
                await ctx.backend.batch_update(updates=updates)
            except RecordNotFoundError:
                raise
            except DatabaseError as e:
                logger.warning(
                    "Batch accept failed, falling back to non-atomic sequential writes",
                    extra={"request_id": request["id"], "error": str(e)},
                )
                await _apply_sequentially(ctx, updates)
        else:
            logger.warning("Accepting with non-atomic sequential writes", extra={"request_id": request["id"]})
            await _apply_sequentially(ctx, updates)

        logger.info(
            "Transitioned walk request to MATCHED",
            extra={
                "request_id": request["id"],
                "application_id": application["id"],
                "walker_id": application["walker_id"],
                "rejected": len(rejected),
            },
        )
        return rejected


async def transition_to_completed(ctx: AppContext, *, request: dict[str, Any]) -> dict[str, Any]:
    """Mark a MATCHED walk request COMPLETED. COMPLETED is terminal."""
    with span("walk_state_machine.transition_to_completed"):
        ensure_request_transition(request_id=request["id"], current=request["status"], target=WalkStatus.COMPLETED)

        updated_record = await ctx.backend.update_record(
            collection=WALK_REQUESTS,
            record_id=request["id"],
            data={"status": WalkStatus.COMPLETED},
        )

        logger.info("Transitioned walk request to COMPLETED", extra={"request_id": request["id"]})
        return updated_record
