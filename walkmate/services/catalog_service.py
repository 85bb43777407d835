"""Catalog service: full-replace fetches of dogs, walk requests and applications.

Every fetch replaces its in-memory collection wholesale with the backend's
response and writes it through to the warm-start cache. Overlapping fetches
are not coalesced; whichever resolves last wins.
"""

import logging
from typing import Any

from walkmate.core.config import constants
from walkmate.core.context import AppContext
from walkmate.core.db_client import sanitize_param
from walkmate.core.logging import span
from walkmate.domain.dog import Dog
from walkmate.domain.user import Profile, UserRole
from walkmate.domain.walk import Application, WalkRequest, WalkStatus


logger = logging.getLogger(__name__)

DOGS = "dogs"
WALK_REQUESTS = "walk_requests"
APPLICATIONS = "applications"


def dog_from_record(ctx: AppContext, record: dict[str, Any]) -> Dog:
    """Map a dogs record, resolving the stored photo to its public URL."""
    image_url = None
    if record.get("image"):
        image_url = ctx.backend.file_url(collection=DOGS, record_id=record["id"], filename=record["image"])
    return Dog.from_record(record, image_url=image_url)


def request_from_record(ctx: AppContext, record: dict[str, Any]) -> WalkRequest:
    """Map a walk_requests record with its expanded dog."""
    dog_record = (record.get("expand") or {}).get("dog_id")
    return WalkRequest(
        id=record["id"],
        owner_id=record["owner_id"],
        dog_id=record["dog_id"],
        dog=dog_from_record(ctx, dog_record) if dog_record else None,
        scheduled_at=record["scheduled_at"],
        duration=int(record["duration"]),
        reward=int(record["reward"]),
        region=record.get("region") or "",
        status=record["status"],
        created=record.get("created") or None,
    )


def application_from_record(record: dict[str, Any]) -> Application:
    """Map an applications record with its expanded walker profile."""
    walker_record = (record.get("expand") or {}).get("walker_id")
    return Application(
        id=record["id"],
        request_id=record["request_id"],
        walker_id=record["walker_id"],
        walker=Profile.from_record(walker_record) if walker_record else None,
        status=record["status"],
        created=record.get("created") or None,
    )


async def _persist(ctx: AppContext, key: str, items: list[Any]) -> None:
    if ctx.cache is None:
        return
    try:
        await ctx.cache.set(key, [item.model_dump(mode="json") for item in items])
    except Exception as e:
        # Cache writes never fail a fetch
        logger.warning("Failed to write warm-start cache", extra={"key": key, "error": str(e)})


async def fetch_dogs(ctx: AppContext, *, owner_id: str) -> list[Dog]:
    """Replace the dog collection with the owner's dogs, newest first."""
    with span("catalog_service.fetch_dogs"):
        records = await ctx.backend.list_all_records(
            collection=DOGS,
            filter_query=f'owner_id = "{sanitize_param(owner_id)}"',
            sort="-created",
        )
        dogs = [dog_from_record(ctx, record) for record in records]
        ctx.catalog.dogs = dogs
        await _persist(ctx, constants.CACHE_KEY_DOGS, dogs)
        return dogs


async def fetch_requests(ctx: AppContext, *, open_only: bool = False) -> list[WalkRequest]:
    """Replace the request collection, each request with its dog embedded, newest first."""
    with span("catalog_service.fetch_requests"):
        records = await ctx.backend.list_all_records(
            collection=WALK_REQUESTS,
            filter_query=f'status = "{WalkStatus.OPEN}"' if open_only else "",
            sort="-created",
            expand="dog_id",
        )
        requests = [request_from_record(ctx, record) for record in records]
        ctx.catalog.requests = requests
        await _persist(ctx, constants.CACHE_KEY_REQUESTS, requests)
        return requests


async def fetch_applications(ctx: AppContext) -> list[Application]:
    """Replace the application collection, each with its walker profile embedded, newest first."""
    with span("catalog_service.fetch_applications"):
        records = await ctx.backend.list_all_records(
            collection=APPLICATIONS,
            sort="-created",
            expand="walker_id",
        )
        applications = [application_from_record(record) for record in records]
        ctx.catalog.applications = applications
        await _persist(ctx, constants.CACHE_KEY_APPLICATIONS, applications)
        return applications


async def load_public_catalog(ctx: AppContext) -> list[WalkRequest]:
    """Reset to the logged-out view: OPEN requests only, no applications or dogs."""
    with span("catalog_service.load_public_catalog"):
        ctx.catalog.clear()
        await _persist(ctx, constants.CACHE_KEY_APPLICATIONS, [])
        await _persist(ctx, constants.CACHE_KEY_DOGS, [])
        return await fetch_requests(ctx, open_only=True)


async def refresh(ctx: AppContext) -> None:
    """Reload everything visible to the current viewer."""
    with span("catalog_service.refresh"):
        user = ctx.current_user
        if user is None:
            await load_public_catalog(ctx)
            return

        await fetch_requests(ctx)
        await fetch_applications(ctx)
        if user.role == UserRole.OWNER:
            await fetch_dogs(ctx, owner_id=user.id)
        else:
            ctx.catalog.dogs = []

        logger.info(
            "Catalog refreshed",
            extra={
                "user_id": user.id,
                "requests": len(ctx.catalog.requests),
                "applications": len(ctx.catalog.applications),
                "dogs": len(ctx.catalog.dogs),
            },
        )


async def warm_start(ctx: AppContext) -> None:
    """Seed the catalog from the warm-start cache; unreadable entries are skipped."""
    if ctx.cache is None:
        return

    with span("catalog_service.warm_start"):
        cached_requests = await ctx.cache.get(constants.CACHE_KEY_REQUESTS, [])
        cached_applications = await ctx.cache.get(constants.CACHE_KEY_APPLICATIONS, [])
        cached_dogs = await ctx.cache.get(constants.CACHE_KEY_DOGS, [])

        try:
            ctx.catalog.requests = [WalkRequest.model_validate(item) for item in cached_requests]
            ctx.catalog.applications = [Application.model_validate(item) for item in cached_applications]
            ctx.catalog.dogs = [Dog.model_validate(item) for item in cached_dogs]
        except ValueError as e:
            logger.warning("Discarding stale warm-start cache", extra={"error": str(e)})
            ctx.catalog.clear()
            return

        logger.info("Warm start from cache", extra={"requests": len(ctx.catalog.requests)})


def find_request(ctx: AppContext, request_id: str) -> WalkRequest | None:
    """Look up a request in the in-memory catalog."""
    return next((request for request in ctx.catalog.requests if request.id == request_id), None)
