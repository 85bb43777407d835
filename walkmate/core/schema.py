"""PocketBase schema management (code-first approach).

Collections are declared below with their API rules and indexes. The rules
are the real access control: the client-side role checks only spare the
backend a round trip.
"""

import logging
from typing import Any

import httpx
from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from walkmate.core.config import constants, settings
from walkmate.domain.dog import DogSize
from walkmate.domain.user import UserRole
from walkmate.domain.walk import ApplicationStatus, WalkStatus


logger = logging.getLogger(__name__)


# Creation order; relations point backwards only
COLLECTIONS = [
    "users",
    "profiles",
    "dogs",
    "walk_requests",
    "applications",
    "chat_messages",
]

RULE_KEYS = ("listRule", "viewRule", "createRule", "updateRule", "deleteRule")

SIGNED_IN = "@request.auth.id != ''"

# Viewer is the request owner or its accepted walker
_CHAT_PARTICIPANT_RULE = (
    f"{SIGNED_IN} && (request_id.owner_id = @request.auth.id || "
    "(@collection.applications.request_id ?= request_id && "
    "@collection.applications.walker_id ?= @request.auth.id && "
    "@collection.applications.status ?= 'ACCEPTED'))"
)


def _text(name: str, *, required: bool = True, **options: Any) -> dict[str, Any]:
    return {"name": name, "type": "text", "required": required, **options}


def _int(name: str, **options: Any) -> dict[str, Any]:
    return {"name": name, "type": "number", "required": True, "onlyInt": True, **options}


def _select(name: str, values: list[str], *, required: bool = True) -> dict[str, Any]:
    return {"name": name, "type": "select", "required": required, "values": values, "maxSelect": 1}


def _relation(name: str, target: str, ids: dict[str, str]) -> dict[str, Any]:
    # Relations need the target's real collection id once it exists
    return {
        "name": name,
        "type": "relation",
        "required": True,
        "collectionId": ids.get(target, target),
        "maxSelect": 1,
    }


def _timestamps(*, updated: bool = True) -> list[dict[str, Any]]:
    fields = [{"name": "created", "type": "autodate", "onCreate": True, "onUpdate": False}]
    if updated:
        fields.append({"name": "updated", "type": "autodate", "onCreate": True, "onUpdate": True})
    return fields


def _base(
    name: str,
    *,
    rules: dict[str, str | None],
    fields: list[dict[str, Any]],
    indexes: list[str],
) -> dict[str, Any]:
    return {
        "name": name,
        "type": "base",
        "system": False,
        **{key: rules.get(key) for key in RULE_KEYS},
        "fields": fields,
        "indexes": indexes,
    }


def _get_collection_schema(*, collection_name: str, collection_ids: dict[str, str] | None = None) -> dict[str, Any]:
    """Desired definition of one collection in PocketBase v0.23+ format (flat field options)."""
    ids = collection_ids or {}

    if collection_name == "users":
        own_record = "id = @request.auth.id"
        return {
            "name": "users",
            "type": "auth",
            "system": False,
            "listRule": own_record,
            "viewRule": own_record,
            "createRule": "",
            "updateRule": own_record,
            "deleteRule": None,
            # Sign-up choices, copied into the profile on first sign-in
            "fields": [
                _text("nickname", required=False, max=constants.MAX_NICKNAME_LENGTH),
                _select("role", [role.value for role in UserRole], required=False),
            ],
        }

    if collection_name == "profiles":
        # Role and trust score are fixed after sign-up
        return _base(
            "profiles",
            rules={
                "listRule": SIGNED_IN,
                "viewRule": SIGNED_IN,
                "createRule": "id = @request.auth.id",
                "updateRule": (
                    "id = @request.auth.id && @request.body.role:isset = false && "
                    "@request.body.trust_score:isset = false"
                ),
            },
            fields=[
                _text("nickname", min=constants.MIN_NICKNAME_LENGTH, max=constants.MAX_NICKNAME_LENGTH),
                _select("role", [role.value for role in UserRole]),
                _text("region_code"),
                {"name": "trust_score", "type": "number", "required": False},
                *_timestamps(),
            ],
            indexes=[],
        )

    if collection_name == "dogs":
        return _base(
            "dogs",
            rules={"listRule": SIGNED_IN, "viewRule": SIGNED_IN, "createRule": "owner_id = @request.auth.id"},
            fields=[
                _relation("owner_id", "profiles", ids),
                _text("name"),
                _text("breed"),
                _select("size", [size.value for size in DogSize]),
                _text("notes", required=False),
                {
                    "name": "image",
                    "type": "file",
                    "required": False,
                    "maxSelect": 1,
                    "maxSize": constants.MAX_UPLOAD_BYTES,
                    "mimeTypes": ["image/jpeg", "image/png", "image/webp", "image/gif"],
                },
                *_timestamps(updated=False),
            ],
            indexes=["CREATE INDEX idx_dogs_owner ON dogs (owner_id)"],
        )

    if collection_name == "walk_requests":
        # OPEN requests are public. Status only moves forward: the owner
        # matches, the accepted walker completes.
        public_or_signed_in = f"status = 'OPEN' || {SIGNED_IN}"
        return _base(
            "walk_requests",
            rules={
                "listRule": public_or_signed_in,
                "viewRule": public_or_signed_in,
                "createRule": (
                    "owner_id = @request.auth.id && dog_id.owner_id = @request.auth.id && "
                    "@request.body.status = 'OPEN'"
                ),
                "updateRule": (
                    "(owner_id = @request.auth.id && status = 'OPEN' && @request.body.status = 'MATCHED') || "
                    "(status = 'MATCHED' && @request.body.status = 'COMPLETED' && "
                    "@collection.applications.request_id ?= id && "
                    "@collection.applications.walker_id ?= @request.auth.id && "
                    "@collection.applications.status ?= 'ACCEPTED')"
                ),
            },
            fields=[
                _relation("owner_id", "profiles", ids),
                _relation("dog_id", "dogs", ids),
                {"name": "scheduled_at", "type": "date", "required": True},
                _int(
                    "duration",
                    min=min(constants.ALLOWED_DURATIONS_MINUTES),
                    max=max(constants.ALLOWED_DURATIONS_MINUTES),
                ),
                _int("reward", min=1),
                _text("region"),
                _select("status", [status.value for status in WalkStatus]),
                *_timestamps(),
            ],
            indexes=[
                "CREATE INDEX idx_requests_owner ON walk_requests (owner_id)",
                "CREATE INDEX idx_requests_status ON walk_requests (status)",
            ],
        )

    if collection_name == "applications":
        return _base(
            "applications",
            rules={
                "listRule": SIGNED_IN,
                "viewRule": SIGNED_IN,
                "createRule": (
                    "walker_id = @request.auth.id && request_id.status = 'OPEN' && "
                    "request_id.owner_id != @request.auth.id && @request.body.status = 'PENDING'"
                ),
                "updateRule": "request_id.owner_id = @request.auth.id && request_id.status = 'OPEN'",
            },
            fields=[
                _relation("request_id", "walk_requests", ids),
                _relation("walker_id", "profiles", ids),
                _select("status", [status.value for status in ApplicationStatus]),
                *_timestamps(),
            ],
            indexes=[
                "CREATE UNIQUE INDEX idx_applications_request_walker ON applications (request_id, walker_id)",
                "CREATE UNIQUE INDEX idx_applications_one_accepted ON applications (request_id) "
                "WHERE status = 'ACCEPTED'",
            ],
        )

    if collection_name == "chat_messages":
        # Messages are immutable
        return _base(
            "chat_messages",
            rules={
                "listRule": _CHAT_PARTICIPANT_RULE,
                "viewRule": _CHAT_PARTICIPANT_RULE,
                "createRule": (
                    f"sender_id = @request.auth.id && request_id.status = 'MATCHED' && {_CHAT_PARTICIPANT_RULE}"
                ),
            },
            fields=[
                _relation("request_id", "walk_requests", ids),
                _relation("sender_id", "profiles", ids),
                _text("content", max=1000),
                *_timestamps(updated=False),
            ],
            indexes=["CREATE INDEX idx_chat_request ON chat_messages (request_id, created)"],
        )

    msg = f"Unknown collection: {collection_name}"
    raise KeyError(msg)


def _diff_collection(schema: dict[str, Any], current: dict[str, Any]) -> dict[str, Any] | None:
    """PATCH payload that brings current up to schema, or None when nothing differs.

    Fields the server has but the schema doesn't (built-in auth fields) are
    kept. Existing field ids are carried over so fields update in place.
    """
    wanted = {field["name"]: field for field in schema.get("fields", [])}
    present = {field["name"]: field for field in current.get("fields", [])}

    fields = []
    for name, field in present.items():
        if name not in wanted:
            fields.append(field)
            continue
        merged = dict(wanted[name])
        if "id" in field:
            merged["id"] = field["id"]
        fields.append(merged)
    added = [field for name, field in wanted.items() if name not in present]
    fields.extend(added)

    rules = {key: schema[key] for key in RULE_KEYS if key in schema and schema[key] != current.get(key)}
    indexes = [index for index in schema.get("indexes", []) if index not in current.get("indexes", [])]

    changed_fields = [name for name in wanted if name in present and _field_differs(wanted[name], present[name])]
    if not added and not changed_fields and not rules and not indexes:
        return None

    payload: dict[str, Any] = {"fields": fields, **rules}
    if indexes:
        payload["indexes"] = list(current.get("indexes", [])) + indexes

    logger.info(
        "Collection %s differs from schema",
        schema["name"],
        extra={
            "added_fields": [field["name"] for field in added],
            "changed_fields": changed_fields,
            "rules": list(rules),
            "new_indexes": len(indexes),
        },
    )
    return payload


def _field_differs(wanted: dict[str, Any], present: dict[str, Any]) -> bool:
    # Only declared keys count; the server adds ids and defaults
    return any(present.get(key) != value for key, value in wanted.items())


async def _fetch_collection(*, client: httpx.AsyncClient, collection_name: str) -> dict[str, Any] | None:
    response = await client.get(f"/api/collections/{collection_name}")
    if response.status_code == httpx.codes.NOT_FOUND:
        return None
    response.raise_for_status()
    return response.json()


async def _sync_collection(
    *,
    client: httpx.AsyncClient,
    collection_name: str,
    collection_ids: dict[str, str],
) -> str:
    """Create or patch one collection and return its id."""
    schema = _get_collection_schema(collection_name=collection_name, collection_ids=collection_ids)
    current = await _fetch_collection(client=client, collection_name=collection_name)

    if current is None:
        response = await client.post("/api/collections", json=schema)
        response.raise_for_status()
        logger.info("Created collection %s", collection_name)
        return response.json()["id"]

    payload = _diff_collection(schema, current)
    if payload is None:
        logger.info("Collection %s is up to date", collection_name)
        return current["id"]

    response = await client.patch(f"/api/collections/{collection_name}", json=payload)
    response.raise_for_status()
    logger.info("Updated collection %s", collection_name)
    return current["id"]


async def _enable_batch_api(*, client: httpx.AsyncClient) -> None:
    """Turn on the transactional batch endpoint used by the accept workflow."""
    settings_patch = {"batch": {"enabled": True, "maxRequests": constants.MAX_BATCH_REQUESTS}}
    response = await client.patch("/api/settings", json=settings_patch)
    response.raise_for_status()
    logger.info("Enabled PocketBase batch API")


async def sync_schema(
    pocketbase_url: str | None = None,
    admin_email: str = "admin@test.local",
    admin_password: str = "testpassword123",  # noqa: S107
) -> None:
    """Bring the PocketBase collections in line with the declarations above. Safe to re-run.

    Args:
        pocketbase_url: PocketBase URL; defaults to settings.pocketbase_url
        admin_email: Superuser e-mail
        admin_password: Superuser password
    """
    url = pocketbase_url or settings.pocketbase_url
    logger.info("Syncing PocketBase schema", extra={"url": url})

    admin = PocketBase(url)
    try:
        admin.admins.auth_with_password(admin_email, admin_password)
    except ClientResponseError as e:
        logger.error("Superuser sign-in failed", extra={"url": url, "error": str(e)})
        raise

    async with httpx.AsyncClient(
        base_url=url,
        timeout=constants.API_TIMEOUT_SECONDS,
        headers={"Authorization": f"Bearer {admin.auth_store.token}"},
    ) as client:
        collection_ids: dict[str, str] = {}
        for collection_name in COLLECTIONS:
            collection_ids[collection_name] = await _sync_collection(
                client=client, collection_name=collection_name, collection_ids=collection_ids
            )
        await _enable_batch_api(client=client)

    logger.info("PocketBase schema sync complete", extra={"collections": len(collection_ids)})
