"""Pure Python in-memory backend for unit testing."""

import asyncio
import copy
import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from walkmate.core.db_client import (
    AuthenticationError,
    AuthSession,
    BatchUpdate,
    DatabaseError,
    RecordNotFoundError,
)


# Relation field -> collection it points at, for expand=
RELATIONS = {
    "dog_id": "dogs",
    "owner_id": "profiles",
    "walker_id": "profiles",
    "sender_id": "profiles",
    "request_id": "walk_requests",
}

# Unique indexes enforced on create
UNIQUE_FIELDS = {
    "applications": [("request_id", "walker_id")],
}

FILE_BASE_URL = "http://pocketbase.test"

# Matches the backend page size, so long lists span several pages
PAGE_SIZE = 200


class InMemoryDBClient:
    """Pure Python in-memory implementation of the backend client.

    Mirrors PocketBaseClient: keyword-only record operations with simple
    filtering, sorting and relation expansion, transactional batch updates,
    password auth, file URLs and realtime create events. Every remote call is
    recorded in ``calls`` so tests can assert that nothing reached the backend.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._id_counter = 1000
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)
        self._users: dict[str, dict[str, Any]] = {}
        self._tokens: dict[str, str] = {}
        self._token: str | None = None
        self._subscribers: dict[str, Callable[[str, dict[str, Any]], None]] = {}
        self._failures: dict[tuple[str, str], Exception] = {}
        self.files: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.batch_enabled = True
        self.restore_delay = 0.0

    # -- test helpers ---------------------------------------------------------

    def _next_id(self) -> str:
        record_id = str(self._id_counter)
        self._id_counter += 1
        return record_id

    def _timestamp(self) -> str:
        # Strictly increasing so created-order is deterministic
        self._clock += timedelta(milliseconds=1)
        return self._clock.isoformat().replace("+00:00", "Z")

    def seed_user(
        self,
        *,
        email: str,
        password: str,
        user_id: str | None = None,
        verified: bool = True,
        data: dict[str, Any] | None = None,
    ) -> str:
        """Register an auth user directly, returning its id."""
        user_id = user_id or self._next_id()
        self._users[email] = {
            "id": user_id,
            "email": email,
            "password": password,
            "verified": verified,
            **(data or {}),
        }
        return user_id

    def verify_user(self, email: str) -> None:
        """Mark an account's e-mail as confirmed."""
        self._users[email]["verified"] = True

    def seed_record(self, collection: str, data: dict[str, Any], *, created: str | None = None) -> dict[str, Any]:
        """Store a record directly, without events or call tracking."""
        return copy.deepcopy(self._store(collection, data, created=created))

    def fail_next(self, method: str, collection: str, error: Exception) -> None:
        """Make the next call of method on collection raise error."""
        self._failures[(method, collection)] = error

    def records(self, collection: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(record) for record in self._collections.get(collection, {}).values()]

    def emit(self, collection: str, action: str, record: dict[str, Any]) -> None:
        """Deliver a realtime event to the collection's subscriber."""
        callback = self._subscribers.get(collection)
        if callback is not None:
            callback(action, copy.deepcopy(record))

    def _track(self, method: str, collection: str) -> None:
        self.calls.append((method, collection))
        error = self._failures.pop((method, collection), None)
        if error is not None:
            raise error

    def _store(self, collection: str, data: dict[str, Any], *, created: str | None = None) -> dict[str, Any]:
        plain = json.loads(json.dumps(data, default=str))
        record_id = plain.pop("id", None) or self._next_id()
        for field in ("created", "updated", "expand"):
            plain.pop(field, None)
        now = created or self._timestamp()
        record = {"id": record_id, "created": now, "updated": now, **plain}
        self._collections.setdefault(collection, {})[record_id] = record
        return record

    def _get(self, collection: str, record_id: str) -> dict[str, Any]:
        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        return record

    def _expand(self, record: dict[str, Any], expand: str) -> dict[str, Any]:
        result = copy.deepcopy(record)
        if not expand:
            return result
        expanded = {}
        for field in (name.strip() for name in expand.split(",")):
            target = RELATIONS.get(field)
            related = self._collections.get(target or "", {}).get(record.get(field, ""))
            if related is not None:
                expanded[field] = copy.deepcopy(related)
        if expanded:
            result["expand"] = expanded
        return result

    # -- auth -----------------------------------------------------------------

    @property
    def auth_token(self) -> str | None:
        return self._token

    def _session_for(self, user: dict[str, Any]) -> AuthSession:
        token = f"token-{user['id']}"
        self._tokens[token] = user["email"]
        self._token = token
        return AuthSession(
            token=token,
            user_id=user["id"],
            email=user["email"],
            verified=user["verified"],
            nickname=user.get("nickname", ""),
            role=user.get("role", ""),
        )

    async def auth_with_password(self, *, email: str, password: str) -> AuthSession:
        self._track("auth_with_password", "users")
        user = self._users.get(email)
        if user is None or user["password"] != password:
            msg = "Failed to authenticate: 400 invalid login credentials"
            raise AuthenticationError(msg)
        return self._session_for(user)

    async def restore_auth(self, *, token: str) -> AuthSession:
        self._track("restore_auth", "users")
        if self.restore_delay:
            await asyncio.sleep(self.restore_delay)
        email = self._tokens.get(token)
        if email is None:
            self._token = None
            msg = "Failed to refresh session: 401"
            raise AuthenticationError(msg)
        return self._session_for(self._users[email])

    def clear_auth(self) -> None:
        self._token = None

    async def create_user(self, *, email: str, password: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        self._track("create_user", "users")
        if email in self._users:
            msg = "Failed to register user: 400 validation_not_unique"
            raise AuthenticationError(msg)
        user_id = self.seed_user(email=email, password=password, verified=False, data=data)
        return {"id": user_id, "email": email, **(data or {})}

    # -- records --------------------------------------------------------------

    async def create_record(
        self,
        *,
        collection: str,
        data: dict[str, Any],
        files: dict[str, tuple[str, bytes]] | None = None,
    ) -> dict[str, Any]:
        self._track("create_record", collection)
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")

        for fields in UNIQUE_FIELDS.get(collection, []):
            for existing in self._collections.get(collection, {}).values():
                if all(str(existing.get(name)) == str(data.get(name)) for name in fields):
                    msg = f"Backend rejected POST on {collection}: 400 validation_not_unique"
                    raise DatabaseError(msg)

        stored = dict(data)
        for field, (filename, content) in (files or {}).items():
            stored[field] = filename
            self.files[filename] = content

        record = self._store(collection, stored)
        self.emit(collection, "create", record)
        return copy.deepcopy(record)

    async def get_record(self, *, collection: str, record_id: str, expand: str = "") -> dict[str, Any]:
        self._track("get_record", collection)
        return self._expand(self._get(collection, record_id), expand)

    async def update_record(
        self,
        *,
        collection: str,
        record_id: str,
        data: dict[str, Any],
        files: dict[str, tuple[str, bytes]] | None = None,
    ) -> dict[str, Any]:
        self._track("update_record", collection)
        if not data and not files:
            msg = "Empty update payload"
            raise ValueError(msg)
        record = self._get(collection, record_id)
        record.update(json.loads(json.dumps(data, default=str)))
        record["updated"] = self._timestamp()
        return copy.deepcopy(record)

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = PAGE_SIZE,
        filter_query: str = "",
        sort: str = "",
        expand: str = "",
    ) -> list[dict[str, Any]]:
        self._track("list_records", collection)
        records = list(self._collections.get(collection, {}).values())
        if filter_query:
            records = [record for record in records if self._parse_filter(filter_query, record)]
        if sort:
            records = self._apply_sort(records, sort)
        start = (page - 1) * per_page
        return [self._expand(record, expand) for record in records[start : start + per_page]]

    async def list_all_records(
        self,
        *,
        collection: str,
        filter_query: str = "",
        sort: str = "",
        expand: str = "",
    ) -> list[dict[str, Any]]:
        """Follow pages of PAGE_SIZE until a short page comes back."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = await self.list_records(
                collection=collection,
                page=page,
                per_page=PAGE_SIZE,
                filter_query=filter_query,
                sort=sort,
                expand=expand,
            )
            items.extend(batch)
            if len(batch) < PAGE_SIZE:
                return items
            page += 1

    async def get_first_record(self, *, collection: str, filter_query: str, expand: str = "") -> dict[str, Any] | None:
        records = await self.list_records(collection=collection, per_page=1, filter_query=filter_query, expand=expand)
        return records[0] if records else None

    async def batch_update(self, *, updates: list[BatchUpdate]) -> list[dict[str, Any]]:
        """All-or-nothing: every target must exist before anything is written."""
        self._track("batch_update", "batch")
        if not self.batch_enabled:
            msg = "Backend rejected POST on batch: 403 Batch requests are not allowed"
            raise DatabaseError(msg)
        for update in updates:
            self._get(update.collection, update.record_id)

        results = []
        for update in updates:
            record = self._get(update.collection, update.record_id)
            record.update(json.loads(json.dumps(update.data, default=str)))
            record["updated"] = self._timestamp()
            results.append(copy.deepcopy(record))
        return results

    def _parse_filter(self, filter_str: str, record: dict[str, Any]) -> bool:
        """Evaluate a filter with =, != and ~ conditions joined by &&."""
        if "&&" in filter_str:
            return all(self._parse_filter(condition.strip(), record) for condition in filter_str.split("&&"))

        for operator in ("!=", "~", "="):
            if operator not in filter_str:
                continue
            field, value = (part.strip() for part in filter_str.split(operator, 1))
            value = value.strip("'\"")
            actual = str(record.get(field, ""))
            if operator == "!=":
                return actual != value
            if operator == "~":
                return value.lower() in actual.lower()
            return actual == value

        raise DatabaseError(f"Invalid filter syntax (no operator found): {filter_str}")

    def _apply_sort(self, records: list[dict[str, Any]], sort: str) -> list[dict[str, Any]]:
        reverse = sort.startswith("-")
        field = sort.lstrip("-")
        return sorted(records, key=lambda record: record.get(field, ""), reverse=reverse)

    # -- files & realtime -----------------------------------------------------

    def file_url(self, *, collection: str, record_id: str, filename: str) -> str:
        return f"{FILE_BASE_URL}/api/files/{collection}/{record_id}/{filename}"

    async def subscribe(self, *, collection: str, callback: Callable[[str, dict[str, Any]], None]) -> None:
        self._track("subscribe", collection)
        # Yield like the real worker-thread call would
        await asyncio.sleep(0)
        self._subscribers[collection] = callback

    async def unsubscribe(self, *, collection: str) -> None:
        self._track("unsubscribe", collection)
        await asyncio.sleep(0)
        self._subscribers.pop(collection, None)

    @property
    def subscribed_collections(self) -> set[str]:
        return set(self._subscribers)
