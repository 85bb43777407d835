"""PocketBase backend client wrapper with CRUD, batch, auth, file and realtime operations."""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from walkmate.core.config import constants, settings


logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404


class DatabaseError(Exception):
    """Raised when a backend read or write fails."""


class RecordNotFoundError(DatabaseError, KeyError):
    """Raised when a record does not exist or is not visible to the caller."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Record not found"


class AuthenticationError(DatabaseError):
    """Raised when the identity provider rejects a sign-in or sign-up."""


@dataclass
class AuthSession:
    """Authenticated identity returned by the identity provider."""

    token: str
    user_id: str
    email: str = ""
    verified: bool = True
    # Chosen at sign-up, kept on the account until a profile exists
    nickname: str = ""
    role: str = ""


@dataclass
class BatchUpdate:
    """One record update inside a transactional batch request."""

    collection: str
    record_id: str
    data: dict[str, Any] = field(default_factory=dict)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in PocketBase filter strings via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _normalize(value: Any) -> Any:
    """Convert SDK record objects and datetimes into plain JSON-compatible values."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _normalize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    if hasattr(value, "__dict__") and hasattr(value, "collection_id"):
        return _normalize(dict(value.__dict__))
    return value


def record_to_dict(record: Any) -> dict[str, Any]:
    """Convert a PocketBase SDK Record into a plain dict."""
    if isinstance(record, dict):
        return _normalize(record)
    return _normalize(dict(record.__dict__))


def _auth_session(result: Any, *, email: str = "") -> AuthSession:
    record = result.record
    return AuthSession(
        token=result.token,
        user_id=record.id,
        email=getattr(record, "email", email) or email,
        verified=bool(getattr(record, "verified", True)),
        nickname=getattr(record, "nickname", "") or "",
        role=getattr(record, "role", "") or "",
    )


class PocketBaseClient:
    """Async client for the PocketBase backend.

    Identity and realtime go through the PocketBase SDK; record reads and writes
    go through httpx with the SDK's auth token, so responses are plain JSON.
    SDK calls are synchronous and run in a worker thread.
    """

    def __init__(self, base_url: str | None = None, *, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.pocketbase_url).rstrip("/")
        self._pb = PocketBase(self.base_url)
        self._timeout = timeout or constants.API_TIMEOUT_SECONDS

    # -- auth -----------------------------------------------------------------

    @property
    def auth_token(self) -> str | None:
        """Current session token, or None when signed out."""
        return self._pb.auth_store.token or None

    def _headers(self) -> dict[str, str]:
        token = self.auth_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout, headers=self._headers())

    async def auth_with_password(self, *, email: str, password: str) -> AuthSession:
        """Sign in with e-mail and password."""
        try:
            result = await asyncio.to_thread(self._pb.collection("users").auth_with_password, email, password)
        except ClientResponseError as e:
            logger.warning("auth_with_password_failed", extra={"status": e.status})
            msg = f"Failed to authenticate: {e} {getattr(e, 'data', '')}"
            raise AuthenticationError(msg) from e

        session = _auth_session(result, email=email)
        logger.info("Authenticated user", extra={"user_id": session.user_id})
        return session

    async def restore_auth(self, *, token: str) -> AuthSession:
        """Load a persisted token into the auth store and refresh it against the backend."""
        self._pb.auth_store.save(token, None)
        try:
            result = await asyncio.to_thread(self._pb.collection("users").auth_refresh)
        except ClientResponseError as e:
            self._pb.auth_store.clear()
            msg = f"Failed to refresh session: {e}"
            raise AuthenticationError(msg) from e

        return _auth_session(result)

    def clear_auth(self) -> None:
        """Drop the current session token."""
        self._pb.auth_store.clear()

    async def create_user(self, *, email: str, password: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Register a new auth record in the users collection."""
        payload = {"email": email, "password": password, "passwordConfirm": password, **(data or {})}
        try:
            async with self._http() as client:
                response = await client.post("/api/collections/users/records", json=payload)
        except httpx.HTTPError as e:
            msg = f"Failed to register user (connection error): {e}"
            raise AuthenticationError(msg) from e

        if not response.is_success:
            logger.warning("create_user_failed", extra={"status": response.status_code})
            msg = f"Failed to register user: {response.status_code} {response.text}"
            raise AuthenticationError(msg)

        record = response.json()
        logger.info("Registered user", extra={"user_id": record.get("id")})
        return record

    # -- records --------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        collection: str,
        record_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        try:
            async with self._http() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                "backend_request_failed", extra={"collection": collection, "method": method, "error": str(e)}
            )
            msg = f"Backend connection error on {collection}: {e}"
            raise DatabaseError(msg) from e

        if response.status_code == HTTP_NOT_FOUND:
            msg = f"Record not found in {collection}: {record_id or ''}"
            raise RecordNotFoundError(msg)
        if not response.is_success:
            logger.error(
                "backend_request_rejected",
                extra={"collection": collection, "method": method, "status": response.status_code},
            )
            msg = f"Backend rejected {method} on {collection}: {response.status_code} {response.text}"
            raise DatabaseError(msg)
        if not response.content:
            return None
        return response.json()

    async def create_record(
        self,
        *,
        collection: str,
        data: dict[str, Any],
        files: dict[str, tuple[str, bytes]] | None = None,
    ) -> dict[str, Any]:
        """Create a new record in the specified collection."""
        path = f"/api/collections/{collection}/records"
        if files:
            form = {key: str(value) for key, value in data.items() if value is not None}
            record = await self._request("POST", path, collection=collection, data=form, files=files)
        else:
            record = await self._request("POST", path, collection=collection, json=data)
        logger.info("Created record", extra={"collection": collection, "record_id": record.get("id")})
        return record

    async def get_record(self, *, collection: str, record_id: str, expand: str = "") -> dict[str, Any]:
        """Get a record by ID, raising RecordNotFoundError if missing."""
        params = {"expand": expand} if expand else {}
        return await self._request(
            "GET",
            f"/api/collections/{collection}/records/{record_id}",
            collection=collection,
            record_id=record_id,
            params=params,
        )

    async def update_record(
        self,
        *,
        collection: str,
        record_id: str,
        data: dict[str, Any],
        files: dict[str, tuple[str, bytes]] | None = None,
    ) -> dict[str, Any]:
        """Update a record by ID and return the updated record."""
        if not data and not files:
            msg = "Empty update payload"
            raise ValueError(msg)

        path = f"/api/collections/{collection}/records/{record_id}"
        if files:
            form = {key: str(value) for key, value in data.items() if value is not None}
            record = await self._request(
                "PATCH", path, collection=collection, record_id=record_id, data=form, files=files
            )
        else:
            record = await self._request("PATCH", path, collection=collection, record_id=record_id, json=data)
        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return record

    async def _list_page(
        self,
        *,
        collection: str,
        page: int,
        per_page: int,
        filter_query: str,
        sort: str,
        expand: str,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"page": page, "perPage": per_page}
        if filter_query:
            params["filter"] = filter_query
        if sort:
            params["sort"] = sort
        if expand:
            params["expand"] = expand

        result = await self._request(
            "GET", f"/api/collections/{collection}/records", collection=collection, params=params
        )
        return result or {}

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = constants.DEFAULT_PER_PAGE_LIMIT,
        filter_query: str = "",
        sort: str = "",
        expand: str = "",
    ) -> list[dict[str, Any]]:
        """List one page of records with optional filtering, sorting and expansion."""
        result = await self._list_page(
            collection=collection, page=page, per_page=per_page, filter_query=filter_query, sort=sort, expand=expand
        )
        items = result.get("items", [])
        logger.info("Listed records", extra={"collection": collection, "page": page, "count": len(items)})
        return items

    async def list_all_records(
        self,
        *,
        collection: str,
        filter_query: str = "",
        sort: str = "",
        expand: str = "",
    ) -> list[dict[str, Any]]:
        """List every matching record, following pages until ``totalPages`` is reached."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            result = await self._list_page(
                collection=collection,
                page=page,
                per_page=constants.DEFAULT_PER_PAGE_LIMIT,
                filter_query=filter_query,
                sort=sort,
                expand=expand,
            )
            batch = result.get("items", [])
            items.extend(batch)
            if not batch or page >= result.get("totalPages", page):
                break
            page += 1

        logger.info("Listed all records", extra={"collection": collection, "pages": page, "count": len(items)})
        return items

    async def get_first_record(self, *, collection: str, filter_query: str, expand: str = "") -> dict[str, Any] | None:
        """Return the first record matching the filter, or None."""
        records = await self.list_records(
            collection=collection, per_page=1, filter_query=filter_query, expand=expand
        )
        return records[0] if records else None

    async def batch_update(self, *, updates: list[BatchUpdate]) -> list[dict[str, Any]]:
        """Apply several record updates in one server-side transaction.

        PocketBase runs every request of a batch inside a single transaction:
        either all updates land or none do.
        """
        payload = {
            "requests": [
                {
                    "method": "PATCH",
                    "url": f"/api/collections/{update.collection}/records/{update.record_id}",
                    "body": update.data,
                }
                for update in updates
            ]
        }
        results = await self._request("POST", "/api/batch", collection="batch", json=payload)
        logger.info("Applied batch update", extra={"count": len(updates)})
        return [result.get("body", {}) for result in results or []]

    # -- files ----------------------------------------------------------------

    def file_url(self, *, collection: str, record_id: str, filename: str) -> str:
        """Return the public URL of a stored file."""
        return f"{self.base_url}/api/files/{collection}/{record_id}/{filename}"

    # -- realtime -------------------------------------------------------------

    async def subscribe(self, *, collection: str, callback: Callable[[str, dict[str, Any]], None]) -> None:
        """Subscribe to change events of a collection.

        The callback receives (action, record) on the SDK's realtime thread.
        """

        def _on_message(event: Any) -> None:
            callback(event.action, record_to_dict(event.record))

        await asyncio.to_thread(self._pb.collection(collection).subscribe, _on_message)
        logger.info("Subscribed to realtime changes", extra={"collection": collection})

    async def unsubscribe(self, *, collection: str) -> None:
        """Remove every realtime subscription of a collection."""
        await asyncio.to_thread(self._pb.collection(collection).unsubscribe)
        logger.info("Unsubscribed from realtime changes", extra={"collection": collection})
