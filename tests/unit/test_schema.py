"""Unit tests for the PocketBase schema declarations and sync."""

import json

import httpx
import pytest

from walkmate.core.config import constants
from walkmate.core.schema import (
    COLLECTIONS,
    _diff_collection,
    _enable_batch_api,
    _get_collection_schema,
    _sync_collection,
)


@pytest.mark.unit
class TestCollectionSchema:
    """Tests for the declared collections."""

    @pytest.mark.parametrize("name", COLLECTIONS)
    def test_every_collection_is_declared(self, name):
        schema = _get_collection_schema(collection_name=name)

        assert schema["name"] == name
        assert "listRule" in schema

    def test_relations_use_known_collection_ids(self):
        schema = _get_collection_schema(collection_name="applications", collection_ids={"walk_requests": "pbc_123"})

        request_field = next(field for field in schema["fields"] if field["name"] == "request_id")
        walker_field = next(field for field in schema["fields"] if field["name"] == "walker_id")
        assert request_field["collectionId"] == "pbc_123"
        assert walker_field["collectionId"] == "profiles"

    def test_applications_enforce_single_match(self):
        indexes = _get_collection_schema(collection_name="applications")["indexes"]

        assert any("UNIQUE" in index and "(request_id, walker_id)" in index for index in indexes)
        assert any("WHERE status = 'ACCEPTED'" in index for index in indexes)

    def test_users_keep_sign_up_choices(self):
        fields = {field["name"]: field for field in _get_collection_schema(collection_name="users")["fields"]}

        assert fields["role"]["values"] == ["OWNER", "WALKER"]
        assert fields["nickname"]["required"] is False

    def test_unknown_collection(self):
        with pytest.raises(KeyError):
            _get_collection_schema(collection_name="chores")


@pytest.mark.unit
class TestDiffCollection:
    """Tests for _diff_collection."""

    def test_matching_collection_needs_no_update(self):
        schema = _get_collection_schema(collection_name="dogs")
        current = {
            **schema,
            "fields": [{**field, "id": f"f{i}", "hidden": False} for i, field in enumerate(schema["fields"])],
        }

        assert _diff_collection(schema, current) is None

    def test_missing_field_and_index_are_added(self):
        schema = _get_collection_schema(collection_name="dogs")
        current = {
            **schema,
            "fields": [{"id": "builtin", "name": "id", "type": "text"}, *schema["fields"][:-1]],
            "indexes": [],
        }

        payload = _diff_collection(schema, current)

        assert payload is not None
        assert [field["name"] for field in payload["fields"]][0] == "id"
        assert payload["fields"][-1]["name"] == "created"
        assert payload["indexes"] == schema["indexes"]

    def test_changed_rule_is_sent(self):
        schema = _get_collection_schema(collection_name="profiles")
        current = {**schema, "updateRule": ""}

        payload = _diff_collection(schema, current)

        assert payload["updateRule"] == schema["updateRule"]
        assert "listRule" not in payload


@pytest.mark.unit
class TestSyncCollection:
    """Tests for _sync_collection against a mocked PocketBase API."""

    async def test_missing_collection_is_created(self):
        created = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(404, json={"message": "Missing collection context."})
            created.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "pbc_dogs"})

        async with httpx.AsyncClient(base_url="http://pb.test", transport=httpx.MockTransport(handler)) as client:
            collection_id = await _sync_collection(
                client=client, collection_name="dogs", collection_ids={"profiles": "pbc_profiles"}
            )

        assert collection_id == "pbc_dogs"
        assert created[0]["fields"][0]["collectionId"] == "pbc_profiles"

    async def test_up_to_date_collection_is_not_patched(self):
        schema = _get_collection_schema(collection_name="chat_messages")
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(200, json={**schema, "id": "pbc_chat"})

        async with httpx.AsyncClient(base_url="http://pb.test", transport=httpx.MockTransport(handler)) as client:
            collection_id = await _sync_collection(client=client, collection_name="chat_messages", collection_ids={})

        assert collection_id == "pbc_chat"
        assert methods == ["GET"]

    async def test_batch_api_fits_accepts_past_one_page(self):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={})

        async with httpx.AsyncClient(base_url="http://pb.test", transport=httpx.MockTransport(handler)) as client:
            await _enable_batch_api(client=client)

        assert sent == [("/api/settings", {"batch": {"enabled": True, "maxRequests": constants.MAX_BATCH_REQUESTS}})]
        assert constants.MAX_BATCH_REQUESTS > constants.DEFAULT_PER_PAGE_LIMIT + 2
