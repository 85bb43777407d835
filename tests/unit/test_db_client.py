"""Unit tests for PocketBaseClient paging and realtime calls."""

import threading
from unittest.mock import MagicMock

import httpx
import pytest

from walkmate.core.db_client import PocketBaseClient


BASE_URL = "http://pb.test"


def _client_with_pages(total: int, per_page: int = 200) -> tuple[PocketBaseClient, list[int]]:
    """Client whose record listing serves `total` items in pages of `per_page`."""
    requested_pages: list[int] = []
    total_pages = max(1, -(-total // per_page))

    def handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        requested_pages.append(page)
        start = (page - 1) * per_page
        items = [{"id": f"m{index}"} for index in range(start, min(start + per_page, total))]
        return httpx.Response(
            200,
            json={"page": page, "perPage": per_page, "totalItems": total, "totalPages": total_pages, "items": items},
        )

    client = PocketBaseClient(BASE_URL)
    client._http = lambda: httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return client, requested_pages


@pytest.mark.unit
class TestListAllRecords:
    """Tests for list_all_records."""

    async def test_follows_every_page(self):
        client, requested_pages = _client_with_pages(450)

        records = await client.list_all_records(collection="chat_messages", sort="created")

        assert len(records) == 450
        assert records[-1]["id"] == "m449"
        assert requested_pages == [1, 2, 3]

    async def test_stops_at_total_pages(self):
        client, requested_pages = _client_with_pages(200)

        records = await client.list_all_records(collection="applications")

        assert len(records) == 200
        assert requested_pages == [1]

    async def test_empty_collection(self):
        client, requested_pages = _client_with_pages(0)

        assert await client.list_all_records(collection="dogs") == []
        assert requested_pages == [1]

    async def test_list_records_returns_a_single_page(self):
        client, requested_pages = _client_with_pages(250)

        records = await client.list_records(collection="walk_requests")

        assert len(records) == 200
        assert requested_pages == [1]


@pytest.mark.unit
class TestRealtimeCalls:
    """The SDK's realtime calls block, so they run off the event loop thread."""

    async def test_subscribe_and_unsubscribe_run_in_worker_thread(self):
        loop_thread = threading.get_ident()
        threads = {}
        sdk = MagicMock()
        sdk.collection.return_value.subscribe.side_effect = lambda _callback: threads.update(
            subscribe=threading.get_ident()
        )
        sdk.collection.return_value.unsubscribe.side_effect = lambda: threads.update(
            unsubscribe=threading.get_ident()
        )
        client = PocketBaseClient(BASE_URL)
        client._pb = sdk

        await client.subscribe(collection="chat_messages", callback=lambda _action, _record: None)
        await client.unsubscribe(collection="chat_messages")

        sdk.collection.assert_called_with("chat_messages")
        assert threads["subscribe"] != loop_thread
        assert threads["unsubscribe"] != loop_thread

    async def test_events_are_converted_to_plain_records(self):
        sdk = MagicMock()
        client = PocketBaseClient(BASE_URL)
        client._pb = sdk
        received = []

        await client.subscribe(
            collection="chat_messages", callback=lambda action, record: received.append((action, record))
        )
        on_message = sdk.collection.return_value.subscribe.call_args.args[0]
        on_message(MagicMock(action="create", record={"id": "m1", "content": "hi"}))

        assert received == [("create", {"id": "m1", "content": "hi"})]
