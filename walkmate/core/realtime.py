"""Realtime change feed fan-out.

The backend delivers change events per collection on its own thread. ChangeFeed
keeps one backend subscription per collection and hands each event to every
listener whose filter matches, on the application's event loop.
"""

import asyncio
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol


logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[None] | None]


class RealtimeBackend(Protocol):
    """Subset of the backend client used by the change feed."""

    async def subscribe(self, *, collection: str, callback: Callable[[str, dict[str, Any]], None]) -> None: ...

    async def unsubscribe(self, *, collection: str) -> None: ...


@dataclass
class Subscription:
    """A listener registered on the change feed."""

    id: int
    collection: str
    action: str
    match: Callable[[dict[str, Any]], bool]
    handler: Handler
    feed: "ChangeFeed"
    active: bool = True

    async def close(self) -> None:
        """Stop receiving events."""
        await self.feed.remove(self)


class ChangeFeed:
    """Per-collection fan-out of backend change events to filtered listeners.

    Backend subscribe and unsubscribe calls are serialized by a lock so a
    collection is never subscribed and unsubscribed at the same time.
    """

    def __init__(self, backend: RealtimeBackend, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._backend = backend
        self._loop = loop
        self._ids = itertools.count(1)
        self._listeners: dict[str, dict[int, Subscription]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._lock = asyncio.Lock()

    async def listen(
        self,
        *,
        collection: str,
        handler: Handler,
        match: Callable[[dict[str, Any]], bool] | None = None,
        action: str = "create",
    ) -> Subscription:
        """Register a listener; opens the backend subscription for the collection if needed."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        subscription = Subscription(
            id=next(self._ids),
            collection=collection,
            action=action,
            match=match or (lambda _record: True),
            handler=handler,
            feed=self,
        )

        async with self._lock:
            listeners = self._listeners.get(collection)
            if listeners is None:
                await self._backend.subscribe(
                    collection=collection,
                    callback=lambda event_action, record: self._on_event(collection, event_action, record),
                )
                listeners = self._listeners[collection] = {}
            listeners[subscription.id] = subscription

        logger.info("Realtime listener added", extra={"collection": collection, "subscription_id": subscription.id})
        return subscription

    async def remove(self, subscription: Subscription) -> None:
        """Unregister a listener; closes the backend subscription when the last one goes."""
        if not subscription.active:
            return
        subscription.active = False

        async with self._lock:
            listeners = self._listeners.get(subscription.collection, {})
            listeners.pop(subscription.id, None)
            if not listeners and subscription.collection in self._listeners:
                del self._listeners[subscription.collection]
                await self._backend.unsubscribe(collection=subscription.collection)

        logger.info(
            "Realtime listener removed",
            extra={"collection": subscription.collection, "subscription_id": subscription.id},
        )

    async def close(self) -> None:
        """Remove every listener."""
        for listeners in list(self._listeners.values()):
            for subscription in list(listeners.values()):
                await self.remove(subscription)

    @property
    def listener_count(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())

    def _on_event(self, collection: str, action: str, record: dict[str, Any]) -> None:
        """Receive an event from the backend, possibly on a foreign thread."""
        loop = self._loop
        if loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._dispatch(collection, action, record)
        else:
            loop.call_soon_threadsafe(self._dispatch, collection, action, record)

    def _dispatch(self, collection: str, action: str, record: dict[str, Any]) -> None:
        for subscription in list(self._listeners.get(collection, {}).values()):
            if not subscription.active or subscription.action != action:
                continue
            if not subscription.match(record):
                continue
            try:
                result = subscription.handler(record)
            except Exception:
                logger.exception(
                    "Realtime handler failed", extra={"collection": collection, "subscription_id": subscription.id}
                )
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result, loop=self._loop)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Realtime handler task failed", extra={"error": str(task.exception())})

    async def drain(self) -> None:
        """Wait for handler tasks scheduled so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
