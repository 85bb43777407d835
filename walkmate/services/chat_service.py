"""Chat relay: per-request message channels with live inserts.

A channel is opened by the owner or the matched walker of a MATCHED or
COMPLETED walk. Messages are kept in created order without duplicates,
whether they arrive from the history load, a live insert or a local send.
"""

import bisect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from walkmate.core.context import AppContext
from walkmate.core.db_client import sanitize_param
from walkmate.core.logging import span
from walkmate.core.realtime import Subscription
from walkmate.domain.chat import ChatMessage, ChatSender
from walkmate.domain.walk import WalkRequest, WalkStatus
from walkmate.services import catalog_service, walk_service
from walkmate.services.catalog_service import WALK_REQUESTS
from walkmate.services.profile_service import PROFILES


logger = logging.getLogger(__name__)

CHAT_MESSAGES = "chat_messages"
PENDING_PREFIX = "pending-"

READABLE_STATUSES = frozenset({WalkStatus.MATCHED, WalkStatus.COMPLETED})


class ChatSendError(Exception):
    """Raised when a message could not be stored; carries the text so the input can be restored."""

    def __init__(self, message: str, *, content: str) -> None:
        super().__init__(message)
        self.content = content


@dataclass
class ChatChannel:
    """Open chat of one walk request."""

    request: WalkRequest
    viewer_id: str
    messages: list[ChatMessage] = field(default_factory=list)
    senders: dict[str, ChatSender] = field(default_factory=dict)
    subscription: Subscription | None = None

    @property
    def is_open(self) -> bool:
        return self.subscription is not None and self.subscription.active

    @property
    def can_send(self) -> bool:
        return self.request.status == WalkStatus.MATCHED

    def add(self, message: ChatMessage) -> bool:
        """Insert a message in created order; returns False for a duplicate id."""
        if any(existing.id == message.id for existing in self.messages):
            return False
        if message.sender is not None:
            self.senders.setdefault(message.sender.id, message.sender)
        index = bisect.bisect_right(self.messages, message.created, key=lambda existing: existing.created)
        self.messages.insert(index, message)
        return True

    def remove(self, message_id: str) -> None:
        self.messages = [message for message in self.messages if message.id != message_id]

    def confirm(self, pending_id: str, message: ChatMessage) -> None:
        """Replace a provisional message with the stored one."""
        self.remove(pending_id)
        self.add(message)


def message_from_record(record: dict[str, Any], *, sender: ChatSender | None = None) -> ChatMessage:
    """Map a chat_messages record, using the expanded sender when present."""
    sender_record = (record.get("expand") or {}).get("sender_id")
    if sender_record:
        sender = ChatSender(id=sender_record["id"], nickname=sender_record.get("nickname") or "")
    return ChatMessage(
        id=record["id"],
        request_id=record["request_id"],
        sender_id=record["sender_id"],
        sender=sender,
        content=record["content"],
        created=record["created"],
    )


async def _lookup_sender(ctx: AppContext, channel: ChatChannel, sender_id: str) -> ChatSender | None:
    if sender_id in channel.senders:
        return channel.senders[sender_id]
    try:
        record = await ctx.backend.get_record(collection=PROFILES, record_id=sender_id)
    except Exception as e:
        logger.warning("Sender lookup failed", extra={"sender_id": sender_id, "error": str(e)})
        return None
    sender = ChatSender(id=record["id"], nickname=record.get("nickname") or "")
    channel.senders[sender.id] = sender
    return sender


def _insert_handler(ctx: AppContext, channel: ChatChannel):
    async def on_insert(record: dict[str, Any]) -> None:
        if not channel.is_open:
            return
        sender = await _lookup_sender(ctx, channel, record["sender_id"])
        if channel.add(message_from_record(record, sender=sender)):
            logger.debug("Live chat message", extra={"request_id": channel.request.id, "message_id": record["id"]})

    return on_insert


async def open_channel(ctx: AppContext, *, request_id: str) -> ChatChannel:
    """Open (or reopen) the chat of a walk request and load its history.

    Raises:
        PermissionError: If the viewer is neither the owner nor the matched walker
        ValueError: If the walk is still OPEN
        RecordNotFoundError: If the request does not exist
    """
    with span("chat_service.open_channel"):
        user = ctx.current_user
        if user is None:
            msg = "Sign in to chat"
            raise PermissionError(msg)

        record = await ctx.backend.get_record(collection=WALK_REQUESTS, record_id=request_id, expand="dog_id")
        request = catalog_service.request_from_record(ctx, record)
        if request.status not in READABLE_STATUSES:
            msg = f"Cannot open chat: walk request {request_id} is {request.status}"
            raise ValueError(msg)

        walker_id = await walk_service.matched_walker_id(ctx, request_id=request_id)
        if user.id not in {request.owner_id, walker_id}:
            msg = f"Permission denied: not a participant of walk request {request_id}"
            raise PermissionError(msg)

        await close_channel(ctx, request_id=request_id)

        channel = ChatChannel(request=request, viewer_id=user.id)
        channel.senders[user.id] = ChatSender(id=user.id, nickname=user.nickname)

        # Subscribe first; history and live inserts may overlap
        channel.subscription = await ctx.feed.listen(
            collection=CHAT_MESSAGES,
            handler=_insert_handler(ctx, channel),
            match=lambda message: message.get("request_id") == request_id,
        )
        try:
            records = await ctx.backend.list_all_records(
                collection=CHAT_MESSAGES,
                filter_query=f'request_id = "{sanitize_param(request_id)}"',
                sort="created",
                expand="sender_id",
            )
        except Exception:
            await channel.subscription.close()
            logger.exception("Chat history load failed", extra={"request_id": request_id})
            raise

        for message_record in records:
            channel.add(message_from_record(message_record))

        ctx.channels[request_id] = channel
        logger.info(
            "Opened chat channel",
            extra={"request_id": request_id, "viewer_id": user.id, "messages": len(channel.messages)},
        )
        return channel


async def send_message(ctx: AppContext, *, request_id: str, content: str) -> ChatMessage:
    """Send a message on an open channel.

    A provisional message is shown immediately and replaced by the stored
    record on success, or removed on failure.

    Raises:
        ValueError: If the chat is not open, the text is blank or the walk is not MATCHED
        ChatSendError: If the backend rejects the write; carries the unsent text
    """
    with span("chat_service.send_message"):
        channel = ctx.channels.get(request_id)
        if channel is None or not channel.is_open:
            msg = "Open the chat before sending"
            raise ValueError(msg)

        text = content.strip()
        if not text:
            msg = "Message is empty"
            raise ValueError(msg)

        latest = catalog_service.find_request(ctx, request_id)
        if latest is not None:
            channel.request = latest
        if not channel.can_send:
            msg = f"Cannot send: walk request {request_id} is {channel.request.status}"
            raise ValueError(msg)

        sender = channel.senders.get(channel.viewer_id)
        pending = ChatMessage(
            id=f"{PENDING_PREFIX}{uuid.uuid4().hex}",
            request_id=request_id,
            sender_id=channel.viewer_id,
            sender=sender,
            content=text,
            created=ctx.now(),
            pending=True,
        )
        channel.add(pending)

        try:
            record = await ctx.backend.create_record(
                collection=CHAT_MESSAGES,
                data={"request_id": request_id, "sender_id": channel.viewer_id, "content": text},
            )
        except Exception as e:
            channel.remove(pending.id)
            logger.warning("Chat message send failed", extra={"request_id": request_id, "error": str(e)})
            msg = f"Failed to send message: {e}"
            raise ChatSendError(msg, content=content) from e

        message = message_from_record(record, sender=sender)
        channel.confirm(pending.id, message)

        logger.info("Sent chat message", extra={"request_id": request_id, "message_id": message.id})
        return message


async def close_channel(ctx: AppContext, *, request_id: str) -> None:
    """Tear down the chat of one request, if open."""
    channel = ctx.channels.pop(request_id, None)
    if channel is None:
        return
    if channel.subscription is not None:
        await channel.subscription.close()
    logger.info("Closed chat channel", extra={"request_id": request_id})


async def close_all_channels(ctx: AppContext) -> None:
    """Tear down every open chat."""
    for request_id in list(ctx.channels):
        await close_channel(ctx, request_id=request_id)
