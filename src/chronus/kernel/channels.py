"""
Channels: explicit message passing for components that cannot reach the
sequence library directly.

A ChannelHub is handed to whichever components need to talk across the
boundary. The SequenceGateway listens on an inbox channel for upsert, delete
and request messages and answers requests on the reply channel named in the
message.

The flow:
  1. Remote side posts {"type": "request", "ids": [...], "replyTo": "x"}
  2. SequenceGateway reads the library
  3. SequencesResponse is posted on channel "x"
  4. Subscribers of "x" are called, or the response waits in its queue
"""
from __future__ import annotations

import asyncio
from typing import Annotated, Any, Callable, Dict, List, Literal, Mapping, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .schema import Sequence
from .sequences import SequenceLibrary

DEFAULT_INBOX = "chronus:sequences"
DEFAULT_REPLY_TO = "chronus:sequences:response"

MessageHandler = Callable[[Any], None]


# =============================================================================
# Messages
# =============================================================================


class UpsertSequencesMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["upsert"] = "upsert"
    sequences: List[Dict[str, Any]] = Field(default_factory=list, alias="list")


class DeleteSequencesMessage(BaseModel):
    type: Literal["delete"] = "delete"
    ids: List[str] = Field(default_factory=list)


class RequestSequencesMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["request"] = "request"
    ids: Optional[List[str]] = None
    reply_to: Optional[str] = Field(default=None, alias="replyTo")


class SequencesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ids: Optional[List[str]] = None
    sequences: List[Sequence] = Field(default_factory=list, alias="list")


SequenceMessage = Annotated[
    Union[UpsertSequencesMessage, DeleteSequencesMessage, RequestSequencesMessage],
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter[SequenceMessage] = TypeAdapter(SequenceMessage)


def parse_message(raw: Any) -> SequenceMessage:
    """Validate a raw dict (or pass through a message model). Raises ValidationError."""
    if isinstance(raw, (UpsertSequencesMessage, DeleteSequencesMessage, RequestSequencesMessage)):
        return raw
    return _message_adapter.validate_python(raw)


# =============================================================================
# Channels
# =============================================================================


class ChannelSubscription:
    def __init__(self, channel: "Channel", handler: MessageHandler):
        self._channel = channel
        self.handler = handler

    def cancel(self) -> None:
        self._channel.unsubscribe(self.handler)

    __call__ = cancel


class Channel:
    """
    A named message channel.

    Messages are handed to subscribers synchronously. With no subscriber they
    wait in a queue until drained or awaited with receive().
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: List[MessageHandler] = []
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()

    def subscribe(self, handler: MessageHandler) -> ChannelSubscription:
        self._handlers.append(handler)
        return ChannelSubscription(self, handler)

    def unsubscribe(self, handler: MessageHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def post(self, message: Any) -> None:
        if not self._handlers:
            self._queue.put_nowait(message)
            return
        for handler in list(self._handlers):
            try:
                handler(message)
            except Exception:
                logger.opt(exception=True).warning("Handler on channel {} failed", self.name)

    def drain(self) -> List[Any]:
        """Return and clear every queued message."""
        messages = []
        while not self._queue.empty():
            messages.append(self._queue.get_nowait())
        return messages

    async def receive(self) -> Any:
        """Wait for the next queued message."""
        return await self._queue.get()

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class ChannelHub:
    """Named channels, created on first use."""

    def __init__(self) -> None:
        self._channels: Dict[str, Channel] = {}

    def channel(self, name: str) -> Channel:
        if name not in self._channels:
            self._channels[name] = Channel(name)
        return self._channels[name]

    def post(self, name: str, message: Any) -> None:
        self.channel(name).post(message)

    def names(self) -> List[str]:
        return list(self._channels)


# =============================================================================
# Gateway
# =============================================================================


class SequenceGateway:
    """
    Serves the sequence library over a ChannelHub.

    Requests without a replyTo are answered on ``reply_to``.
    """

    def __init__(
        self,
        library: SequenceLibrary,
        hub: ChannelHub,
        inbox: str = DEFAULT_INBOX,
        reply_to: str = DEFAULT_REPLY_TO,
    ) -> None:
        self._library = library
        self._hub = hub
        self.inbox = inbox
        self.reply_to = reply_to
        self._subscription: Optional[ChannelSubscription] = hub.channel(inbox).subscribe(self.handle)

    def handle(self, raw: Union[Mapping[str, Any], BaseModel]) -> None:
        try:
            message = parse_message(raw)
        except ValidationError as e:
            logger.warning("Dropped malformed message on {}: {}", self.inbox, e)
            return

        logger.debug("Gateway {} received {} message", self.inbox, message.type)
        if isinstance(message, UpsertSequencesMessage):
            self._library.upsert_sequences(message.sequences)
        elif isinstance(message, DeleteSequencesMessage):
            self._library.delete_sequences(message.ids)
        elif isinstance(message, RequestSequencesMessage):
            response = SequencesResponse(
                ids=message.ids,
                sequences=self._library.get_sequences(ids=message.ids),
            )
            self._hub.post(message.reply_to or self.reply_to, response)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
