"""Async in-process event bus used for store notifications.

Usage example:

    bus = EventBus(default_maxsize=16)
    sub = bus.subscribe("store.reset")

    async def consumer():
        async for env in sub:
            reason = unpack(env.payload)["reason"]

    await bus.publish("store.reset", pack({"reason": "user"}))

Notes
-----
- Every subscriber owns a bounded asyncio.Queue.
- A full queue drops its oldest entry on publish (drop-oldest backpressure).
- close() ends every subscription by enqueueing a sentinel.
- Payloads are bytes; pack/unpack use msgpack.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import monotonic
from typing import Any, AsyncIterator, Dict, List

import msgpack

__all__ = [
    "EventBus",
    "Subscription",
    "Envelope",
    "TopicStats",
    "pack",
    "unpack",
    "put_drop_oldest",
    "put_sentinel",
    "SENTINEL",
]


@dataclass(slots=True)
class Envelope:
    topic: str
    ts: float
    payload: bytes


@dataclass(slots=True)
class TopicStats:
    subscribers: int
    drops: int
    publishes: int
    deliveries: int


SENTINEL = object()


def put_drop_oldest(queue: asyncio.Queue[Any], item: Any) -> int:
    """Enqueue *item*, evicting the oldest entries while the queue is full.

    Returns the number of dropped entries.
    """
    dropped = 0
    while queue.full():
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            break
        dropped += 1
    queue.put_nowait(item)
    return dropped


def put_sentinel(queue: asyncio.Queue[Any]) -> None:
    """Append the end-of-stream sentinel even if the queue is full."""
    if queue.full():
        # Bypass maxsize so no pending message is lost. A full queue has no
        # waiting getters, so nobody needs waking.
        queue._queue.append(SENTINEL)  # type: ignore[attr-defined]
    else:
        queue.put_nowait(SENTINEL)


class _Topic:
    __slots__ = ("subscribers", "drops", "publishes", "deliveries")

    def __init__(self) -> None:
        self.subscribers: List[asyncio.Queue[Any]] = []
        self.drops = 0
        self.publishes = 0
        self.deliveries = 0


class EventBus:
    """Topic based pub/sub with per-subscriber bounded queues.

    Parameters
    ----------
    default_maxsize:
        Queue size for new subscriptions (min 1).
    """

    def __init__(self, *, default_maxsize: int = 64) -> None:
        self._maxsize = max(1, int(default_maxsize))
        self._topics: Dict[str, _Topic] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _topic(self, name: str) -> _Topic:
        state = self._topics.get(name)
        if state is None:
            state = _Topic()
            self._topics[name] = state
        return state

    def subscribe(self, topic: str) -> "Subscription":
        if self._closed:
            raise RuntimeError("EventBus is closed")
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self._maxsize)
        self._topic(topic).subscribers.append(queue)
        return Subscription(self, topic, queue)

    async def publish(self, topic: str, payload: bytes) -> None:
        self.publish_nowait(topic, payload)

    def publish_nowait(self, topic: str, payload: bytes) -> None:
        """Deliver *payload* to every current subscriber of *topic*.

        Safe to call from synchronous callbacks running on the event loop.
        """
        if self._closed:
            raise RuntimeError("EventBus is closed")
        env = Envelope(topic=topic, ts=monotonic(), payload=payload)
        state = self._topic(topic)
        state.publishes += 1
        for q in list(state.subscribers):
            state.drops += put_drop_oldest(q, env)
            state.deliveries += 1

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for state in self._topics.values():
            for q in list(state.subscribers):
                put_sentinel(q)

    def metrics(self) -> Dict[str, TopicStats]:
        return {
            name: TopicStats(
                subscribers=len(s.subscribers),
                drops=s.drops,
                publishes=s.publishes,
                deliveries=s.deliveries,
            )
            for name, s in self._topics.items()
        }

    def _remove(self, topic: str, queue: asyncio.Queue[Any]) -> None:
        state = self._topics.get(topic)
        if state is not None and queue in state.subscribers:
            state.subscribers.remove(queue)


class Subscription:
    """Async iterator over the envelopes published to one topic."""

    def __init__(self, bus: EventBus, topic: str, queue: asyncio.Queue[Any]) -> None:
        self._bus = bus
        self._topic = topic
        self._queue = queue
        self._closed = False

    @property
    def topic(self) -> str:
        return self._topic

    def __aiter__(self) -> AsyncIterator[Envelope]:
        return self

    async def __anext__(self) -> Envelope:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is SENTINEL:
            raise StopAsyncIteration
        assert isinstance(item, Envelope)
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        put_sentinel(self._queue)
        self._bus._remove(self._topic, self._queue)


# Serialization helpers -----------------------------------------------------


def pack(obj: Any) -> bytes:
    """Serialize an object to bytes using msgpack."""
    return msgpack.packb(obj, use_bin_type=True)


def unpack(b: bytes) -> Any:
    """Deserialize bytes into an object using msgpack."""
    return msgpack.unpackb(b, raw=False, strict_map_key=False)
