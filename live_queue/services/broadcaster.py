"""
In-process fan-out of ticket updates to every connected viewer.

Each subscription gets its own bounded queue. Publishing never waits: when a
subscriber's queue is full its oldest entry is dropped, and the subscriber is
told how many updates it missed on its next receive.
"""
import asyncio
import logging
from typing import Set

from ..core.models import TicketUpdate

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

# Marks the end of a subscription's stream once the broadcaster is closed.
_CLOSED = object()


class SubscriptionClosed(Exception):
    """The broadcaster was closed; no more updates will arrive."""


class SubscriptionLagged(Exception):
    """The subscriber fell behind and some updates were dropped."""

    def __init__(self, missed: int):
        super().__init__(f"subscriber missed {missed} update(s)")
        self.missed = missed


class Subscription:
    """The receiving end handed to one viewer."""

    def __init__(self, broadcaster: "Broadcaster", capacity: int):
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._missed = 0
        self._closed = False
        self._released = False

    async def recv(self) -> TicketUpdate:
        """
        Waits for the next update.

        Raises SubscriptionLagged once after updates were dropped for this
        subscriber; the following calls continue from the oldest update still
        buffered. Raises SubscriptionClosed when the stream has ended.
        """
        if self._missed:
            missed, self._missed = self._missed, 0
            raise SubscriptionLagged(missed)
        if self._closed and self._queue.empty():
            raise SubscriptionClosed()

        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise SubscriptionClosed()
        return item

    def close(self) -> None:
        """Stops tracking this subscription. Safe to call more than once."""
        if not self._released:
            self._released = True
            self._broadcaster._unsubscribe(self)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _push(self, item) -> bool:
        """Enqueues without blocking, dropping the oldest entry if full. Returns True on a drop."""
        dropped = False
        if self._queue.full():
            self._queue.get_nowait()
            self._missed += 1
            dropped = True
        self._queue.put_nowait(item)
        return dropped

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Broadcaster:
    """Single-producer, many-consumer channel of TicketUpdate values."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._subscriptions: Set[Subscription] = set()
        self._closed = False
        self._dropped = 0

    def publish(self, record: TicketUpdate) -> int:
        """Delivers `record` to every current subscription. Returns how many were reached."""
        if self._closed:
            logger.debug("Broadcaster is closed, dropping update")
            return 0

        subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            if subscription._push(record):
                self._dropped += 1
        logger.debug(f"Published {record} to {len(subscriptions)} subscriber(s)")
        return len(subscriptions)

    def subscribe(self) -> Subscription:
        """Opens a subscription that sees only updates published from now on."""
        subscription = Subscription(self, self._capacity)
        if self._closed:
            subscription._push(_CLOSED)
            return subscription
        self._subscriptions.add(subscription)
        logger.info(f"New subscriber. Total subscribers: {len(self._subscriptions)}")
        return subscription

    def close(self) -> None:
        """Ends every subscription's stream. Buffered updates are still delivered first."""
        if self._closed:
            return
        self._closed = True
        for subscription in list(self._subscriptions):
            subscription._push(_CLOSED)
        logger.info(f"Broadcaster closed with {len(self._subscriptions)} subscriber(s) attached")

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.discard(subscription)
            logger.info(f"Subscriber left. Remaining subscribers: {len(self._subscriptions)}")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Broadcaster {state} subscribers={len(self._subscriptions)}>"
