"""
In-process broadcast bus for real-time dashboard updates.

One publish reaches every current subscriber of the same site. There is no
backlog: a subscriber that connects after a publish never sees it. With more
than one API process this needs an external broker instead.
"""

import asyncio
import logging
from typing import Any, Dict, Set


logger = logging.getLogger(__name__)


class Subscription:
    """
    A single dashboard connection listening to one site.

    Use as an async context manager; iterating yields payload dicts.
    """

    def __init__(self, stream: "LiveStream", site_id: str, max_queue_size: int = 100):
        self.stream = stream
        self.site_id = site_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self.dropped = 0

    def offer(self, payload: Dict[str, Any]) -> bool:
        """Hand a message to this subscriber without blocking the publisher"""
        try:
            self.queue.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            # Slow consumer: it loses the message, nobody else does
            self.dropped += 1
            return False

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()

    def close(self):
        self.stream.unsubscribe(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    def __aiter__(self):
        return self

    async def __anext__(self) -> Dict[str, Any]:
        return await self.get()


class LiveStream:
    """
    Publish/subscribe bus filtered by site id.

    publish() is synchronous and never blocks; call it from the event loop
    thread.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: Dict[str, Set[Subscription]] = {}

    def subscribe(self, site_id: str) -> Subscription:
        subscription = Subscription(self, site_id, self.max_queue_size)
        self._subscribers.setdefault(site_id, set()).add(subscription)
        logger.debug("Live subscriber added for site %s", site_id)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        subscribers = self._subscribers.get(subscription.site_id)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.site_id]

    def publish(self, site_id: str, payload: Dict[str, Any]) -> int:
        """
        Fan a message out to the site's subscribers.

        Returns:
            Number of subscribers that accepted the message
        """
        delivered = 0
        for subscription in list(self._subscribers.get(site_id, ())):
            if subscription.offer(payload):
                delivered += 1
        return delivered

    def subscriber_count(self, site_id: str) -> int:
        return len(self._subscribers.get(site_id, ()))
