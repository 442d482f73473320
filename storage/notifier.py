"""Push notifications for regenerated mind maps.

Subscribers register per page key and receive ``MIND_MAP_UPDATED`` events on
an ``asyncio.Queue``. A slow subscriber never blocks a broadcast: when its
queue is full the oldest event is dropped.
"""

import asyncio
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from api.utils.debug import print__storage_debug

MIND_MAP_UPDATED = "MIND_MAP_UPDATED"
SUBSCRIBER_QUEUE_SIZE = 16


class MindMapNotifier:
    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, page_key: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[page_key].add(queue)
        print__storage_debug(f"📡 NOTIFIER: subscriber added for {page_key}")
        return queue

    def unsubscribe(self, page_key: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(page_key)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[page_key]

    def subscriber_count(self, page_key: Optional[str] = None) -> int:
        if page_key is not None:
            return len(self._subscribers.get(page_key, ()))
        return sum(len(queues) for queues in self._subscribers.values())

    async def broadcast_updated(self, page_key: str, data: Dict[str, Any]) -> int:
        """Deliver the new map to every subscriber of ``page_key``."""
        event = {"type": MIND_MAP_UPDATED, "pageUrl": page_key, "data": data}
        delivered = 0
        for queue in list(self._subscribers.get(page_key, ())):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)
            delivered += 1
        print__storage_debug(f"📣 NOTIFIER: {MIND_MAP_UPDATED} sent to {delivered} subscribers")
        return delivered


_GLOBAL_NOTIFIER: Optional[MindMapNotifier] = None


def get_global_notifier() -> MindMapNotifier:
    global _GLOBAL_NOTIFIER
    if _GLOBAL_NOTIFIER is None:
        _GLOBAL_NOTIFIER = MindMapNotifier()
    return _GLOBAL_NOTIFIER
