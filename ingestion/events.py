"""
Per-job progress broadcasting with throttled delivery.

Each running job owns one ProgressBroadcaster, opened by the import runner
and disposed when the job ends. Subscribers get:

- one snapshot immediately on subscribe
- at most one non-terminal event per throttle interval
- the terminal event unthrottled, after which the subscription closes

Events a subscriber skips are dropped, not queued; the next delivered
event (and always the terminal one) carries the latest counters.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from schemas.job import JobProgressEvent

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class Subscription:
    """One observer's view of a job's progress"""

    def __init__(self, job_id: str, throttle_seconds: float, clock: Clock):
        self.job_id = job_id
        self.throttle_seconds = throttle_seconds
        self.closed = False
        self._clock = clock
        self._last_sent: Optional[float] = None
        self._queue: "asyncio.Queue[Optional[JobProgressEvent]]" = asyncio.Queue()

    def deliver_snapshot(self, event: JobProgressEvent):
        self._queue.put_nowait(event)

    def offer(self, event: JobProgressEvent) -> bool:
        """
        Hand an event to this subscriber if the throttle allows it.

        Returns:
            True if the event was queued
        """
        if self.closed:
            return False

        if event.is_terminal:
            self._queue.put_nowait(event)
            self.close()
            return True

        now = self._clock()
        if self._last_sent is not None and now - self._last_sent < self.throttle_seconds:
            return False
        self._last_sent = now
        self._queue.put_nowait(event)
        return True

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(None)

    async def get(self) -> Optional[JobProgressEvent]:
        """Next event, or None once the subscription is closed and drained"""
        return await self._queue.get()

    def pending(self) -> List[JobProgressEvent]:
        """Events queued but not yet consumed, without waiting"""
        events = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                events.append(event)
        return events

    def __aiter__(self):
        return self

    async def __anext__(self) -> JobProgressEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ProgressBroadcaster:
    """
    Publish/subscribe channel for one job.

    Args:
        job_id: Job the channel belongs to
        throttle_ms: Minimum spacing of non-terminal events per subscriber
        clock: Monotonic time source, seconds
    """

    def __init__(self, job_id: str, throttle_ms: int, clock: Clock = time.monotonic):
        self.job_id = job_id
        self.throttle_seconds = throttle_ms / 1000.0
        self.latest: Optional[JobProgressEvent] = None
        self.closed = False
        self._clock = clock
        self._subscribers: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, fallback: Optional[JobProgressEvent] = None) -> Subscription:
        """
        Attach an observer and queue its baseline snapshot.

        The snapshot is the latest published event, or the fallback (built
        from the stored job) when nothing has been published yet.
        """
        subscription = Subscription(self.job_id, self.throttle_seconds, self._clock)
        snapshot = self.latest or fallback
        if snapshot is not None:
            subscription.deliver_snapshot(snapshot)

        if self.closed or (snapshot is not None and snapshot.is_terminal):
            subscription.close()
            return subscription

        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
        subscription.close()

    def publish(self, event: JobProgressEvent) -> int:
        """
        Offer an event to every subscriber.

        Returns:
            Number of subscribers the event was queued for
        """
        if self.closed:
            logger.debug(f"Ignoring event for closed channel {self.job_id}")
            return 0

        self.latest = event
        delivered = sum(1 for subscription in list(self._subscribers) if subscription.offer(event))

        if event.is_terminal:
            self.close()
        return delivered

    def close(self):
        self.closed = True
        for subscription in self._subscribers:
            subscription.close()
        self._subscribers.clear()


class BroadcasterRegistry:
    """
    Lookup of live broadcasters by job id.

    The runner opens a channel when a job starts and disposes it when the
    job ends. An observer arriving before the job starts gets a channel
    early; it is dropped again if the observer leaves before any job
    claims it.
    """

    def __init__(self, throttle_ms: int, clock: Clock = time.monotonic):
        self.throttle_ms = throttle_ms
        self._clock = clock
        self._channels: Dict[str, ProgressBroadcaster] = {}
        self._owned: set = set()

    def open(self, job_id: str) -> ProgressBroadcaster:
        """Claim the channel for a running job"""
        broadcaster = self._channels.get(job_id)
        if broadcaster is None or broadcaster.closed:
            broadcaster = ProgressBroadcaster(job_id, self.throttle_ms, self._clock)
            self._channels[job_id] = broadcaster
        self._owned.add(job_id)
        return broadcaster

    def get(self, job_id: str) -> Optional[ProgressBroadcaster]:
        return self._channels.get(job_id)

    def dispose(self, job_id: str):
        """Close and forget a job's channel"""
        self._owned.discard(job_id)
        broadcaster = self._channels.pop(job_id, None)
        if broadcaster is not None:
            broadcaster.close()

    def subscribe(self, job_id: str, fallback: Optional[JobProgressEvent] = None) -> Subscription:
        broadcaster = self._channels.get(job_id)
        if broadcaster is None:
            broadcaster = ProgressBroadcaster(job_id, self.throttle_ms, self._clock)
            self._channels[job_id] = broadcaster
        return broadcaster.subscribe(fallback)

    def release(self, subscription: Subscription):
        """Detach an observer; drop its channel if nobody else needs it"""
        broadcaster = self._channels.get(subscription.job_id)
        if broadcaster is None:
            subscription.close()
            return
        broadcaster.unsubscribe(subscription)
        if broadcaster.subscriber_count == 0 and subscription.job_id not in self._owned:
            self._channels.pop(subscription.job_id, None)

    def __len__(self) -> int:
        return len(self._channels)
