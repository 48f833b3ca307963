"""
Real-time Case Notifications
============================

Per-case rooms. A subscriber joins the rooms of the cases it watches and
receives every event published to those rooms, in publish order.

Each subscriber owns a bounded asyncio.Queue. Publishing never blocks the
workflow: when a subscriber's queue is full the event is dropped for that
subscriber only and a warning is logged.
"""

import asyncio
import logging
import uuid
from typing import Dict, Set, Union

from .schemas import ArgumentAddedEvent, VerdictRenderedEvent

logger = logging.getLogger(__name__)

CaseEvent = Union[VerdictRenderedEvent, ArgumentAddedEvent]


class Subscriber:
    """One connected listener"""

    def __init__(self, queue_size: int = 100):
        self.id = uuid.uuid4().hex[:12]
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.rooms: Set[str] = set()

    def __repr__(self):
        return f"Subscriber({self.id}, rooms={sorted(self.rooms)})"


class NotificationBus:
    """
    Fan-out of case events to subscribers grouped by case.

    Usage:
        bus = NotificationBus()
        sub = bus.subscribe()
        bus.join("case_123", sub)
        bus.publish(VerdictRenderedEvent(case_id="case_123", verdict=verdict))
        event = await sub.queue.get()
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._rooms: Dict[str, Set[Subscriber]] = {}

    def subscribe(self) -> Subscriber:
        return Subscriber(self.queue_size)

    def join(self, case_id: str, subscriber: Subscriber):
        self._rooms.setdefault(case_id, set()).add(subscriber)
        subscriber.rooms.add(case_id)
        logger.debug(f"{subscriber.id} joined case {case_id}")

    def leave(self, case_id: str, subscriber: Subscriber):
        members = self._rooms.get(case_id)
        if members is not None:
            members.discard(subscriber)
            if not members:
                del self._rooms[case_id]
        subscriber.rooms.discard(case_id)
        logger.debug(f"{subscriber.id} left case {case_id}")

    def disconnect(self, subscriber: Subscriber):
        """Remove the subscriber from every room it joined"""
        for case_id in list(subscriber.rooms):
            self.leave(case_id, subscriber)

    def room_size(self, case_id: str) -> int:
        return len(self._rooms.get(case_id, ()))

    def publish(self, event: CaseEvent) -> int:
        """
        Deliver an event to every subscriber of its case.

        Returns:
            Number of subscribers the event was queued for
        """
        payload = event.to_json_dict()
        delivered = 0

        for subscriber in list(self._rooms.get(event.case_id, ())):
            try:
                subscriber.queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    f"Dropping {event.type.value} for {subscriber.id} on case {event.case_id}: queue full"
                )

        logger.info(f"Published {event.type.value} for case {event.case_id} to {delivered} subscriber(s)")
        return delivered
