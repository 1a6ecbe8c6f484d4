"""
Best Shot Backend — Selection Ledger Change Feed
==================================================

What:  In-process publish/subscribe channel for ledger insert/delete events.
How:   Each subscriber owns an asyncio.Queue. Writers publish after their
       transaction commits; the live tally aggregator is the main consumer.
       The feed is global: events are not filtered by participant.

    VoteService.submit ──┐                      ┌──▶ TallyAggregator queue
                         ├──▶ publish(change) ──┤
    AdminService.reset ──┘                      └──▶ (any other subscriber)

Single process only. Multiple workers would need a shared broker
(e.g. PostgreSQL LISTEN/NOTIFY) behind the same interface.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Set, Tuple

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class SelectionChange:
    """One committed batch write to the ledger."""
    kind: ChangeKind
    participant_id: uuid.UUID
    photo_ids: Tuple[int, ...] = ()
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SelectionChangeFeed:
    """
    Fan-out of SelectionChange events to subscriber queues.

    Queues are bounded. A subscriber that falls behind loses events, which
    is harmless for full-refresh consumers: one pending event is enough to
    trigger a complete re-read.
    """

    def __init__(self, max_pending: int = 1000):
        self.max_pending = max_pending
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> "asyncio.Queue[SelectionChange]":
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_pending)
        self._subscribers.add(queue)
        logger.debug("Change feed subscriber added (total=%d)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.debug("Change feed subscriber removed (total=%d)", len(self._subscribers))

    def publish(self, change: SelectionChange) -> int:
        """Deliver to every subscriber. Returns how many queues accepted it."""
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(change)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Change feed subscriber is full; dropped %s event for participant %s",
                    change.kind.value,
                    change.participant_id,
                )
        logger.info(
            "Ledger %s for participant %s (%d photos) delivered to %d subscriber(s)",
            change.kind.value,
            change.participant_id,
            len(change.photo_ids),
            delivered,
        )
        return delivered


# Shared by the services and the aggregator within this process
change_feed = SelectionChangeFeed()
