"""
Best Shot Backend — Live Tally Aggregator
===========================================

What:  Maintains photo id → ordered voter names, shown as social-proof badges
       while participants are still choosing.
How:   A single asyncio task owns the mapping. It listens to the ledger
       change feed and, for every burst of events, re-reads the complete
       ledger and replaces the snapshot.

    change feed ──▶ queue ──▶ [aggregator task] ──▶ snapshot (version n+1)
                                                  └──▶ watcher queues (WebSocket clients)

Consistency:
    - Full refresh, not incremental diffing: every snapshot is a complete
      read of the ledger at one point in time.
    - Refreshes run one at a time inside the task, so an older read can
      never overwrite a newer one. Events that queue up during a refresh are
      drained and answered with a single further refresh.
    - Voter names are ordered by vote time, then name, so output is
      deterministic.
    - A failed read is logged and the previous snapshot stays in place.
"""

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.database import async_session_factory
from bestshot.models.participant import Participant
from bestshot.models.selection import Selection
from bestshot.services.change_feed import SelectionChangeFeed, change_feed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TallySnapshot:
    version: int
    voters: Mapping[int, Tuple[str, ...]] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @property
    def counts(self) -> Dict[int, int]:
        return {photo_id: len(names) for photo_id, names in self.voters.items()}


async def load_voter_map(db: AsyncSession) -> Dict[int, List[str]]:
    """Read every (photo, voter name) pair and group by photo."""
    result = await db.execute(
        select(Selection.photo_id, Participant.name)
        .join(Participant, Participant.id == Selection.participant_id)
        .order_by(
            Selection.photo_id.asc(),
            Selection.created_at.asc(),
            Participant.name.asc(),
        )
    )
    voters: Dict[int, List[str]] = {}
    for photo_id, name in result.all():
        voters.setdefault(photo_id, []).append(name)
    return voters


class TallyAggregator:
    """
    Owner of the live tally snapshot.

    Lifecycle: start() subscribes to the feed and loads the first snapshot;
    stop() cancels the task and drops the subscription. Both are called from
    the application lifespan.
    """

    def __init__(
        self,
        feed: SelectionChangeFeed,
        session_factory: Callable[[], AsyncSession],
    ):
        self._feed = feed
        self._session_factory = session_factory
        self._snapshot = TallySnapshot(version=0)
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._watchers: Set[asyncio.Queue] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def snapshot(self) -> TallySnapshot:
        return self._snapshot

    async def current_voters(self, db: AsyncSession) -> Mapping[int, Tuple[str, ...]]:
        """
        Voters for rendering a page. Uses the live snapshot while the
        aggregator runs, otherwise reads the ledger through the caller's session.
        """
        if self.running and self._snapshot.version > 0:
            return self._snapshot.voters
        voters = await load_voter_map(db)
        return {photo_id: tuple(names) for photo_id, names in voters.items()}

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self.running:
            return
        self._queue = self._feed.subscribe()
        await self._refresh()
        self._task = asyncio.create_task(self._run(), name="tally-aggregator")
        logger.info("Tally aggregator started (snapshot v%d)", self._snapshot.version)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                with suppress(asyncio.CancelledError):
                    await self._task
            except Exception:
                logger.exception("Tally aggregator task had failed before stop")
            self._task = None
        if self._queue is not None:
            self._feed.unsubscribe(self._queue)
            self._queue = None
        logger.info("Tally aggregator stopped")

    # ── Watchers (one per connected WebSocket) ────────────────────────────

    def watch(self) -> "asyncio.Queue[TallySnapshot]":
        """Register a watcher that receives only the latest snapshot."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._watchers.add(queue)
        return queue

    def unwatch(self, queue: asyncio.Queue) -> None:
        self._watchers.discard(queue)

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            await self._queue.get()
            coalesced = 1
            while not self._queue.empty():
                self._queue.get_nowait()
                coalesced += 1
            logger.debug("Refreshing tally for %d ledger event(s)", coalesced)
            try:
                await self._refresh()
            except Exception:
                logger.exception("Unexpected tally refresh failure; keeping snapshot v%d", self._snapshot.version)

    async def _refresh(self) -> TallySnapshot:
        try:
            async with self._session_factory() as db:
                voters = await load_voter_map(db)
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "Tally refresh failed; keeping snapshot v%d: %s",
                self._snapshot.version,
                str(e),
            )
            return self._snapshot

        self._snapshot = TallySnapshot(
            version=self._snapshot.version + 1,
            voters={photo_id: tuple(names) for photo_id, names in voters.items()},
            updated_at=datetime.now(timezone.utc),
        )
        self._notify_watchers()
        return self._snapshot

    def _notify_watchers(self) -> None:
        for queue in list(self._watchers):
            # Keep only the newest snapshot for slow clients
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(self._snapshot)


tally_aggregator = TallyAggregator(change_feed, async_session_factory)
