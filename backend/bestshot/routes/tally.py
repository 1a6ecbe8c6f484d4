"""
Best Shot Backend — Live Tally Routes
=======================================

What:  Exposes the live "who picked what" snapshot.

    GET /api/tally      current snapshot (polling clients, first paint)
    WS  /api/tally/ws   snapshot on connect, then one message per refresh

WebSocket lifecycle:
    connect   → register a watcher queue, send the current snapshot
    refresh   → the aggregator replaces the queued snapshot with the newest
    disconnect→ the watcher is unregistered; nothing else is kept per client
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from bestshot.presenters import tally_response
from bestshot.schemas.tally import TallyResponse
from bestshot.services.tally_service import tally_aggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tally", tags=["Tally"])


@router.get(
    "",
    response_model=TallyResponse,
    summary="Current live tally",
)
async def get_tally() -> TallyResponse:
    return tally_response(tally_aggregator.snapshot())


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        snapshot = await queue.get()
        await websocket.send_json(tally_response(snapshot).model_dump(mode="json"))


async def _drain(websocket: WebSocket) -> None:
    # Clients never send anything meaningful; reading detects the disconnect
    while True:
        await websocket.receive_text()


@router.websocket("/ws")
async def tally_updates(websocket: WebSocket) -> None:
    await websocket.accept()
    queue = tally_aggregator.watch()
    logger.debug("Tally watcher connected (%d total)", tally_aggregator.watcher_count)

    tasks = []
    try:
        await websocket.send_json(
            tally_response(tally_aggregator.snapshot()).model_dump(mode="json")
        )
        tasks = [
            asyncio.create_task(_pump(websocket, queue)),
            asyncio.create_task(_drain(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Tally watcher closed with error: %s", str(exc))
    except WebSocketDisconnect:
        pass
    finally:
        tally_aggregator.unwatch(queue)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Tally watcher disconnected (%d left)", tally_aggregator.watcher_count)
