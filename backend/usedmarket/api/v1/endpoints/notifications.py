"""
Notification endpoints.

WHAT: Read notifications and stream them via Server-Sent Events
WHY: Search results, buyer offers and inspection reports arrive asynchronously
HOW: EventSourceResponse polling the notification log with heartbeats
"""

import asyncio
import json
from datetime import datetime
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from ...deps import get_market
from ....core.config import settings
from ....core.context import MarketContext
from ....host.memory import NotificationLog
from ....utils.exceptions import ValidationError
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

POLL_INTERVAL_SECONDS = 0.5


def _notification_log(market: MarketContext) -> NotificationLog:
    if not isinstance(market.notifier, NotificationLog):
        raise ValidationError("This host does not keep a notification log", code="NO_NOTIFICATION_LOG")
    return market.notifier


@router.get("/notifications")
async def list_notifications(owner_id: Optional[str] = None, since: int = 0,
                             market: MarketContext = Depends(get_market)):
    """Notifications after sequence number ``since``."""
    log = _notification_log(market)
    return [n.to_dict() for n in log.since(since, owner_id)]


async def notification_event_generator(
    request: Request,
    log: NotificationLog,
    owner_id: Optional[str],
    since: int,
) -> AsyncIterator[dict]:
    """
    Generate SSE events for new notifications.

    Yields:
        SSE event dicts
    """
    logger.info(f"Starting notification stream (owner={owner_id}, since={since})")
    yield {
        "event": "connected",
        "data": json.dumps({"type": "connected", "owner_id": owner_id,
                            "timestamp": datetime.now().isoformat()})
    }

    last_seq = since
    last_heartbeat = asyncio.get_running_loop().time()
    try:
        while not await request.is_disconnected():
            for notification in log.since(last_seq, owner_id):
                last_seq = notification.seq
                payload = notification.to_dict()
                payload["type"] = "notification"
                yield {"event": "notification", "id": str(notification.seq), "data": json.dumps(payload)}

            now = asyncio.get_running_loop().time()
            if now - last_heartbeat >= settings.SSE_HEARTBEAT_INTERVAL:
                last_heartbeat = now
                yield {
                    "event": "heartbeat",
                    "data": json.dumps({"type": "heartbeat", "timestamp": datetime.now().isoformat()})
                }
            await asyncio.sleep(POLL_INTERVAL_SECONDS)
    except asyncio.CancelledError:
        logger.info("Notification stream cancelled")
        raise
    finally:
        logger.info(f"Notification stream ended (owner={owner_id}, last_seq={last_seq})")


@router.get("/notifications/stream")
async def stream_notifications(request: Request, owner_id: Optional[str] = None, since: int = 0,
                               market: MarketContext = Depends(get_market)):
    """
    Stream notifications via SSE.

    Returns:
        EventSourceResponse with notification events
    """
    log = _notification_log(market)
    return EventSourceResponse(
        notification_event_generator(request, log, owner_id, since),
        media_type="text/event-stream"
    )
