"""Realtime update stream."""
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from cashback.api.dependencies import get_notifier
from cashback.services.realtime import RealtimeNotifier

router = APIRouter()


@router.get("")
async def realtime_updates(
    request: Request,
    wallet: Optional[str] = Query(None, description="Stream updates for one wallet instead of the dashboard"),
    notifier: RealtimeNotifier = Depends(get_notifier),
):
    """Server-sent events, one update every few seconds until the client disconnects."""
    return StreamingResponse(
        notifier.stream(request.is_disconnected, wallet),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
