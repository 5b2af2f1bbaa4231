from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from cmaas_console.api.deps import get_event_bus, get_session
from cmaas_console.core.session import Session
from cmaas_console.services.event_bus import EventBus

router = APIRouter(tags=["events"])


@router.get("/stream")
async def event_stream(
    request: Request,
    session: Session = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
):
    """SSE feed of the caller's own console events (writes, session expiry)."""
    sub = bus.subscribe(session.scope)

    async def generate():
        async for frame in bus.stream(sub):
            if await request.is_disconnected():
                break
            yield frame

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
