from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request

from cmaas_console.config import settings
from cmaas_console.core.optimistic import SettleGuard
from cmaas_console.core.session import Session
from cmaas_console.services.cms_client import CmsClient
from cmaas_console.services.event_bus import EventBus, event_bus
from cmaas_console.services.image_upload import ImageUploader


def get_session(request: Request) -> Session:
    session = Session.from_authorization(request.headers.get("Authorization"))
    if not session.is_authenticated:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


def get_event_bus(request: Request) -> EventBus:
    return getattr(request.app.state, "event_bus", None) or event_bus


async def get_cms_client(
    request: Request,
    session: Session = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
) -> AsyncIterator[CmsClient]:
    """One client per request, bound to the caller's token."""
    state = request.app.state
    client = CmsClient(
        session,
        getattr(state, "cms_base_url", None) or settings.cms_api_url,
        transport=getattr(state, "cms_transport", None),
        bus=bus,
    )
    try:
        yield client
    finally:
        await client.close()


def get_image_uploader(request: Request) -> ImageUploader:
    uploader = getattr(request.app.state, "image_uploader", None)
    if uploader is not None:
        return uploader
    if not settings.uploads_configured:
        raise HTTPException(status_code=503, detail="Image uploads are not configured")
    return ImageUploader()


def get_toggle_guard(request: Request) -> SettleGuard:
    """Process-wide per-entry guard shared by every visibility toggle."""
    return request.app.state.toggle_guard
