from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from cmaas_console.api.deps import get_cms_client, get_event_bus, get_toggle_guard
from cmaas_console.core.optimistic import SettleGuard
from cmaas_console.schemas.console import (
    DeleteEntryResult,
    EntryTableView,
    EntryValuesIn,
    FormView,
    VisibilityResult,
)
from cmaas_console.services.cms_client import CmsClient, CmsError, CmsNotFound
from cmaas_console.services.entry_form import EntryForm
from cmaas_console.services.entry_list import EntryListController
from cmaas_console.services.event_bus import ConsoleEvent, EventBus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["entries"])


# ── Forms ──────────────────────────────────────────────────────────────


@router.get("/content-types/{content_type_id}/form", response_model=FormView)
async def create_form(content_type_id: int, client: CmsClient = Depends(get_cms_client)):
    form = await EntryForm.for_create(client, content_type_id)
    return form.view()


@router.get(
    "/content-types/{content_type_id}/entries/{entry_id}/form", response_model=FormView
)
async def edit_form(
    content_type_id: int, entry_id: int, client: CmsClient = Depends(get_cms_client)
):
    form = await EntryForm.for_edit(client, content_type_id, entry_id)
    return form.view()


@router.post("/content-types/{content_type_id}/entries", status_code=201)
async def create_entry(
    content_type_id: int,
    body: EntryValuesIn,
    client: CmsClient = Depends(get_cms_client),
    bus: EventBus = Depends(get_event_bus),
):
    form = await EntryForm.for_create(client, content_type_id)
    form.set_values(body.values)
    saved = await form.submit(client)
    await bus.publish(
        ConsoleEvent.ENTRY_CREATED,
        scope=client.session.scope,
        content_type_id=content_type_id,
        entry_id=saved.id,
    )
    return {"entry": saved, "warnings": form.warnings}


@router.put("/content-types/{content_type_id}/entries/{entry_id}")
async def update_entry(
    content_type_id: int,
    entry_id: int,
    body: EntryValuesIn,
    client: CmsClient = Depends(get_cms_client),
    bus: EventBus = Depends(get_event_bus),
):
    form = await EntryForm.for_edit(client, content_type_id, entry_id)
    form.set_values(body.values)
    saved = await form.submit(client)
    await bus.publish(
        ConsoleEvent.ENTRY_UPDATED,
        scope=client.session.scope,
        content_type_id=content_type_id,
        entry_id=entry_id,
    )
    return {"entry": saved, "warnings": form.warnings}


# ── Table ──────────────────────────────────────────────────────────────


@router.get("/content-types/{content_type_id}/entries", response_model=EntryTableView)
async def list_entries(
    content_type_id: int,
    page: int = Query(1, ge=1),
    search: str = Query(""),
    client: CmsClient = Depends(get_cms_client),
):
    table = EntryListController(client, content_type_id)
    await table.load(page=page, search_term=search)
    if table.not_found:
        raise CmsNotFound("Content type not found")
    return table.view()


@router.delete(
    "/content-types/{content_type_id}/entries/{entry_id}", response_model=DeleteEntryResult
)
async def delete_entry(
    content_type_id: int,
    entry_id: int,
    page: int = Query(1, ge=1),
    client: CmsClient = Depends(get_cms_client),
    bus: EventBus = Depends(get_event_bus),
):
    """Delete an entry and report which page the table should show next."""
    table = EntryListController(client, content_type_id)
    await table.load(page=page)
    if table.not_found:
        raise CmsNotFound("Content type not found")
    if not await table.delete_entry(entry_id):
        raise HTTPException(status_code=502, detail=table.error)
    await bus.publish(
        ConsoleEvent.ENTRY_DELETED,
        scope=client.session.scope,
        content_type_id=content_type_id,
        entry_id=entry_id,
    )
    return DeleteEntryResult(deleted_id=entry_id, page=table.page)


@router.patch("/entries/{entry_id}/visibility", response_model=VisibilityResult)
async def toggle_visibility(
    entry_id: int,
    client: CmsClient = Depends(get_cms_client),
    bus: EventBus = Depends(get_event_bus),
    guard: SettleGuard = Depends(get_toggle_guard),
):
    """Flip an entry's visibility; a repeat inside the settle window gets 409."""
    if not guard.acquire(entry_id):
        raise HTTPException(status_code=409, detail="Visibility change already in progress")
    try:
        is_visible = await client.toggle_visibility(entry_id)
        if is_visible is None:
            is_visible = (await client.get_entry(entry_id)).is_visible
    except CmsError:
        guard.release(entry_id)
        raise
    guard.settle(entry_id)
    await bus.publish(
        ConsoleEvent.ENTRY_VISIBILITY_CHANGED,
        {"is_visible": is_visible},
        scope=client.session.scope,
        entry_id=entry_id,
    )
    return VisibilityResult(entry_id=entry_id, is_visible=is_visible)
