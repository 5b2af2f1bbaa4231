from __future__ import annotations

from fastapi import APIRouter, Depends

from cmaas_console.api.deps import get_cms_client, get_event_bus
from cmaas_console.core.field_types import FIELD_KIND_LABELS, FieldKind, input_control
from cmaas_console.schemas.console import ContentTypeAuthoring, SchemaEvolution
from cmaas_console.services.cms_client import CmsClient
from cmaas_console.services.event_bus import ConsoleEvent, EventBus
from cmaas_console.services.schema_authoring import SchemaDraft

router = APIRouter(tags=["content-types"])


@router.get("/field-types")
async def list_field_types():
    """The closed set of kinds an author can pick from."""
    return [
        {
            "type": kind.value,
            "label": FIELD_KIND_LABELS[kind][0],
            "description": FIELD_KIND_LABELS[kind][1],
            "control": input_control(kind.value).control,
        }
        for kind in FieldKind
    ]


@router.get("")
async def list_content_types(client: CmsClient = Depends(get_cms_client)):
    return await client.list_content_types()


@router.get("/{content_type_id}")
async def get_content_type(content_type_id: int, client: CmsClient = Depends(get_cms_client)):
    return await client.get_content_type(content_type_id)


@router.post("", status_code=201)
async def create_content_type(
    body: ContentTypeAuthoring,
    client: CmsClient = Depends(get_cms_client),
    bus: EventBus = Depends(get_event_bus),
):
    draft = SchemaDraft(name=body.name)
    for field in body.fields:
        draft.add_field(field.name, field.type, check=False)
    saved = await draft.submit(client)
    await bus.publish(
        ConsoleEvent.CONTENT_TYPE_CREATED,
        {"name": saved.name},
        scope=client.session.scope,
        content_type_id=saved.id,
    )
    return saved


@router.post("/{content_type_id}/fields")
async def append_fields(
    content_type_id: int,
    body: SchemaEvolution,
    client: CmsClient = Depends(get_cms_client),
    bus: EventBus = Depends(get_event_bus),
):
    """Append fields to an existing schema; existing fields never change."""
    current = await client.get_content_type(content_type_id)
    draft = SchemaDraft.from_content_type(current)
    if body.name is not None:
        draft.name = body.name
    for field in body.fields:
        draft.add_field(field.name, field.type, check=False)
    saved = await draft.submit(client)
    await bus.publish(
        ConsoleEvent.CONTENT_TYPE_UPDATED,
        {"added": [f.name.strip() for f in body.fields]},
        scope=client.session.scope,
        content_type_id=content_type_id,
    )
    return saved


@router.delete("/{content_type_id}", status_code=204)
async def delete_content_type(
    content_type_id: int,
    client: CmsClient = Depends(get_cms_client),
    bus: EventBus = Depends(get_event_bus),
):
    await client.delete_content_type(content_type_id)
    await bus.publish(
        ConsoleEvent.CONTENT_TYPE_DELETED, scope=client.session.scope, content_type_id=content_type_id
    )
