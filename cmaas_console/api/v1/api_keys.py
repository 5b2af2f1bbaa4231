from __future__ import annotations

from fastapi import APIRouter, Depends

from cmaas_console.api.deps import get_cms_client
from cmaas_console.schemas.account import ApiKeyCreate
from cmaas_console.services.cms_client import CmsClient

router = APIRouter(tags=["api-keys"])


@router.get("")
async def list_api_keys(client: CmsClient = Depends(get_cms_client)):
    return await client.list_api_keys()


@router.post("", status_code=201)
async def create_api_key(body: ApiKeyCreate, client: CmsClient = Depends(get_cms_client)):
    """The full key is only present in this response."""
    return await client.create_api_key(body.name)


@router.delete("/{api_key_id}", status_code=204)
async def delete_api_key(api_key_id: int, client: CmsClient = Depends(get_cms_client)):
    await client.delete_api_key(api_key_id)
