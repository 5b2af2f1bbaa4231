from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from cmaas_console.api.deps import get_cms_client
from cmaas_console.services.cms_client import CmsClient

router = APIRouter(tags=["dashboard"])


@router.get("")
async def dashboard(client: CmsClient = Depends(get_cms_client)):
    stats = await client.dashboard_stats()
    now = datetime.now(timezone.utc)
    return {
        "total_content_types": stats.total_content_types,
        "total_entries": stats.total_entries,
        "total_api_keys": stats.total_api_keys,
        "recent_entries": [
            {
                "id": e.id,
                "type_name": e.type_name,
                "created_at": e.created_at,
                "age": e.age_label(now),
            }
            for e in stats.recent_entries
        ],
    }
