from fastapi import APIRouter

from cmaas_console.api.v1 import api_keys, content_types, dashboard, entries, events, uploads

api_router = APIRouter()

api_router.include_router(content_types.router, prefix="/content-types", tags=["content-types"])
api_router.include_router(entries.router, tags=["entries"])
api_router.include_router(api_keys.router, prefix="/api-keys", tags=["api-keys"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
