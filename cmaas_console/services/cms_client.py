"""CMS REST client: content types, entries, API keys and dashboard stats.

Every request carries the bearer token of the ``Session`` it was built with.
A 401 clears that session and publishes ``session.expired`` before raising,
so the owner decides how to get the operator back to the login screen.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx
from pydantic import ValidationError

from cmaas_console.config import settings
from cmaas_console.core.metrics import cms_request_duration_seconds, cms_requests_total
from cmaas_console.core.session import Session
from cmaas_console.schemas.account import ApiKey, ApiKeyCreate, DashboardStats
from cmaas_console.schemas.content import (
    ContentEntry,
    ContentType,
    ContentTypeWrite,
    EntryPage,
    EntryValue,
    EntryWrite,
)
from cmaas_console.services.event_bus import ConsoleEvent, EventBus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class CmsError(Exception):
    """The CMS backend answered with an error status."""

    def __init__(self, detail: str, status_code: int = 502) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class CmsNotFound(CmsError):
    def __init__(self, detail: str = "Not found") -> None:
        super().__init__(detail, 404)


class CmsUnauthorized(CmsError):
    def __init__(self, detail: str = "Not authenticated") -> None:
        super().__init__(detail, 401)


class CmsUnavailable(CmsError):
    def __init__(self, detail: str = "CMS backend unavailable") -> None:
        super().__init__(detail, 503)


_ID_SEGMENT = re.compile(r"/\d+(?=/|$)")


def _endpoint_label(path: str) -> str:
    """Collapse numeric ids so metric labels stay bounded.

    /ContentEntries/entry/42  ->  /ContentEntries/entry/{id}
    """
    return _ID_SEGMENT.sub("/{id}", path)


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("message", "detail", "title", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


def _json(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


def _parse(model, data: Any):
    """Validate a response body, mapping an empty or malformed one to ``CmsError``."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("CMS returned an invalid %s (%d errors)", model.__name__, exc.error_count())
        raise CmsError(f"CMS backend returned an invalid {model.__name__} response") from exc


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class CmsClient:
    """Thin async wrapper around the CMS REST API (base path ``/api``)."""

    def __init__(
        self,
        session: Session,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.session = session
        self.base_url = (base_url or settings.cms_api_url).rstrip("/")
        self.timeout = settings.CMS_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport
        self._bus = bus
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> CmsClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> httpx.Response:
        client = await self._get_client()
        endpoint = _endpoint_label(path)
        status = "error"
        start = time.perf_counter()
        try:
            resp = await client.request(
                method, path, params=params, json=body, headers=self.session.auth_headers()
            )
            status = str(resp.status_code)
        except httpx.HTTPError as exc:
            logger.warning("CMS %s %s failed: %s", method, endpoint, exc)
            raise CmsUnavailable(f"CMS backend unreachable: {exc}") from exc
        finally:
            cms_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            cms_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - start
            )

        if resp.status_code == 401:
            self.session.clear()
            logger.info("CMS rejected the session token on %s %s", method, endpoint)
            if self._bus is not None:
                await self._bus.publish(
                    ConsoleEvent.SESSION_EXPIRED, {"endpoint": endpoint}, scope=self.session.scope
                )
            raise CmsUnauthorized(_error_detail(resp))
        if resp.status_code == 404:
            raise CmsNotFound(_error_detail(resp))
        if resp.status_code >= 400:
            raise CmsError(_error_detail(resp), resp.status_code)
        return resp

    # ── Content types ──────────────────────────────────────────────────

    async def list_content_types(self) -> list[ContentType]:
        resp = await self._request("GET", "/ContentTypes")
        return [_parse(ContentType, item) for item in _json(resp) or []]

    async def get_content_type(self, content_type_id: int) -> ContentType:
        resp = await self._request("GET", f"/ContentTypes/{content_type_id}")
        return _parse(ContentType, _json(resp))

    async def create_content_type(self, payload: ContentTypeWrite) -> ContentType:
        resp = await self._request(
            "POST", "/ContentTypes", body=payload.model_dump(by_alias=True)
        )
        return _parse(ContentType, _json(resp))

    async def update_content_type(
        self, content_type_id: int, payload: ContentTypeWrite
    ) -> ContentType:
        resp = await self._request(
            "PUT", f"/ContentTypes/{content_type_id}", body=payload.model_dump(by_alias=True)
        )
        data = _json(resp)
        if data is None:
            # Some backends answer 204; echo what was written
            return ContentType(id=content_type_id, name=payload.name, schema=payload.schema_)
        return _parse(ContentType, data)

    async def delete_content_type(self, content_type_id: int) -> None:
        await self._request("DELETE", f"/ContentTypes/{content_type_id}")

    # ── Entries ────────────────────────────────────────────────────────

    async def list_entries(
        self,
        content_type_id: int,
        *,
        page: int = 1,
        page_size: int | None = None,
        search_term: str = "",
    ) -> EntryPage:
        params: dict[str, Any] = {
            "Page": page,
            "PageSize": page_size or settings.ENTRY_PAGE_SIZE,
        }
        if search_term:
            params["SearchTerm"] = search_term
        resp = await self._request("GET", f"/ContentEntries/{content_type_id}", params=params)
        return _parse(EntryPage, _json(resp) or {})

    async def get_entry(self, entry_id: int) -> ContentEntry:
        resp = await self._request("GET", f"/ContentEntries/entry/{entry_id}")
        return _parse(ContentEntry, _json(resp))

    async def create_entry(
        self, content_type_id: int, data: dict[str, EntryValue]
    ) -> ContentEntry:
        payload = EntryWrite(content_type_id=content_type_id, data=data)
        resp = await self._request(
            "POST", "/ContentEntries", body=payload.model_dump(by_alias=True)
        )
        return self._entry_or_echo(_json(resp), None, payload)

    async def update_entry(
        self, entry_id: int, content_type_id: int, data: dict[str, EntryValue]
    ) -> ContentEntry:
        payload = EntryWrite(content_type_id=content_type_id, data=data)
        resp = await self._request(
            "PUT", f"/ContentEntries/{entry_id}", body=payload.model_dump(by_alias=True)
        )
        return self._entry_or_echo(_json(resp), entry_id, payload)

    async def delete_entry(self, entry_id: int) -> None:
        await self._request("DELETE", f"/ContentEntries/entry/{entry_id}")

    async def toggle_visibility(self, entry_id: int) -> bool | None:
        """Flip ``isVisible``; returns the new value when the backend reports it."""
        resp = await self._request("PATCH", f"/ContentEntries/{entry_id}/toggle-visibility")
        data = _json(resp)
        if isinstance(data, dict) and isinstance(data.get("isVisible"), bool):
            return data["isVisible"]
        return None

    @staticmethod
    def _entry_or_echo(data: Any, entry_id: int | None, payload: EntryWrite) -> ContentEntry:
        if isinstance(data, dict) and "id" in data:
            return _parse(ContentEntry, data)
        return ContentEntry(
            id=entry_id or 0,
            data=payload.data,
            content_type_id=payload.content_type_id,
        )

    # ── Account ────────────────────────────────────────────────────────

    async def list_api_keys(self) -> list[ApiKey]:
        resp = await self._request("GET", "/ApiKeys")
        return [_parse(ApiKey, item) for item in _json(resp) or []]

    async def create_api_key(self, name: str) -> ApiKey:
        payload = ApiKeyCreate(name=name)
        resp = await self._request("POST", "/ApiKeys", body=payload.model_dump(by_alias=True))
        return _parse(ApiKey, _json(resp))

    async def delete_api_key(self, api_key_id: int) -> None:
        await self._request("DELETE", f"/ApiKeys/{api_key_id}")

    async def dashboard_stats(self) -> DashboardStats:
        resp = await self._request("GET", "/Dashboard/stats")
        return _parse(DashboardStats, _json(resp) or {})
