"""Shared test fixtures for the CMaaS console.

Provides:
- An in-memory fake of the CMS REST backend served through httpx.MockTransport
- A CmsClient bound to that fake
- The FastAPI console app wired to the fake, plus an ASGI HTTP client
"""

from __future__ import annotations

import json
import math
import os
import re

# Set test environment BEFORE any app imports so Settings() picks them up.
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("CMS_BASE_URL", "http://cms.test")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from cmaas_console.core.session import Session
from cmaas_console.services.cms_client import CmsClient
from cmaas_console.services.event_bus import EventBus

TOKEN = "test-token"
CMS_API = "http://cms.test/api"

# ---------------------------------------------------------------------------
# Fake CMS backend
# ---------------------------------------------------------------------------


def _reply(status: int, body=None) -> httpx.Response:
    if body is None:
        return httpx.Response(status)
    return httpx.Response(status, json=body)


class FakeCms:
    """Just enough of the CMS REST API to drive the console end to end."""

    def __init__(self) -> None:
        self.content_types: dict[int, dict] = {}
        self.entries: dict[int, dict] = {}
        self.api_keys: dict[int, dict] = {}
        self.requests: list[httpx.Request] = []
        self.failures: dict[tuple[str, str], int] = {}
        self._next_id = 1

    def _id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    # ── Seeding ──

    def add_content_type(self, name: str, fields: list[tuple[str, str]]) -> dict:
        ct = {
            "id": self._id(),
            "name": name,
            "schema": {"fields": [{"name": n, "type": t} for n, t in fields]},
        }
        self.content_types[ct["id"]] = ct
        return ct

    def add_entry(self, content_type_id: int, data: dict, *, is_visible: bool = False) -> dict:
        entry = {
            "id": self._id(),
            "contentTypeId": content_type_id,
            "tenantId": 1,
            "data": data,
            "isVisible": is_visible,
            "createdAt": "2024-03-05T10:00:00Z",
        }
        self.entries[entry["id"]] = entry
        return entry

    def fail(self, method: str, path: str, status: int = 500) -> None:
        self.failures[(method, path)] = status

    def calls(self, method: str, prefix: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path.startswith(prefix)
        ]

    # ── Transport ──

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return _reply(401, {"message": "Unauthorized"})

        method = request.method
        path = request.url.path.removeprefix("/api")
        if (method, path) in self.failures:
            return _reply(self.failures[(method, path)], {"message": "Backend failure"})
        body = json.loads(request.content) if request.content else None

        if path == "/ContentTypes":
            if method == "GET":
                return _reply(200, list(self.content_types.values()))
            ct = {"id": self._id(), "name": body["name"], "schema": body["schema"]}
            self.content_types[ct["id"]] = ct
            return _reply(201, ct)

        if m := re.fullmatch(r"/ContentTypes/(\d+)", path):
            ct_id = int(m.group(1))
            if ct_id not in self.content_types:
                return _reply(404, {"message": "Content type not found"})
            if method == "GET":
                return _reply(200, self.content_types[ct_id])
            if method == "PUT":
                self.content_types[ct_id].update(name=body["name"], schema=body["schema"])
                return _reply(204)
            del self.content_types[ct_id]
            return _reply(204)

        if m := re.fullmatch(r"/ContentEntries/entry/(\d+)", path):
            entry_id = int(m.group(1))
            if entry_id not in self.entries:
                return _reply(404, {"message": "Entry not found"})
            if method == "GET":
                return _reply(200, self.entries[entry_id])
            del self.entries[entry_id]
            return _reply(204)

        if m := re.fullmatch(r"/ContentEntries/(\d+)/toggle-visibility", path):
            entry = self.entries.get(int(m.group(1)))
            if entry is None:
                return _reply(404, {"message": "Entry not found"})
            entry["isVisible"] = not entry["isVisible"]
            return _reply(200, {"isVisible": entry["isVisible"]})

        if path == "/ContentEntries" and method == "POST":
            entry = self.add_entry(body["contentTypeId"], body["data"])
            return _reply(201, entry)

        if m := re.fullmatch(r"/ContentEntries/(\d+)", path):
            if method == "PUT":
                entry = self.entries.get(int(m.group(1)))
                if entry is None:
                    return _reply(404, {"message": "Entry not found"})
                entry["data"] = body["data"]
                return _reply(200, entry)
            return self._page(int(m.group(1)), request.url.params)

        if path == "/ApiKeys":
            if method == "GET":
                return _reply(200, [{k: v for k, v in key.items() if k != "key"}
                                    for key in self.api_keys.values()])
            key = {"id": self._id(), "name": body["name"], "key": "cms_live_abc123",
                   "createdAt": "2024-03-05T10:00:00Z"}
            self.api_keys[key["id"]] = key
            return _reply(201, key)

        if m := re.fullmatch(r"/ApiKeys/(\d+)", path):
            self.api_keys.pop(int(m.group(1)), None)
            return _reply(204)

        if path == "/Dashboard/stats":
            return _reply(200, {
                "totalContentTypes": len(self.content_types),
                "totalEntries": len(self.entries),
                "totalApiKeys": None,
                "recentEntries": [
                    {"id": e["id"], "typeName": "Article", "createdAt": "0001-01-01T00:00:00"}
                    for e in self.entries.values()
                ],
            })

        return _reply(404, {"message": f"No route for {method} {path}"})

    def _page(self, content_type_id: int, params) -> httpx.Response:
        page = int(params.get("Page", 1))
        size = int(params.get("PageSize", 10))
        term = params.get("SearchTerm", "").lower()
        rows = [
            e for e in sorted(self.entries.values(), key=lambda e: e["id"])
            if e["contentTypeId"] == content_type_id
            and (not term or term in json.dumps(e["data"]).lower())
        ]
        total_pages = math.ceil(len(rows) / size) if rows else 0
        start = (page - 1) * size
        return _reply(200, {
            "totalRecords": len(rows),
            "page": page,
            "pageSize": size,
            "totalPages": total_pages,
            "data": rows[start:start + size],
        })


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cms():
    return FakeCms()


@pytest.fixture
def transport(cms):
    return httpx.MockTransport(cms.handler)


@pytest.fixture
def session():
    return Session(TOKEN)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
async def cms_client(session, transport, bus):
    client = CmsClient(session, CMS_API, transport=transport, bus=bus)
    yield client
    await client.close()


@pytest.fixture
def articles(cms):
    """An "Article" content type with one field of every common kind."""
    return cms.add_content_type(
        "Article",
        [("title", "string"), ("views", "number"), ("published", "boolean"), ("tags", "array")],
    )


@pytest.fixture
def app(transport, bus):
    """Console app wired to the fake backend."""
    from cmaas_console.main import create_app

    test_app = create_app()
    test_app.state.cms_transport = transport
    test_app.state.cms_base_url = CMS_API
    test_app.state.event_bus = bus
    return test_app


@pytest.fixture
async def client(app):
    """HTTP test client for the console app, authenticated as an operator."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {TOKEN}"},
    ) as c:
        yield c
