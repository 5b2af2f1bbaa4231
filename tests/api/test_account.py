"""Integration tests for the API key, dashboard and image upload endpoints."""

from __future__ import annotations

import httpx
import pytest

from cmaas_console.api.v1.uploads import upload_image
from cmaas_console.core.session import Session
from cmaas_console.services.image_upload import ImageUploader, ImageUploadError


class TestApiKeys:
    async def test_create_list_delete(self, client, cms):
        created = await client.post("/api/v1/api-keys", json={"name": "Website"})
        assert created.status_code == 201
        assert created.json()["key"] == "cms_live_abc123"

        listed = (await client.get("/api/v1/api-keys")).json()
        assert [k["name"] for k in listed] == ["Website"]

        resp = await client.delete(f"/api/v1/api-keys/{created.json()['id']}")
        assert resp.status_code == 204
        assert cms.api_keys == {}

    async def test_blank_name(self, client, cms):
        resp = await client.post("/api/v1/api-keys", json={"name": "  "})
        assert resp.status_code == 422
        assert cms.requests == []


class TestDashboard:
    async def test_stats(self, client, cms, articles):
        cms.add_entry(articles["id"], {"title": "x"})
        body = (await client.get("/api/v1/dashboard")).json()
        assert body["total_content_types"] == 1
        assert body["total_entries"] == 1
        assert body["total_api_keys"] == 0
        assert body["recent_entries"][0]["age"] == "Just now"


class TestUploads:
    async def test_not_configured(self, client):
        resp = await client.post(
            "/api/v1/uploads/images", files={"file": ("cat.png", b"png", "image/png")}
        )
        assert resp.status_code == 503

    async def test_upload_proxied(self, app, client):
        sent = []

        def cloudinary(request):
            sent.append(request)
            return httpx.Response(200, json={"public_id": "cmaas/cat", "secure_url": "https://x/cat.png"})

        app.state.image_uploader = ImageUploader(
            "demo", "preset", "key", transport=httpx.MockTransport(cloudinary)
        )
        resp = await client.post(
            "/api/v1/uploads/images", files={"file": ("cat.png", b"png", "image/png")}
        )
        assert resp.status_code == 201
        assert resp.json()["secure_url"] == "https://x/cat.png"
        assert len(sent) == 1

    async def test_oversized_upload_rejected_before_sending(self, app, client):
        sent = []
        app.state.image_uploader = ImageUploader(
            "demo", "preset", "key", max_size_mb=0.001,
            transport=httpx.MockTransport(lambda r: sent.append(r) or httpx.Response(200)),
        )
        resp = await client.post(
            "/api/v1/uploads/images", files={"file": ("big.png", b"x" * 4096, "image/png")}
        )
        assert resp.status_code == 400
        assert "limit" in resp.json()["detail"]
        assert sent == []


class _UploadStub:
    """Stands in for an UploadFile, recording how much the route reads."""

    def __init__(self, size, content_type="image/png"):
        self.filename = "big.png"
        self.content_type = content_type
        self.size = size
        self.reads = []

    async def read(self, size=-1):
        self.reads.append(size)
        return b"x" * (size if size > 0 else 10 * 1024 * 1024)


class TestUploadBuffering:
    async def test_declared_size_checked_before_reading(self):
        stub = _UploadStub(size=10 * 1024 * 1024)
        with pytest.raises(ImageUploadError):
            await upload_image(file=stub, _session=Session("t"), uploader=ImageUploader("demo", "p"))
        assert stub.reads == []

    async def test_wrong_type_checked_before_reading(self):
        stub = _UploadStub(size=10, content_type="application/pdf")
        with pytest.raises(ImageUploadError):
            await upload_image(file=stub, _session=Session("t"), uploader=ImageUploader("demo", "p"))
        assert stub.reads == []

    async def test_undeclared_size_read_is_capped(self):
        stub = _UploadStub(size=None)
        uploader = ImageUploader("demo", "p")
        with pytest.raises(ImageUploadError):
            await upload_image(file=stub, _session=Session("t"), uploader=uploader)
        assert stub.reads == [uploader.max_bytes + 1]
