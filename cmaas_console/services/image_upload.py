"""Image upload collaborator for ``image`` fields.

Uploads go to a Cloudinary-compatible endpoint using an unsigned preset.
The entry engine only ever stores the returned ``secure_url``; removing an
image stores an empty string.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass

import httpx

from cmaas_console.config import settings

logger = logging.getLogger(__name__)

_UPLOAD_API = "https://api.cloudinary.com/v1_1"
_DELIVERY_BASE = "https://res.cloudinary.com"
_VERSION_SEGMENT = re.compile(r"^v\d+$")
_EXTENSION = re.compile(r"\.[^/.]+$")


class ImageUploadError(ValueError):
    """Rejected file or failed upload/deletion."""


@dataclass
class UploadedImage:
    public_id: str
    secure_url: str
    url: str = ""
    format: str = ""
    width: int = 0
    height: int = 0
    bytes: int = 0


def extract_public_id(url: str) -> str:
    """Public id of a delivered image URL, without version or extension.

    https://res.cloudinary.com/demo/image/upload/v1712/cmaas/cat.png -> cmaas/cat
    """
    parts = url.split("/upload/", 1)
    if len(parts) < 2 or not parts[1]:
        return ""
    path_parts = [p for p in parts[1].split("/") if p and not _VERSION_SEGMENT.match(p)]
    if not path_parts:
        return ""
    path_parts[-1] = _EXTENSION.sub("", path_parts[-1])
    return "/".join(path_parts)


def optimized_url(
    public_id: str,
    *,
    cloud_name: str | None = None,
    width: int | None = None,
    height: int | None = None,
    crop: str | None = None,
    quality: str | int | None = None,
    format: str | None = None,
) -> str:
    base = f"{_DELIVERY_BASE}/{cloud_name or settings.CLOUDINARY_CLOUD_NAME}/image/upload"
    transforms: list[str] = []
    if width:
        transforms.append(f"w_{width}")
    if height:
        transforms.append(f"h_{height}")
    if crop:
        transforms.append(f"c_{crop}")
    if quality:
        transforms.append(f"q_{quality}")
    if format:
        transforms.append(f"f_{format}")
    if not transforms:
        return f"{base}/{public_id}"
    return f"{base}/{','.join(transforms)}/{public_id}"


class ImageUploader:
    """Async client for the upload and destroy endpoints."""

    def __init__(
        self,
        cloud_name: str | None = None,
        upload_preset: str | None = None,
        api_key: str | None = None,
        *,
        folder: str | None = None,
        max_size_mb: float | None = None,
        accepted_formats: list[str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cloud_name = cloud_name or settings.CLOUDINARY_CLOUD_NAME
        self.upload_preset = upload_preset or settings.CLOUDINARY_UPLOAD_PRESET
        self.api_key = api_key or settings.CLOUDINARY_API_KEY
        self.folder = settings.IMAGE_UPLOAD_FOLDER if folder is None else folder
        self.max_size_mb = settings.IMAGE_MAX_SIZE_MB if max_size_mb is None else max_size_mb
        self.accepted_formats = accepted_formats or settings.IMAGE_ACCEPTED_FORMATS
        self._transport = transport

    @property
    def max_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)

    def validate(self, content_type: str, size: int) -> None:
        if content_type not in self.accepted_formats:
            raise ImageUploadError(
                f"Invalid file type. Accepted formats: {', '.join(self.accepted_formats)}"
            )
        if size > self.max_bytes:
            raise ImageUploadError(f"File size exceeds {self.max_size_mb:g}MB limit")

    async def upload(self, filename: str, content: bytes, content_type: str) -> UploadedImage:
        self.validate(content_type, len(content))
        data = {"upload_preset": self.upload_preset}
        if self.folder:
            data["folder"] = self.folder
        async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
            try:
                resp = await client.post(
                    f"{_UPLOAD_API}/{self.cloud_name}/image/upload",
                    data=data,
                    files={"file": (filename, content, content_type)},
                )
            except httpx.HTTPError as exc:
                logger.warning("Image upload failed: %s", exc)
                raise ImageUploadError("Failed to upload image. Please try again.") from exc
        if resp.status_code >= 400:
            logger.warning("Image upload rejected: HTTP %s %s", resp.status_code, resp.text[:200])
            raise ImageUploadError("Failed to upload image. Please try again.")
        body = resp.json()
        logger.info("Uploaded image %s", body.get("public_id"))
        return UploadedImage(
            public_id=body.get("public_id", ""),
            secure_url=body.get("secure_url", ""),
            url=body.get("url", ""),
            format=body.get("format", ""),
            width=body.get("width") or 0,
            height=body.get("height") or 0,
            bytes=body.get("bytes") or 0,
        )

    async def delete(self, url: str) -> bool:
        """Destroy the image behind *url*. Returns False when *url* has no public id."""
        public_id = extract_public_id(url)
        if not public_id:
            return False
        data = {
            "public_id": public_id,
            "timestamp": str(int(time.time())),
            "api_key": self.api_key,
        }
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            try:
                resp = await client.post(
                    f"{_UPLOAD_API}/{self.cloud_name}/image/destroy", data=data
                )
            except httpx.HTTPError as exc:
                logger.warning("Image deletion failed: %s", exc)
                raise ImageUploadError("Failed to delete image") from exc
        try:
            result = resp.json().get("result")
        except ValueError:
            result = None
        if resp.status_code >= 400 or result != "ok":
            logger.warning("Image deletion rejected for %s: %s", public_id, resp.text[:200])
            raise ImageUploadError("Failed to delete image")
        return True
