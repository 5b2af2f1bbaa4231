from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, File, Query, UploadFile

from cmaas_console.api.deps import get_image_uploader, get_session
from cmaas_console.core.session import Session
from cmaas_console.services.image_upload import ImageUploader, optimized_url

router = APIRouter(tags=["uploads"])


@router.post("/images", status_code=201)
async def upload_image(
    file: UploadFile = File(...),
    _session: Session = Depends(get_session),
    uploader: ImageUploader = Depends(get_image_uploader),
):
    content_type = file.content_type or "application/octet-stream"
    # reject on the declared size before buffering; the capped read catches a missing size
    uploader.validate(content_type, file.size or 0)
    content = await file.read(uploader.max_bytes + 1)
    image = await uploader.upload(file.filename or "upload", content, content_type)
    result = asdict(image)
    result["thumbnail_url"] = optimized_url(
        image.public_id, cloud_name=uploader.cloud_name, width=200, height=200, crop="fill"
    )
    return result


@router.delete("/images", status_code=204)
async def delete_image(
    url: str = Query(...),
    _session: Session = Depends(get_session),
    uploader: ImageUploader = Depends(get_image_uploader),
):
    await uploader.delete(url)
