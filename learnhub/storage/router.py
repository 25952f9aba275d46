"""
Upload and file access API
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import RedirectResponse
from pydantic import Field, field_validator

from learnhub.auth.dependencies import get_config, require_instructor
from learnhub.config import Config
from learnhub.schemas import CamelModel
from learnhub.storage.client import ObjectStorage
from learnhub.storage.validation import (
    IMAGES,
    RESOURCES,
    THUMBNAILS,
    VIDEOS,
    build_key,
    validate_content_type,
    validate_file_size,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Uploads"])

DIRECT_UPLOAD_FOLDERS = (VIDEOS, IMAGES, RESOURCES, THUMBNAILS)


class SignedUploadRequest(CamelModel):
    folder: str
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1)

    @field_validator("folder")
    @classmethod
    def known_folder(cls, v: str) -> str:
        v = v.lower()
        if v not in DIRECT_UPLOAD_FOLDERS:
            raise ValueError(f"Folder must be one of: {', '.join(DIRECT_UPLOAD_FOLDERS)}")
        return v


def file_url(config: Config, key: str) -> str:
    return f"{config.APP_URL}/files/{key}"


async def save_upload(storage: ObjectStorage, folder: str, file: UploadFile, key: Optional[str] = None) -> dict:
    """Validate type and size for the folder, then store the file"""
    error = validate_content_type(folder, file.content_type)
    if error:
        raise HTTPException(400, error)

    # Reject on the spooled size before pulling the body into memory
    if file.size is not None:
        error = validate_file_size(folder, file.size)
        if error:
            raise HTTPException(400, error)

    content = await file.read()
    error = validate_file_size(folder, len(content))
    if error:
        raise HTTPException(400, error)

    key = key or build_key(folder, file.filename or "file")
    try:
        await storage.upload(key, content, file.content_type)
    except Exception:
        logger.exception(f"Upload of {key} failed")
        raise HTTPException(500, f"Failed to upload {folder[:-1]}")

    return {
        "key": key,
        "fileName": file.filename,
        "size": len(content),
        "contentType": file.content_type,
    }


# ==================== UPLOADS ====================

@router.post("/upload/video")
async def upload_video(
    request: Request,
    file: UploadFile = File(...),
    user: dict = Depends(require_instructor),
):
    result = await save_upload(request.app.state.storage, VIDEOS, file)
    logger.info(f"Video {result['key']} uploaded by {user['user_id']}")
    return {"success": True, **result}


@router.post("/upload/image")
async def upload_image(
    request: Request,
    file: UploadFile = File(...),
    folder: str = Form(IMAGES),
    config: Config = Depends(get_config),
    user: dict = Depends(require_instructor),
):
    folder = THUMBNAILS if folder.lower() == THUMBNAILS else IMAGES
    result = await save_upload(request.app.state.storage, folder, file)
    return {"success": True, **result, "url": file_url(config, result["key"])}


@router.post("/upload/resource")
async def upload_resource(
    request: Request,
    file: UploadFile = File(...),
    config: Config = Depends(get_config),
    user: dict = Depends(require_instructor),
):
    result = await save_upload(request.app.state.storage, RESOURCES, file)
    return {"success": True, **result, "url": file_url(config, result["key"])}


@router.post("/upload/signed-url")
async def signed_upload_url(
    data: SignedUploadRequest,
    request: Request,
    user: dict = Depends(require_instructor),
):
    """Presigned PUT so large files go straight from the browser to the store"""
    error = validate_content_type(data.folder, data.content_type)
    if error:
        raise HTTPException(400, error)

    storage = request.app.state.storage
    key = build_key(data.folder, data.file_name)
    try:
        upload_url = storage.signed_upload_url(key, data.content_type)
    except Exception:
        logger.exception("Signed upload URL failed")
        raise HTTPException(500, "Failed to generate upload URL")

    return {"success": True, "uploadUrl": upload_url, "key": key, "expiresIn": storage.default_ttl}


@router.delete("/upload/{key:path}")
async def delete_upload(
    key: str,
    request: Request,
    user: dict = Depends(require_instructor),
):
    try:
        await request.app.state.storage.delete(key)
        logger.info(f"File {key} deleted by {user['user_id']}")
        return {"success": True, "message": "File deleted successfully"}
    except Exception:
        logger.exception(f"Delete of {key} failed")
        raise HTTPException(500, "Failed to delete file")


# ==================== FILE ACCESS ====================

@router.get("/files/{key:path}")
async def get_file(key: str, request: Request):
    """Redirect to a short-lived signed URL. Videos go through /lessons/{id}/video."""
    if not key:
        raise HTTPException(400, "File key is required")
    if key.startswith(f"{VIDEOS}/"):
        raise HTTPException(403, "Videos are only available through lesson access")

    try:
        signed_url = request.app.state.storage.signed_download_url(key)
    except Exception:
        logger.exception("File URL generation failed")
        raise HTTPException(500, "Failed to generate file URL")

    return RedirectResponse(signed_url, status_code=307)
