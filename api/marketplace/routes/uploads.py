"""
File uploads for pitch videos and supporting documents.
"""
import logging

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from marketplace.dependencies import CurrentUserDep, FileStorageDep, SettingsDep
from marketplace.services.file_storage import LocalFileStorage, validate_upload

logger = logging.getLogger(__name__)
router = APIRouter()
files_router = APIRouter()


class UploadResponse(BaseModel):
    url: str


async def _store(kind: str, upload: UploadFile, settings, file_storage) -> UploadResponse:
    # Read at most one byte past the limit
    content = await upload.read(settings.MAX_UPLOAD_SIZE + 1)
    extension = validate_upload(kind, upload.filename, len(content), settings.MAX_UPLOAD_SIZE)
    url = file_storage.save(kind, extension, content, upload.content_type)
    return UploadResponse(url=url)


@router.post("/video", response_model=UploadResponse)
async def upload_video(
    user: CurrentUserDep,
    settings: SettingsDep,
    file_storage: FileStorageDep,
    video: UploadFile = File(...),
):
    result = await _store("video", video, settings, file_storage)
    logger.info(f"User {user.id} uploaded video {result.url}")
    return result


@router.post("/document", response_model=UploadResponse)
async def upload_document(
    user: CurrentUserDep,
    settings: SettingsDep,
    file_storage: FileStorageDep,
    document: UploadFile = File(...),
):
    result = await _store("document", document, settings, file_storage)
    logger.info(f"User {user.id} uploaded document {result.url}")
    return result


@files_router.get("/{name:path}")
async def serve_upload(name: str, file_storage: FileStorageDep):
    """Serve a locally stored upload."""
    if not isinstance(file_storage, LocalFileStorage):
        raise HTTPException(status_code=404, detail="File not found")
    path = file_storage.resolve(name)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path)
