from fastapi import APIRouter, Depends, File, UploadFile
from typing import Optional
import os
import shutil
import uuid
from loguru import logger

from app.api.deps import get_orchestrator, get_settings
from app.core.config import Settings
from app.core.errors import MissingUpload, UnsupportedMediaType
from app.services.ingestion import IngestionOrchestrator

router = APIRouter()


def _media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


@router.post("/upload")
async def upload_manifest(
    file: Optional[UploadFile] = File(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
    app_settings: Settings = Depends(get_settings),
):
    """
    Upload a CSV manifest, compress every referenced image and persist one
    processing request. Responds exactly once, with the request id or a coded error.
    """
    if file is None:
        raise MissingUpload("No file uploaded")

    if _media_type(file.content_type) not in app_settings.ALLOWED_CONTENT_TYPES:
        raise UnsupportedMediaType(file.content_type)

    # Stage the upload so the parser reads from a seekable local file
    os.makedirs(app_settings.UPLOAD_DIR, exist_ok=True)
    staged_path = os.path.join(app_settings.UPLOAD_DIR, f"{uuid.uuid4().hex}.csv")
    try:
        with open(staged_path, "wb") as buffer:
            shutil.copyfileobj(file.file, buffer)
        logger.info(f"✅ Manifest staged: {file.filename} -> {staged_path}")

        with open(staged_path, "rb") as manifest:
            result = await orchestrator.run(manifest)
    finally:
        if os.path.exists(staged_path):
            os.remove(staged_path)

    if not result.ok:
        raise result.error

    return {"requestId": result.request_id}
