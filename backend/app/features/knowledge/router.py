"""
Knowledge feature: API routes for course document ingestion.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from app.config import get_settings
from app.core.dependencies import Caller, get_ingestion_service, require_professor
from app.features.knowledge.extraction import ALLOWED_EXTENSIONS, file_extension
from app.features.knowledge.schemas import UploadResponse
from app.features.knowledge.service import IngestionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload", response_model=UploadResponse)
def upload_document(
    file: UploadFile = File(...),
    course_id: str = Form(...),
    week_number: int | None = Form(None),
    topic: str | None = Form(None),
    caller: Caller = Depends(require_professor),
    service: IngestionService = Depends(get_ingestion_service),
):
    """Upload a syllabus or course material (PDF, DOCX, TXT, MD) and index it.

    Responds only after every chunk is stored; a partial write is an error.
    """
    filename = file.filename or "document"
    if file_extension(filename) not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only {', '.join(sorted(ALLOWED_EXTENSIONS))} files are allowed.",
        )

    max_bytes = get_settings().MAX_UPLOAD_MB * 1024 * 1024
    file_bytes = file.file.read()
    if len(file_bytes) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {get_settings().MAX_UPLOAD_MB}MB.",
        )

    logger.info(f"📥 Upload {filename} ({len(file_bytes)} bytes) by {caller.user_id} for course {course_id}")
    result = service.ingest_document(
        course_id=course_id,
        file_bytes=file_bytes,
        filename=filename,
        week_number=week_number,
        topic=topic or None,
    )
    return UploadResponse(result=result)
