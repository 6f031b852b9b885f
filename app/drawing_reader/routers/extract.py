"""
Router for the stateless extraction endpoint.

Handles:
- One-shot drawing upload and extraction
"""

import logging
from typing import Annotated

from fastapi import APIRouter, File, UploadFile

from ..dependencies import ExtractionServiceDep, SettingsDep, read_upload
from ..models import ExtractionResult
from ..services.extraction import validate_image_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["extract"])


@router.post("/extract", response_model=ExtractionResult)
async def extract_drawing(
    file: Annotated[UploadFile, File(description="Drawing image (PNG, JPG, WEBP)")],
    service: ExtractionServiceDep,
    settings: SettingsDep,
) -> ExtractionResult:
    """
    Extract title block, dimensions and BOM rows from an uploaded drawing.

    The file is validated before any provider call. Extraction failures are
    turned into error responses by the application's exception handlers.
    """
    mime_type = file.content_type
    filename = file.filename or "upload"
    data = await read_upload(file, settings.max_upload_bytes)

    validate_image_upload(data, mime_type)
    logger.info("Processing drawing: %s (%d bytes, %s)", filename, len(data), mime_type)

    return await service.extract(data, mime_type)
