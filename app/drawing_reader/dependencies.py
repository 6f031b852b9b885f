"""
FastAPI dependencies shared by the routers.

Services are created in the application lifespan and stored on
``app.state``; these helpers hand them to the endpoints.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, UploadFile, status

from .config import Settings, get_settings
from .services.extraction import ExtractionService
from .sessions import SessionRegistry


def get_extraction_service(request: Request) -> ExtractionService:
    return request.app.state.extraction_service


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


ExtractionServiceDep = Annotated[ExtractionService, Depends(get_extraction_service)]
SessionRegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    """
    Read an uploaded file, enforcing the size limit.

    Raises:
        HTTPException: 413 if the file is larger than `max_bytes`.
    """
    try:
        data = await file.read(max_bytes + 1)
    finally:
        await file.close()

    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {max_bytes // (1024 * 1024)}MB upload limit",
        )
    return data
