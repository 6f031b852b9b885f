"""
Router for extraction sessions.

Handles:
- Creating and deleting sessions
- Uploading a drawing (IDLE -> ANALYZING, extraction runs in the background)
- Polling session state
- Resetting a session and serving its preview
"""

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Request, Response, UploadFile, status

from ..dependencies import SessionRegistryDep, SettingsDep, read_upload
from ..models import SessionStateResponse
from ..state import ExtractionState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _to_response(request: Request, session_id: str, state: ExtractionState) -> SessionStateResponse:
    preview_url = None
    if state.preview is not None:
        preview_url = str(request.url_for("get_session_preview", session_id=session_id))
    return SessionStateResponse(
        session_id=session_id,
        state=state.state,
        file=state.file,
        preview_url=preview_url,
        result=state.result,
        error_message=state.error_message,
        generation=state.generation,
    )


@router.post("", response_model=SessionStateResponse, status_code=status.HTTP_201_CREATED)
async def create_session(request: Request, sessions: SessionRegistryDep) -> SessionStateResponse:
    """Start a new session in the IDLE state."""
    session_id, controller = sessions.create()
    return _to_response(request, session_id, controller.state)


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session(
    session_id: str, request: Request, sessions: SessionRegistryDep
) -> SessionStateResponse:
    """Return the current state of a session."""
    controller = sessions.get(session_id)
    return _to_response(request, session_id, controller.state)


@router.post(
    "/{session_id}/upload",
    response_model=SessionStateResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def upload_drawing(
    session_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    file: Annotated[UploadFile, File(description="Drawing image (PNG, JPG, WEBP)")],
    sessions: SessionRegistryDep,
    settings: SettingsDep,
) -> SessionStateResponse:
    """
    Select a drawing for the session and start its extraction.

    Returns the ANALYZING snapshot immediately; poll the session for the
    outcome. A non-image upload is rejected and the session stays IDLE.
    """
    controller = sessions.get(session_id)
    mime_type = file.content_type
    filename = file.filename or "upload"
    data = await read_upload(file, settings.max_upload_bytes)

    generation = controller.select_file(filename, mime_type, data)
    logger.info(
        "Session %s: analyzing %s (%d bytes, generation %d)",
        session_id,
        filename,
        len(data),
        generation,
    )
    background_tasks.add_task(controller.run_extraction, data, mime_type, generation)

    return _to_response(request, session_id, controller.state)


@router.post("/{session_id}/reset", response_model=SessionStateResponse)
async def reset_session(
    session_id: str, request: Request, sessions: SessionRegistryDep
) -> SessionStateResponse:
    """Return the session to IDLE, discarding file, preview, result and error."""
    controller = sessions.get(session_id)
    controller.reset()
    return _to_response(request, session_id, controller.state)


@router.get("/{session_id}/preview", name="get_session_preview")
async def get_session_preview(session_id: str, sessions: SessionRegistryDep) -> Response:
    """Serve the preview image of the selected drawing."""
    controller = sessions.get(session_id)
    preview = controller.previews.get(controller.state.preview) if controller.state.preview else None
    if preview is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No preview available",
        )
    data, mime_type = preview
    return Response(content=data, media_type=mime_type)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, sessions: SessionRegistryDep) -> Response:
    """Discard a session and its preview."""
    sessions.remove(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
