"""
Editor API endpoints.
"""

import logging
import uuid
from typing import Annotated, List, Optional

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile

from creative_editor.config import Settings, get_settings
from creative_editor.errors import (
    EditorError,
    InvalidImage,
    SessionNotFound,
    TransportFailure,
    ValidationFailure,
)
from creative_editor.models.api import (
    BatchRequest,
    BatchStatusResponse,
    EditUpdateRequest,
    HealthResponse,
    ImageUrlRequest,
    MasterRequest,
    SelectionResponse,
    SessionResponse,
)
from creative_editor.models.session import EditItem, EditorSession, UploadedImage
from creative_editor.services.batch_service import BatchService, get_batch_service
from creative_editor.services.session_store import SessionStore, get_session_store
from creative_editor.utils.image_utils import normalize_upload
from creative_editor.worker import BatchRunner, get_batch_runner

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_ERROR = {
    SessionNotFound: 404,
    ValidationFailure: 400,
    InvalidImage: 400,
    TransportFailure: 502,
}


def to_http_error(e: EditorError) -> HTTPException:
    status = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(e, cls)), 500
    )
    return HTTPException(status_code=status, detail={"error": e.message, "error_type": e.error_type})


def _get_session(store: SessionStore, session_id: str) -> EditorSession:
    try:
        return store.get_session(session_id)
    except SessionNotFound as e:
        raise to_http_error(e)


def _load_image(image_bytes: bytes, filename: str, settings: Settings) -> UploadedImage:
    if not image_bytes:
        raise InvalidImage(f"{filename} is empty")
    if len(image_bytes) > settings.MAX_IMAGE_BYTES:
        raise InvalidImage(
            f"{filename} exceeds the {settings.MAX_IMAGE_BYTES // 1024 // 1024}MB limit"
        )
    data, mime_type, (width, height) = normalize_upload(image_bytes)
    return UploadedImage(
        filename=filename, mime_type=mime_type, data=data, width=width, height=height
    )


async def _add_images(
    session: EditorSession, images: List[UploadedImage], service: BatchService
) -> SessionResponse:
    if session.add_images(images):
        await service.analyze_master(session)
    logger.info(f"[Session {session.session_id}] Added {len(images)} images")
    return SessionResponse.from_session(session)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Health check endpoint.
    Returns service status and version.
    """
    return HealthResponse(status="ok", version=settings.VERSION)


@router.post("/api/v1/sessions", response_model=SessionResponse, status_code=201, tags=["Sessions"])
async def create_session(
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    return SessionResponse.from_session(store.create_session())


@router.get("/api/v1/sessions/{session_id}", response_model=SessionResponse, tags=["Sessions"])
async def get_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    return SessionResponse.from_session(_get_session(store, session_id))


@router.delete("/api/v1/sessions/{session_id}", status_code=204, tags=["Sessions"])
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    """Discard a session and everything uploaded to it."""
    try:
        store.delete_session(session_id)
    except SessionNotFound as e:
        raise to_http_error(e)
    return Response(status_code=204)


@router.post(
    "/api/v1/sessions/{session_id}/images",
    response_model=SessionResponse,
    tags=["Images"],
    summary="Upload images (multipart)",
    description=(
        "Upload one or more creatives. If the session has no master yet, the first "
        "image becomes master and is analyzed for text."
    ),
)
async def upload_images(
    session_id: str,
    files: Annotated[List[UploadFile], File(description="Image files")],
    store: SessionStore = Depends(get_session_store),
    service: BatchService = Depends(get_batch_service),
    settings: Settings = Depends(get_settings),
) -> SessionResponse:
    session = _get_session(store, session_id)

    images = []
    try:
        for upload in files:
            if upload.content_type and not upload.content_type.startswith("image/"):
                raise InvalidImage(
                    f"Invalid file type: {upload.content_type}. Expected image/*"
                )
            filename = upload.filename or f"image_{uuid.uuid4().hex[:8]}"
            images.append(_load_image(await upload.read(), filename, settings))
        return await _add_images(session, images, service)
    except EditorError as e:
        raise to_http_error(e)


@router.post(
    "/api/v1/sessions/{session_id}/images/url",
    response_model=SessionResponse,
    tags=["Images"],
    summary="Add image from URL",
)
async def add_image_from_url(
    session_id: str,
    request: ImageUrlRequest,
    store: SessionStore = Depends(get_session_store),
    service: BatchService = Depends(get_batch_service),
    settings: Settings = Depends(get_settings),
) -> SessionResponse:
    session = _get_session(store, session_id)

    try:
        async with httpx.AsyncClient(
            timeout=settings.DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True
        ) as client:
            response = await client.get(request.image_url)
            response.raise_for_status()
            image_bytes = response.content
    except httpx.HTTPError as e:
        logger.warning(f"[Session {session_id}] Download failed: {request.image_url}: {e}")
        raise to_http_error(InvalidImage(f"Could not download image: {e}"))

    filename = request.image_url.split("/")[-1].split("?")[0]
    if not filename or "." not in filename:
        filename = f"image_{uuid.uuid4().hex[:8]}.jpg"

    try:
        image = _load_image(image_bytes, filename, settings)
        return await _add_images(session, [image], service)
    except EditorError as e:
        raise to_http_error(e)


@router.get("/api/v1/sessions/{session_id}/images/{index}", tags=["Images"])
async def get_image(
    session_id: str,
    index: int,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    session = _get_session(store, session_id)
    if not 0 <= index < len(session.images):
        raise HTTPException(status_code=404, detail=f"No image at index {index}")
    image = session.images[index]
    return Response(content=image.data, media_type=image.mime_type)


@router.put("/api/v1/sessions/{session_id}/master", response_model=SessionResponse, tags=["Editing"])
async def select_master(
    session_id: str,
    request: MasterRequest,
    store: SessionStore = Depends(get_session_store),
    service: BatchService = Depends(get_batch_service),
) -> SessionResponse:
    """
    Choose the master image.

    The new master is analyzed right away. During a batch run the change is
    queued and applied (and analyzed) once the run ends.
    """
    session = _get_session(store, session_id)
    try:
        changed = session.select_master(request.index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if changed:
        try:
            await service.analyze_master(session)
        except EditorError as e:
            raise to_http_error(e)
    return SessionResponse.from_session(session)


@router.post("/api/v1/sessions/{session_id}/analysis", response_model=SessionResponse, tags=["Editing"])
async def analyze_master(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    service: BatchService = Depends(get_batch_service),
) -> SessionResponse:
    """Re-run text extraction on the current master."""
    session = _get_session(store, session_id)
    try:
        await service.analyze_master(session)
    except EditorError as e:
        raise to_http_error(e)
    return SessionResponse.from_session(session)


@router.post(
    "/api/v1/sessions/{session_id}/selection/{index}",
    response_model=SelectionResponse,
    tags=["Editing"],
)
async def toggle_selection(
    session_id: str,
    index: int,
    store: SessionStore = Depends(get_session_store),
) -> SelectionResponse:
    """Add or remove an image from the batch. The master cannot be removed."""
    session = _get_session(store, session_id)
    try:
        selected = session.toggle_selection(index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SelectionResponse(index=index, selected=selected)


@router.patch(
    "/api/v1/sessions/{session_id}/edits/{item_id}",
    response_model=EditItem,
    tags=["Editing"],
)
async def update_edit(
    session_id: str,
    item_id: int,
    request: EditUpdateRequest,
    store: SessionStore = Depends(get_session_store),
) -> EditItem:
    session = _get_session(store, session_id)
    try:
        return session.update_edit(item_id, request.modified)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No edit item with id {item_id}")


@router.post(
    "/api/v1/sessions/{session_id}/batch",
    response_model=BatchStatusResponse,
    status_code=202,
    tags=["Batch"],
    summary="Apply edits to the selected images",
)
async def submit_batch(
    session_id: str,
    request: Optional[BatchRequest] = None,
    store: SessionStore = Depends(get_session_store),
    runner: BatchRunner = Depends(get_batch_runner),
) -> BatchStatusResponse:
    """
    Validate the submission and start the batch in the background.

    Poll ``GET .../batch`` for per-image progress.
    """
    session = _get_session(store, session_id)
    try:
        plan = runner.service.prepare_batch(session)
    except ValidationFailure as e:
        raise to_http_error(e)

    runner.submit(session, plan, callback_url=request.callback_url if request else None)
    return BatchStatusResponse(
        session_id=session.session_id,
        is_batch_running=session.is_batch_running,
        progress=dict(session.progress),
    )


@router.get("/api/v1/sessions/{session_id}/batch", response_model=BatchStatusResponse, tags=["Batch"])
async def get_batch_status(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> BatchStatusResponse:
    session = _get_session(store, session_id)
    return BatchStatusResponse(
        session_id=session.session_id,
        is_batch_running=session.is_batch_running,
        progress=dict(session.progress),
    )
