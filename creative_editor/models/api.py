"""
Pydantic models for the editor API request/response.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from creative_editor.models.session import EditItem, EditorSession, ItemProgress


class ImageInfo(BaseModel):
    """Uploaded image metadata (bytes are served separately)."""

    index: int
    filename: str
    mime_type: str
    width: int
    height: int
    is_master: bool = False
    selected: bool = False


class BatchStatusResponse(BaseModel):
    """Progress of the current or last batch run."""

    session_id: str
    is_batch_running: bool
    progress: Dict[int, ItemProgress] = Field(default_factory=dict)


class SessionResponse(BaseModel):
    """Full session snapshot."""

    session_id: str
    images: List[ImageInfo] = Field(default_factory=list)
    master_index: Optional[int] = None
    pending_master_index: Optional[int] = Field(
        default=None, description="Master change queued until the running batch ends"
    )
    selection: List[int] = Field(default_factory=list)
    edit_items: List[EditItem] = Field(default_factory=list)
    analysis_error: Optional[str] = None
    is_analyzing: bool = False
    is_batch_running: bool = False
    progress: Dict[int, ItemProgress] = Field(default_factory=dict)

    @classmethod
    def from_session(cls, session: EditorSession) -> "SessionResponse":
        return cls(
            session_id=session.session_id,
            images=[
                ImageInfo(
                    index=i,
                    filename=img.filename,
                    mime_type=img.mime_type,
                    width=img.width,
                    height=img.height,
                    is_master=i == session.master_index,
                    selected=i in session.selection,
                )
                for i, img in enumerate(session.images)
            ],
            master_index=session.master_index,
            pending_master_index=session.pending_master_index,
            selection=sorted(session.selection),
            edit_items=list(session.edit_items),
            analysis_error=session.analysis_error,
            is_analyzing=session.is_analyzing,
            is_batch_running=session.is_batch_running,
            progress=dict(session.progress),
        )


class ImageUrlRequest(BaseModel):
    image_url: str = Field(..., description="URL of the image to add")


class MasterRequest(BaseModel):
    index: int = Field(..., ge=0, description="Index of the new master image")


class EditUpdateRequest(BaseModel):
    modified: str = Field(..., description="Replacement text")


class BatchRequest(BaseModel):
    callback_url: Optional[str] = Field(
        default=None, description="URL notified with a status summary when the run ends"
    )


class SelectionResponse(BaseModel):
    index: int
    selected: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="ok")
    version: str = Field(default="0.1.0")
