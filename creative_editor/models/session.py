"""
Editing session state: uploaded images, master, edits and batch progress.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from creative_editor.utils.image_utils import to_data_url


class BoundingBox(BaseModel):
    """Text box as fractions of image width/height, origin top-left."""

    model_config = ConfigDict(frozen=True)

    x1: float = Field(ge=0.0, le=1.0)
    y1: float = Field(ge=0.0, le=1.0)
    x2: float = Field(ge=0.0, le=1.0)
    y2: float = Field(ge=0.0, le=1.0)

    @field_validator("x1", "y1", "x2", "y2", mode="before")
    @classmethod
    def require_number(cls, v):
        # bool is an int subclass; strings would be coerced in lax mode
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("coordinate must be a number")
        return v

    @model_validator(mode="after")
    def check_order(self) -> "BoundingBox":
        if self.x2 < self.x1 or self.y2 < self.y1:
            raise ValueError("bounding box corners are reversed")
        return self

    def to_pixels(self, width: int, height: int) -> tuple:
        """Absolute (left, top, right, bottom), clamped to the image."""
        def scale(v: float, size: int) -> int:
            return min(max(int(round(v * size)), 0), size - 1)

        return (
            scale(self.x1, width),
            scale(self.y1, height),
            scale(self.x2, width),
            scale(self.y2, height),
        )


class TextRegion(BaseModel):
    """A piece of detected text on one specific image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str
    bounding_box: BoundingBox = Field(alias="boundingBox")


class EditItem(BaseModel):
    """One master text line and the user's replacement for it."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    original: str = Field(frozen=True)
    modified: str
    bounding_box: BoundingBox = Field(alias="boundingBox")

    @property
    def is_active(self) -> bool:
        return self.modified != self.original


class ProgressStatus:
    """Batch item status constants."""
    PENDING = "pending"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"

    TERMINAL = (SUCCESS, ERROR)


class ItemProgress(BaseModel):
    """Progress of one image in a batch run."""

    model_config = ConfigDict(frozen=True)

    status: str = ProgressStatus.PENDING
    result: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ProgressStatus.TERMINAL

    @classmethod
    def loading(cls) -> "ItemProgress":
        return cls(status=ProgressStatus.LOADING)

    @classmethod
    def succeeded(cls, result: str) -> "ItemProgress":
        return cls(status=ProgressStatus.SUCCESS, result=result)

    @classmethod
    def failed(cls, message: str, error_type: Optional[str] = None) -> "ItemProgress":
        return cls(status=ProgressStatus.ERROR, error=message, error_type=error_type)


@dataclass(frozen=True)
class UploadedImage:
    """Image bytes as uploaded (after format normalisation)."""

    filename: str
    mime_type: str
    data: bytes = field(repr=False)
    width: int
    height: int

    @property
    def data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


class SessionPhase:
    """Session phase constants."""
    IDLE = "idle"
    MASTER_ANALYZING = "master_analyzing"
    BATCH_RUNNING = "batch_running"


@dataclass
class EditorSession:
    """
    Mutable context of one editing session.

    Holds everything the batch service reads and writes. The master index is
    always a member of ``selection``. Selecting a new master is a plain state
    change; running the analysis for it is a separate step.
    """

    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    images: List[UploadedImage] = field(default_factory=list)
    master_index: Optional[int] = None
    selection: Set[int] = field(default_factory=set)
    edit_items: List[EditItem] = field(default_factory=list)
    analysis_error: Optional[str] = None
    progress: Dict[int, ItemProgress] = field(default_factory=dict)
    phase: str = SessionPhase.IDLE
    pending_master_index: Optional[int] = None
    # Bumped on every master change so stale analysis results can be dropped
    master_epoch: int = 0
    analysis_epoch: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_active: datetime = field(default_factory=datetime.utcnow)

    def touch(self) -> None:
        self.last_active = datetime.utcnow()

    @property
    def is_analyzing(self) -> bool:
        return self.phase == SessionPhase.MASTER_ANALYZING

    @property
    def is_batch_running(self) -> bool:
        return self.phase == SessionPhase.BATCH_RUNNING

    @property
    def active_edits(self) -> List[EditItem]:
        return [item for item in self.edit_items if item.is_active]

    def add_images(self, images: List[UploadedImage]) -> bool:
        """
        Append uploaded images.

        Returns:
            True if the first image became master (analysis is due)
        """
        self.images.extend(images)
        if self.master_index is None and self.images:
            return self.select_master(0)
        return False

    def select_master(self, index: int) -> bool:
        """
        Make ``index`` the master image.

        While a batch is running the change is queued and applied by
        ``apply_queued_master`` once the run ends.

        Returns:
            True if the master changed now and needs analysis
        """
        self._check_index(index)
        if self.is_batch_running:
            self.pending_master_index = index
            return False

        self.master_index = index
        self.selection.add(index)
        self.edit_items = []
        self.analysis_error = None
        self.master_epoch += 1
        return True

    def apply_queued_master(self) -> bool:
        """Apply a master change queued during a batch run."""
        if self.pending_master_index is None or self.is_batch_running:
            return False
        index, self.pending_master_index = self.pending_master_index, None
        return self.select_master(index)

    def toggle_selection(self, index: int) -> bool:
        """
        Add or remove an image from the batch. The master stays selected.

        Returns:
            Whether ``index`` is selected afterwards
        """
        self._check_index(index)
        if index in self.selection:
            if index != self.master_index:
                self.selection.discard(index)
        else:
            self.selection.add(index)
        return index in self.selection

    def update_edit(self, item_id: int, modified: str) -> EditItem:
        for item in self.edit_items:
            if item.id == item_id:
                item.modified = modified
                return item
        raise KeyError(item_id)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.images):
            raise IndexError(f"No uploaded image at index {index}")
