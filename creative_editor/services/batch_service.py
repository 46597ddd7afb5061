"""
Batch orchestration: master analysis and per-image edit propagation.
"""

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, List, Mapping, Optional, Tuple

from creative_editor.config import get_settings
from creative_editor.errors import (
    AnalysisFailure,
    EditorError,
    TransportFailure,
    ValidationFailure,
)
from creative_editor.models.session import (
    EditItem,
    EditorSession,
    ItemProgress,
    ProgressStatus,
    SessionPhase,
)
from creative_editor.services.image_edit import ImageEditService
from creative_editor.services.mask_builder import DEFAULT_FILL_COLOR, build_mask
from creative_editor.services.text_extraction import TextExtractionService

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, ItemProgress], Optional[Awaitable[None]]]


@dataclass(frozen=True)
class BatchPlan:
    """Snapshot taken at submission time."""
    indices: Tuple[int, ...]
    edits: Tuple[EditItem, ...]


class BatchService:
    """
    Drives master analysis and batch runs against an EditorSession.

    Master analysis and a batch run never overlap within one session. Inside
    a run every selected image is processed by its own task; a failure only
    affects that image's progress entry.
    """

    def __init__(
        self,
        extractor: TextExtractionService,
        editor: ImageEditService,
        concurrency: int = 3,
        fill_color: str = DEFAULT_FILL_COLOR,
    ) -> None:
        self.extractor = extractor
        self.editor = editor
        self.concurrency = concurrency
        self.fill_color = fill_color

    async def analyze_master(self, session: EditorSession) -> List[EditItem]:
        """
        Extract text from the master and rebuild the edit list from it.

        Failures are stored on ``session.analysis_error``; the edit list is
        left empty.

        Returns:
            The new edit items (empty on failure)
        """
        if session.master_index is None:
            raise ValidationFailure("Please select a master image first.")
        if session.is_batch_running:
            raise ValidationFailure("A batch is in progress. Wait for it to finish.")
        if session.is_analyzing and session.analysis_epoch == session.master_epoch:
            raise ValidationFailure("The master image is already being analyzed.")

        epoch = session.master_epoch
        master = session.images[session.master_index]

        session.phase = SessionPhase.MASTER_ANALYZING
        session.analysis_epoch = epoch
        session.edit_items = []
        session.analysis_error = None
        logger.info(f"[Session {session.session_id}] Analyzing master #{session.master_index}")

        try:
            regions = await self.extractor.extract_text(master)
        except (AnalysisFailure, TransportFailure) as e:
            if session.master_epoch == epoch:
                session.analysis_error = e.message
            logger.warning(f"[Session {session.session_id}] Master analysis failed: {e.message}")
            return []
        finally:
            # A newer analysis may have taken over the phase
            if session.analysis_epoch == epoch:
                session.phase = SessionPhase.IDLE
                session.analysis_epoch = None

        if session.master_epoch != epoch:
            # Master was re-selected while the call was in flight
            logger.info(f"[Session {session.session_id}] Discarding stale master analysis")
            return []

        session.edit_items = [
            EditItem(id=i, original=r.text, modified=r.text, bounding_box=r.bounding_box)
            for i, r in enumerate(regions)
        ]
        return list(session.edit_items)

    def prepare_batch(self, session: EditorSession) -> BatchPlan:
        """
        Validate a submission and enter the batch-running phase.

        Nothing remote is called here.

        Raises:
            ValidationFailure: missing master/selection/edits or busy session
        """
        if session.master_index is None or not session.selection:
            raise ValidationFailure(
                "Please select a master image and at least one image for the batch."
            )
        if session.is_analyzing:
            raise ValidationFailure("The master image is still being analyzed.")
        if session.is_batch_running:
            raise ValidationFailure("A batch is already in progress.")

        edits = session.active_edits
        if not edits:
            raise ValidationFailure("You haven't made any text changes to apply.")

        plan = BatchPlan(
            indices=tuple(sorted(session.selection)),
            edits=tuple(item.model_copy() for item in edits),
        )
        session.progress = {index: ItemProgress.loading() for index in plan.indices}
        session.phase = SessionPhase.BATCH_RUNNING
        logger.info(
            f"[Session {session.session_id}] Batch started: "
            f"{len(plan.indices)} images, {len(plan.edits)} edits"
        )
        return plan

    async def run_batch(
        self,
        session: EditorSession,
        plan: BatchPlan,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Mapping[int, ItemProgress]:
        """
        Process every image of ``plan`` and wait for all of them.

        Returns:
            Read-only map of index -> terminal progress
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(index: int) -> None:
            async with semaphore:
                outcome = await self._process_image(session, plan, index)
            await self._record(session, index, outcome, on_progress)

        try:
            await asyncio.gather(*(run_one(index) for index in plan.indices))
        finally:
            session.phase = SessionPhase.IDLE

        final = {index: session.progress[index] for index in plan.indices}
        succeeded = sum(1 for p in final.values() if p.status == ProgressStatus.SUCCESS)
        logger.info(
            f"[Session {session.session_id}] Batch finished: "
            f"{succeeded}/{len(final)} succeeded"
        )
        return MappingProxyType(final)

    async def submit_batch(
        self,
        session: EditorSession,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Mapping[int, ItemProgress]:
        """Validate and run a batch to completion."""
        plan = self.prepare_batch(session)
        return await self.run_batch(session, plan, on_progress)

    async def _process_image(
        self, session: EditorSession, plan: BatchPlan, index: int
    ) -> ItemProgress:
        tag = f"[Session {session.session_id} #{index}]"
        image = session.images[index]
        try:
            # Each image has its own layout, so its text is extracted again
            regions = await self.extractor.extract_text(image)
            mask = await asyncio.to_thread(
                build_mask, image, plan.edits, regions, self.fill_color
            )
            logger.info(f"{tag} Masked {len(mask.matched)} regions, calling edit model")
            edited = await self.editor.edit_image(image, mask.instruction, mask.mask)
        except EditorError as e:
            logger.warning(f"{tag} {e.error_type}: {e.message}")
            return ItemProgress.failed(e.message, e.error_type)
        except Exception as e:
            logger.exception(f"{tag} Unexpected error")
            return ItemProgress.failed(str(e) or "An unknown error occurred.", type(e).__name__)

        logger.info(f"{tag} Edit succeeded")
        return ItemProgress.succeeded(edited.data_url)

    async def _record(
        self,
        session: EditorSession,
        index: int,
        outcome: ItemProgress,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        current = session.progress.get(index)
        if current is not None and current.is_terminal:
            return
        session.progress[index] = outcome
        if on_progress is None:
            return
        try:
            maybe_awaitable = on_progress(index, outcome)
            if maybe_awaitable is not None:
                await maybe_awaitable
        except Exception:
            logger.exception(f"[Session {session.session_id} #{index}] Progress callback failed")


_batch_service: Optional[BatchService] = None


def get_batch_service() -> BatchService:
    """
    Get the shared BatchService.

    The Gemini client is created on the first remote call, so sessions work
    without credentials until analysis is needed.
    """
    global _batch_service
    if _batch_service is None:
        settings = get_settings()
        _batch_service = BatchService(
            extractor=TextExtractionService(
                None, settings.OCR_MODEL, settings.REMOTE_TIMEOUT_SECONDS
            ),
            editor=ImageEditService(
                None, settings.EDIT_MODEL, settings.REMOTE_TIMEOUT_SECONDS
            ),
            concurrency=settings.BATCH_CONCURRENCY,
            fill_color=settings.MASK_FILL_COLOR,
        )
    return _batch_service
