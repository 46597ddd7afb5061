"""
Background runner for batch edits.
Runs in the same process as the FastAPI application.
"""

import asyncio
import logging
from typing import Mapping, Optional, Set

import httpx

from creative_editor.config import get_settings
from creative_editor.models.session import EditorSession, ItemProgress
from creative_editor.services.batch_service import BatchPlan, BatchService

logger = logging.getLogger(__name__)


async def send_callback(
    callback_url: str,
    session_id: str,
    progress: Mapping[int, ItemProgress],
    timeout: float = 30.0,
) -> bool:
    """
    Notify a callback URL that a batch finished.

    Edited images are not included, only per-image status.

    Returns:
        Whether the callback was delivered
    """
    payload = {
        "sessionId": session_id,
        "items": [
            {
                "index": index,
                "status": item.status,
                "errorMessage": item.error or "",
            }
            for index, item in sorted(progress.items())
        ],
    }

    logger.info(f"[Session {session_id}] Sending callback: {callback_url}")

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(callback_url, json=payload)
            response.raise_for_status()
        logger.info(f"[Session {session_id}] Callback delivered, status {response.status_code}")
        return True
    except httpx.HTTPError as e:
        logger.error(f"[Session {session_id}] Callback failed: {e}")
        return False


class BatchRunner:
    """
    Owns batch runs started from the API.

    Each run is an asyncio task; on shutdown the runner waits for runs in
    flight instead of cancelling them.
    """

    def __init__(self, service: BatchService, callback_timeout: float = 30.0):
        self.service = service
        self.callback_timeout = callback_timeout
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    async def start(self) -> None:
        if self._running:
            logger.warning("Batch runner already running")
            return
        self._running = True
        logger.info(f"Batch runner started (concurrency={self.service.concurrency})")

    async def stop(self) -> None:
        """Stop accepting runs and wait for the ones in flight."""
        self._running = False
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} batch runs to complete...")
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Batch runner stopped")

    def submit(
        self,
        session: EditorSession,
        plan: BatchPlan,
        callback_url: Optional[str] = None,
    ) -> asyncio.Task:
        """Run ``plan`` in the background."""
        task = asyncio.create_task(self._run(session, plan, callback_url))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        session: EditorSession,
        plan: BatchPlan,
        callback_url: Optional[str],
    ) -> None:
        progress = await self.service.run_batch(session, plan)

        if callback_url:
            await send_callback(
                callback_url, session.session_id, progress, timeout=self.callback_timeout
            )

        # Master change requested during the run
        if session.apply_queued_master():
            logger.info(
                f"[Session {session.session_id}] Applying queued master #{session.master_index}"
            )
            try:
                await self.service.analyze_master(session)
            except Exception as e:
                logger.exception(
                    f"[Session {session.session_id}] Analysis of queued master failed"
                )
                session.analysis_error = str(e) or "The master image could not be analyzed."


_runner: Optional[BatchRunner] = None


def get_batch_runner() -> BatchRunner:
    """Get or create the global batch runner."""
    global _runner
    if _runner is None:
        from creative_editor.services.batch_service import get_batch_service

        settings = get_settings()
        _runner = BatchRunner(
            get_batch_service(),
            callback_timeout=settings.CALLBACK_TIMEOUT_SECONDS,
        )
    return _runner


async def start_runner() -> None:
    """Start the global batch runner."""
    await get_batch_runner().start()


async def stop_runner() -> None:
    """Stop the global batch runner."""
    global _runner
    if _runner:
        await _runner.stop()
        _runner = None
