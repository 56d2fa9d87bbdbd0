"""
Extraction worker pool.

Runs text extraction in a thread pool so PDF and DOCX parsing never
blocks the event loop. Each request carries the file record id; the
worker posts its result back to the loop with call_soon_threadsafe and
the result is matched to the waiting future by that id.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from docscope.core.crawler import ExtractionPoolInterface, ExtractRequest, ExtractResult
from docscope.core.text_extractor import extract_text

logger = logging.getLogger(__name__)

Extractor = Callable[[str, str], str]


class ExtractionPool(ExtractionPoolInterface):
    """Thread pool that turns ExtractRequests into ExtractResults."""

    def __init__(self, max_workers: int = 4, extractor: Optional[Extractor] = None):
        self._max_workers = max(1, max_workers)
        self._extractor: Extractor = extractor or extract_text
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: dict[int, deque[asyncio.Future]] = {}

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="docscope-extract"
            )
        return self._executor

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a result."""
        return sum(len(waiters) for waiters in self._pending.values())

    async def submit(self, request: ExtractRequest) -> ExtractResult:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        waiters = self._pending.setdefault(request.file_id, deque())
        waiters.append(future)
        try:
            self._get_executor().submit(self._run, loop, request)
        except RuntimeError:
            self._discard(request.file_id, future)
            raise
        return await future

    def _run(self, loop: asyncio.AbstractEventLoop, request: ExtractRequest) -> None:
        """Worker thread body."""
        try:
            text = self._extractor(request.path, request.extension)
            result = ExtractResult(file_id=request.file_id, text=text or "")
        except Exception as e:
            result = ExtractResult(file_id=request.file_id, error=str(e))
        try:
            loop.call_soon_threadsafe(self._deliver, result)
        except RuntimeError:
            logger.debug(f"Event loop closed before result for file {request.file_id}")

    def _deliver(self, result: ExtractResult) -> None:
        """Resolve the oldest future waiting on this file id. Runs on the loop."""
        waiters = self._pending.get(result.file_id)
        if not waiters:
            logger.warning(f"Dropping extraction result for unknown file {result.file_id}")
            return
        future = waiters.popleft()
        if not waiters:
            del self._pending[result.file_id]
        if not future.done():
            future.set_result(result)

    def _discard(self, file_id: int, future: asyncio.Future) -> None:
        waiters = self._pending.get(file_id)
        if waiters and future in waiters:
            waiters.remove(future)
            if not waiters:
                del self._pending[file_id]

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker threads."""
        pending = self.pending_count
        if pending:
            logger.warning(f"Shutting down extraction pool with {pending} requests pending")
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
