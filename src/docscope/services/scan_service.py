"""
Scan Service for docscope.

Registers scopes and runs crawler scans in the background. Scans of the
same scope are serialized; scans of different scopes run concurrently.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from docscope.core.crawler import Crawler, ScanResult, ScanStatus
from docscope.core.models import Scope
from docscope.core.path_utils import validate_scope_path
from docscope.infrastructure.metadata_store import MetadataStore

logger = logging.getLogger(__name__)


class ScanServiceError(Exception):
    """Base exception for scan service errors."""

    pass


class ScopeValidationError(ScanServiceError):
    """Raised when a scope root fails validation."""

    pass


class ScanService:
    """
    Fire-and-forget scan orchestration.

    trigger_scan() returns immediately with the background task; the
    most recent outcome per scope is kept for status queries.
    """

    def __init__(self, metadata_store: MetadataStore, crawler: Crawler):
        self._store = metadata_store
        self._crawler = crawler
        self._locks: dict[int, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()
        self._results: dict[int, ScanResult] = {}
        self._active: dict[int, int] = {}

    # ─────────────────────────────────────────────────────────────────
    # Scope Registration
    # ─────────────────────────────────────────────────────────────────

    def register_scope(self, owner_id: int, path: str, name: Optional[str] = None) -> Scope:
        """
        Validate and register a scope root without scanning it.

        Raises:
            ScopeValidationError: If the path is missing, not a directory,
                or a system directory
            ScopeConflictError: If the owner already registered the path
        """
        validation = validate_scope_path(path)
        if not validation.valid:
            raise ScopeValidationError(validation.error_message)
        root = str(Path(path).resolve())
        scope = self._store.create_scope(owner_id, root, name)
        logger.info(f"Registered scope {scope.id} for owner {owner_id}: {root}")
        return scope

    def add_scope(self, owner_id: int, path: str, name: Optional[str] = None) -> Scope:
        """Register a scope and start its initial scan."""
        scope = self.register_scope(owner_id, path, name)
        self.trigger_scan(scope.id)
        return scope

    # ─────────────────────────────────────────────────────────────────
    # Scans
    # ─────────────────────────────────────────────────────────────────

    def trigger_scan(self, scope_id: int) -> asyncio.Task:
        """Start a background scan and return without waiting for it."""
        task = asyncio.create_task(self.run_scan(scope_id), name=f"scan-scope-{scope_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_scan_done)
        return task

    def scan_all_scopes(self) -> list[asyncio.Task]:
        """Trigger a scan of every registered scope."""
        scopes = self._store.list_scopes()
        logger.info(f"Rescanning {len(scopes)} scopes")
        return [self.trigger_scan(scope.id) for scope in scopes]

    async def run_scan(self, scope_id: int) -> ScanResult:
        """Scan a scope, waiting for any in-flight scan of the same scope."""
        lock = self._locks.setdefault(scope_id, asyncio.Lock())
        self._active[scope_id] = self._active.get(scope_id, 0) + 1
        try:
            async with lock:
                try:
                    result = await self._crawler.scan_scope(scope_id)
                except Exception as e:
                    logger.error(f"Scan of scope {scope_id} failed: {e}", exc_info=True)
                    result = ScanResult(scope_id=scope_id, status=ScanStatus.FAILED, error=str(e))
                self._results[scope_id] = result
                return result
        finally:
            self._active[scope_id] -= 1
            if not self._active[scope_id]:
                del self._active[scope_id]

    def _on_scan_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"Scan task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Scan task {task.get_name()} raised: {exc}", exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait until every triggered scan has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def is_scanning(self, scope_id: int) -> bool:
        return scope_id in self._active

    def get_last_result(self, scope_id: int) -> Optional[ScanResult]:
        """Most recent finished scan of a scope, if any."""
        return self._results.get(scope_id)

    def forget_scope(self, scope_id: int) -> None:
        """Drop cached scan state for a deleted scope."""
        self._results.pop(scope_id, None)
        if scope_id not in self._active:
            self._locks.pop(scope_id, None)
