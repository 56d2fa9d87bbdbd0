"""
Queue-driven cooperative directory crawler.

A scan walks one scope breadth-first from an explicit FIFO queue,
upserting a file record for every regular file it meets and handing
eligible files to the extraction pool. Blocking filesystem calls run
in worker threads and the walk yields to the event loop between
directories, so a large scope never starves other tasks.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

from docscope.core.config import CrawlerConfig
from docscope.core.models import FileStat
from docscope.core.path_utils import file_extension, normalize_extension

from .interfaces import (
    ContentIndexInterface,
    ExtractionPoolInterface,
    FileMetadataStoreInterface,
)
from .models import (
    CrawlQueueEntry,
    ExtractRequest,
    ScanResult,
    ScanState,
    ScanStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class _EntryInfo:
    """Directory entry facts gathered off the event loop."""

    path: Path
    name: str
    is_symlink: bool
    is_dir: bool
    is_file: bool


def _entry_is(check, **kwargs) -> bool:
    try:
        return check(**kwargs)
    except OSError:
        return False


def _list_directory(path: Path) -> list[_EntryInfo]:
    """List a directory in scandir order. Raises OSError if it cannot be read."""
    with os.scandir(path) as it:
        return [
            _EntryInfo(
                path=Path(entry.path),
                name=entry.name,
                is_symlink=_entry_is(entry.is_symlink),
                is_dir=_entry_is(entry.is_dir, follow_symlinks=True),
                is_file=_entry_is(entry.is_file, follow_symlinks=True),
            )
            for entry in it
        ]


class Crawler:
    """
    Walks scopes and feeds the metadata store and content index.

    Every scan builds its own ScanState; the crawler itself holds only
    collaborators and configuration, so one instance can run scans of
    different scopes concurrently.
    """

    def __init__(
        self,
        metadata_store: FileMetadataStoreInterface,
        content_index: ContentIndexInterface,
        extraction_pool: ExtractionPoolInterface,
        config: CrawlerConfig | None = None,
    ):
        self._store = metadata_store
        self._index = content_index
        self._pool = extraction_pool
        self._config = config or CrawlerConfig()
        self._ignore_dirs = frozenset(self._config.ignore_dirs)

    async def scan_scope(self, scope_id: int) -> ScanResult:
        """
        Crawl one scope to completion.

        Returns a FAILED result when the scope or its root directory is
        missing; every other error is confined to a file or subtree.
        """
        scope = self._store.get_scope_by_id(scope_id)
        if scope is None:
            logger.warning(f"Scan requested for unknown scope {scope_id}")
            return ScanResult(scope_id=scope_id, status=ScanStatus.FAILED, error="Scope not found")

        root = Path(scope.root_path)
        if not await asyncio.to_thread(root.is_dir):
            logger.warning(f"Scope root is not a directory: {root}")
            return ScanResult(
                scope_id=scope_id,
                status=ScanStatus.FAILED,
                error=f"Root directory not found: {root}",
            )

        settings = self._store.get_search_settings(scope.owner_id)
        allowed = settings.allowed_extensions
        if allowed is None:
            allowed = self._config.allowed_extensions

        state = ScanState(
            scope_id=scope_id,
            root_path=root,
            allowed_extensions=frozenset(normalize_extension(ext) for ext in allowed),
        )
        return await self._run(state)

    async def _run(self, state: ScanState) -> ScanResult:
        semaphore = asyncio.Semaphore(max(1, self._config.max_pending_extractions))
        pending: set[asyncio.Task] = set()
        listing_errors = 0

        state.status = ScanStatus.WALKING
        state.queue.append(CrawlQueueEntry(path=state.root_path, depth=0))
        if self._config.follow_symlinks:
            state.visited_dirs.add(await asyncio.to_thread(os.path.realpath, state.root_path))
        logger.info(f"Scanning scope {state.scope_id}: {state.root_path}")

        while state.queue:
            entry = state.queue.popleft()
            if not await self._walk_directory(state, entry, semaphore, pending):
                listing_errors += 1
            await asyncio.sleep(0)

        state.status = ScanStatus.DRAINING
        if pending:
            await asyncio.gather(*list(pending))

        pruned = 0
        if self._config.prune_missing:
            if listing_errors:
                logger.warning(
                    f"Skipping prune for scope {state.scope_id}: "
                    f"{listing_errors} directories could not be listed"
                )
            else:
                try:
                    pruned = self._store.delete_files_except(state.scope_id, state.seen_file_ids)
                except Exception as e:
                    logger.error(f"Failed to prune scope {state.scope_id}: {e}")

        state.status = ScanStatus.DONE
        elapsed = time.monotonic() - state.started_at
        counters = state.counters
        logger.info(
            f"Scan of scope {state.scope_id} finished: processed={counters.processed} "
            f"ignored={counters.ignored} indexed={counters.indexed} in {elapsed:.2f}s",
            extra={
                "scope_id": state.scope_id,
                "processed": counters.processed,
                "ignored": counters.ignored,
                "indexed": counters.indexed,
                "skipped": counters.skipped,
                "failed": counters.failed,
                "elapsed_seconds": elapsed,
            },
        )
        return ScanResult(
            scope_id=state.scope_id,
            status=state.status,
            counters=counters,
            elapsed_seconds=elapsed,
            pruned=pruned,
        )

    async def _walk_directory(
        self,
        state: ScanState,
        entry: CrawlQueueEntry,
        semaphore: asyncio.Semaphore,
        pending: set[asyncio.Task],
    ) -> bool:
        """List one directory and handle its children. Returns False if unreadable."""
        try:
            children = await asyncio.to_thread(_list_directory, entry.path)
        except OSError as e:
            logger.warning(f"Cannot list directory {entry.path}: {e}")
            return False

        for child in children:
            if child.name.startswith(".") or child.name in self._ignore_dirs:
                state.counters.ignored += 1
                continue

            if child.is_dir:
                await self._enqueue_directory(state, entry, child)
            elif child.is_file:
                await self._process_file(state, child, semaphore, pending)
            else:
                state.counters.ignored += 1
        return True

    async def _enqueue_directory(
        self, state: ScanState, parent: CrawlQueueEntry, child: _EntryInfo
    ) -> None:
        if child.is_symlink and not self._config.follow_symlinks:
            state.counters.ignored += 1
            return
        if parent.depth >= self._config.max_depth:
            state.counters.ignored += 1
            return
        if self._config.follow_symlinks:
            real_path = await asyncio.to_thread(os.path.realpath, child.path)
            if real_path in state.visited_dirs:
                logger.debug(f"Skipping already visited directory: {child.path}")
                state.counters.ignored += 1
                return
            state.visited_dirs.add(real_path)
        state.queue.append(CrawlQueueEntry(path=child.path, depth=parent.depth + 1))

    async def _process_file(
        self,
        state: ScanState,
        child: _EntryInfo,
        semaphore: asyncio.Semaphore,
        pending: set[asyncio.Task],
    ) -> None:
        state.counters.processed += 1
        if state.counters.processed % max(1, self._config.progress_interval) == 0:
            logger.info(
                f"Scope {state.scope_id}: {state.counters.processed} files processed, "
                f"{state.counters.indexed} indexed"
            )

        try:
            st = await asyncio.to_thread(os.stat, child.path)
            file_id = self._store.upsert_file(
                state.scope_id, str(child.path), FileStat(size=st.st_size, mtime=st.st_mtime)
            )
        except Exception as e:
            logger.error(f"Failed to record {child.path}: {e}")
            state.counters.failed += 1
            return

        state.seen_file_ids.add(file_id)
        ext = file_extension(child.path)
        if ext not in state.allowed_extensions or st.st_size > self._config.size_ceiling_for(ext):
            state.counters.skipped += 1
            return

        await semaphore.acquire()
        request = ExtractRequest(path=str(child.path), extension=ext, file_id=file_id)
        task = asyncio.create_task(self._extract_and_index(state, request, semaphore))
        pending.add(task)
        task.add_done_callback(pending.discard)

    async def _extract_and_index(
        self, state: ScanState, request: ExtractRequest, semaphore: asyncio.Semaphore
    ) -> None:
        try:
            result = await self._pool.submit(request)
            if result.error:
                logger.warning(f"Extraction failed for {request.path}: {result.error}")
                state.counters.failed += 1
            elif result.text:
                self._index.index_content(result.file_id, result.text)
                state.counters.indexed += 1
            else:
                state.counters.skipped += 1
        except Exception as e:
            logger.error(f"Failed to index {request.path}: {e}", exc_info=True)
            state.counters.failed += 1
        finally:
            semaphore.release()
