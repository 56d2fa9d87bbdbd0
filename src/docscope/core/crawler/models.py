"""
Data models for the crawler.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class ScanStatus(str, Enum):
    """Lifecycle of a single scan."""

    QUEUED = "queued"
    WALKING = "walking"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CrawlQueueEntry:
    """A directory waiting to be listed, with its depth below the root."""

    path: Path
    depth: int


@dataclass
class ExtractRequest:
    """Work item sent to the extraction pool."""

    path: str
    extension: str
    file_id: int


@dataclass
class ExtractResult:
    """Extraction outcome, correlated to its request by file_id."""

    file_id: int
    text: str = ""
    error: Optional[str] = None


@dataclass
class ScanCounters:
    """Per-scan progress counters."""

    processed: int = 0
    ignored: int = 0
    indexed: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "ignored": self.ignored,
            "indexed": self.indexed,
            "skipped": self.skipped,
            "failed": self.failed,
        }


@dataclass
class ScanState:
    """
    All mutable state of one scan.

    Each scan owns its own ScanState so concurrent scans never share
    queues, counters or visited sets.
    """

    scope_id: int
    root_path: Path
    allowed_extensions: frozenset[str] = frozenset()
    status: ScanStatus = ScanStatus.QUEUED
    queue: deque[CrawlQueueEntry] = field(default_factory=deque)
    counters: ScanCounters = field(default_factory=ScanCounters)
    seen_file_ids: set[int] = field(default_factory=set)
    visited_dirs: set[str] = field(default_factory=set)
    started_at: float = field(default_factory=time.monotonic)


@dataclass
class ScanResult:
    """Outcome of a finished scan."""

    scope_id: int
    status: ScanStatus
    counters: ScanCounters = field(default_factory=ScanCounters)
    elapsed_seconds: float = 0.0
    pruned: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "scope_id": self.scope_id,
            "status": self.status.value,
            **self.counters.to_dict(),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "pruned": self.pruned,
            "error": self.error,
        }
