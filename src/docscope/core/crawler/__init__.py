"""
Crawler module for docscope.

Walks registered scopes with an explicit queue, records file metadata
and feeds eligible files through text extraction into the content index.
"""

from .crawler import Crawler
from .interfaces import (
    ContentIndexInterface,
    ExtractionPoolInterface,
    FileMetadataStoreInterface,
)
from .models import (
    CrawlQueueEntry,
    ExtractRequest,
    ExtractResult,
    ScanCounters,
    ScanResult,
    ScanState,
    ScanStatus,
)

__all__ = [
    # Main classes
    "Crawler",
    "ScanState",
    "ScanResult",
    "ScanStatus",
    "ScanCounters",
    "CrawlQueueEntry",
    # Extraction messages
    "ExtractRequest",
    "ExtractResult",
    # Interfaces
    "FileMetadataStoreInterface",
    "ContentIndexInterface",
    "ExtractionPoolInterface",
]
