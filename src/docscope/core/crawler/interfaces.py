"""
Abstract interfaces the crawler writes through.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Optional

from docscope.core.models import FileStat, Scope, SearchSettings

from .models import ExtractRequest, ExtractResult


class FileMetadataStoreInterface(ABC):
    """
    Persistence for scopes and file records as seen by the crawler.

    Implementations must make upsert_file idempotent per (scope_id, path).
    """

    @abstractmethod
    def get_scope_by_id(self, scope_id: int) -> Optional[Scope]:
        """Return the scope, or None if it does not exist."""
        pass

    @abstractmethod
    def get_search_settings(self, owner_id: int) -> SearchSettings:
        """Return the owner's search settings."""
        pass

    @abstractmethod
    def upsert_file(self, scope_id: int, path: str, stat: FileStat) -> int:
        """
        Create or refresh a file record.

        Returns:
            The file record id, stable across repeated upserts
        """
        pass

    @abstractmethod
    def delete_files_except(self, scope_id: int, keep_ids: Iterable[int]) -> int:
        """Delete the scope's file records not in keep_ids. Returns count deleted."""
        pass


class ContentIndexInterface(ABC):
    """Full-text index keyed by file record id."""

    @abstractmethod
    def index_content(self, file_id: int, text: str) -> None:
        """Write or overwrite the indexed text for a file."""
        pass


class ExtractionPoolInterface(ABC):
    """Runs text extraction off the event loop."""

    @abstractmethod
    async def submit(self, request: ExtractRequest) -> ExtractResult:
        """Extract text for one file and return the correlated result."""
        pass
