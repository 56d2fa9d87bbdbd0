"""
Full-text content index backed by SQLite FTS5.

Entries are keyed by file record id (the FTS rowid), so indexing a file
again overwrites its previous text and deleting the file record drops
its entry through the schema trigger.
"""

import logging
import sqlite3
from collections.abc import Iterable
from typing import List, Optional

from docscope.core.crawler.interfaces import ContentIndexInterface
from docscope.core.models import FileRecord, SearchCriteria, SearchHit
from docscope.infrastructure.metadata_store import (
    MetadataStore,
    MetadataStoreError,
    build_match_query,
)

logger = logging.getLogger(__name__)

DEFAULT_RESULT_LIMIT = 500
DEFAULT_SNIPPET_TOKENS = 64


class ContentIndex(ContentIndexInterface):
    """FTS5 index sharing the metadata store's connection."""

    def __init__(
        self,
        store: MetadataStore,
        result_limit: int = DEFAULT_RESULT_LIMIT,
        snippet_tokens: int = DEFAULT_SNIPPET_TOKENS,
    ):
        self._store = store
        self._result_limit = result_limit
        self._snippet_tokens = snippet_tokens

    def index_content(self, file_id: int, text: str) -> None:
        try:
            self._store.query.upsert_content(file_id, text)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to index content for file {file_id}: {e}") from e

    def delete_content(self, file_id: int) -> bool:
        """Remove a file's indexed text. Returns True if an entry existed."""
        try:
            return self._store.query.delete_content(file_id) > 0
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to delete content for file {file_id}: {e}") from e

    def get_content(self, file_id: int) -> Optional[str]:
        try:
            return self._store.query.get_content(file_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to read content for file {file_id}: {e}") from e

    def search(
        self,
        owner_id: int,
        criteria: SearchCriteria,
        limit: Optional[int] = None,
        allowed_tag_ids: Optional[Iterable[int]] = None,
    ) -> List[SearchHit]:
        """
        Search an owner's files by filename, content and directory.

        Args:
            owner_id: Owner whose scopes are searched
            criteria: Filters; all-empty criteria return no results
            limit: Maximum number of hits (defaults to the configured limit)
            allowed_tag_ids: Restrict hits to files carrying one of these tags

        Returns:
            Hits ordered by FTS rank when content is given, newest first otherwise
        """
        if criteria.is_empty():
            return []

        tag_ids = sorted(allowed_tag_ids) if allowed_tag_ids is not None else None
        try:
            rows = self._store.query.search_files(
                owner_id=owner_id,
                match_query=build_match_query(criteria.content),
                filename=criteria.filename.strip(),
                directory=criteria.directory.strip(),
                tag_ids=tag_ids,
                limit=limit or self._result_limit,
                snippet_tokens=self._snippet_tokens,
            )
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Search failed: {e}") from e

        hits = [
            SearchHit(
                file=FileRecord(
                    id=row["id"],
                    scope_id=row["scope_id"],
                    path=row["path"],
                    name=row["name"],
                    extension=row["extension"],
                    size_bytes=row["size_bytes"],
                    mime_type=row["mime_type"],
                    updated_at=row["updated_at"],
                ),
                snippet=row["snippet"],
            )
            for row in rows
        ]
        logger.debug(f"Search returned {len(hits)} hits", extra={"owner_id": owner_id})
        return hits
