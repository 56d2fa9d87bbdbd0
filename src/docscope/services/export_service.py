"""
Export Service for docscope.

Bundles the redacted text of many files into one response, as plain text,
HTML or a JSON list, for feeding a whole set of documents to another tool.
"""

import html
import logging
from dataclasses import dataclass
from typing import Optional

from docscope.core.models import ApiKey, FileRecord, SearchCriteria
from docscope.core.permissions import allowed_tag_ids, can_read_files
from docscope.infrastructure.content_index import ContentIndex
from docscope.infrastructure.metadata_store import MetadataStore
from docscope.services.redaction_service import AccessDeniedError, RedactionService

logger = logging.getLogger(__name__)

EXPORT_EXTENSIONS = (".pdf", ".docx", ".txt", ".md", ".odt", ".rtf")
DEFAULT_EXPORT_LIMIT = 50
MAX_EXPORT_LIMIT = 200
MAX_TEXT_EXPORT_CHARS = 10 * 1024 * 1024
MAX_JSON_EXPORT_CHARS = 5 * 1024 * 1024
TRUNCATION_WARNING = "\n\n[WARNING: Response truncated due to size limit]\n"

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped (non-text)"
STATUS_ERROR = "error"


class ExportError(ValueError):
    """Raised when export parameters are invalid."""

    pass


@dataclass
class ExportedFile:
    """One file's entry in a JSON export."""

    file: FileRecord
    status: str
    content: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = self.file.to_dict()
        data["content"] = self.content
        data["status"] = self.status
        if self.error is not None:
            data["error"] = self.error
        return data


class ExportService:
    """
    Service for listing and bulk-exporting an owner's files.

    API keys only ever see files their tag permissions allow, and their
    text always passes through the key's privacy profiles.
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        content_index: ContentIndex,
        redaction_service: RedactionService,
    ):
        self._store = metadata_store
        self._index = content_index
        self._redaction = redaction_service

    def _allowed_tags(self, api_key: Optional[ApiKey]) -> Optional[set[int]]:
        if api_key is None:
            return None
        if not can_read_files(api_key.permissions):
            raise AccessDeniedError("API key lacks file read permission")
        return allowed_tag_ids(api_key.permissions)

    def list_files(self, owner_id: int, api_key: Optional[ApiKey] = None) -> list[FileRecord]:
        """
        List every file the caller may read, newest first.

        Raises:
            AccessDeniedError: If the API key lacks file access
        """
        return self._store.list_owner_files(owner_id, tag_ids=self._allowed_tags(api_key))

    def select_files(
        self,
        owner_id: int,
        tag: Optional[str] = None,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        api_key: Optional[ApiKey] = None,
    ) -> list[FileRecord]:
        """
        Choose the files for an export.

        A tag name wins over a content query; with neither, all readable
        files are taken. The limit defaults to 50 and is capped at 200.

        Raises:
            ExportError: If limit is not positive
            AccessDeniedError: If the API key lacks file access
        """
        if limit is None:
            limit = DEFAULT_EXPORT_LIMIT
        if limit <= 0:
            raise ExportError("limit must be greater than 0")
        limit = min(limit, MAX_EXPORT_LIMIT)
        allowed = self._allowed_tags(api_key)

        if tag:
            found = self._store.get_tag_by_name(owner_id, tag)
            if found is None or (allowed is not None and found.id not in allowed):
                return []
            files = self._store.list_owner_files(owner_id, tag_ids=[found.id])
        elif query:
            hits = self._index.search(
                owner_id, SearchCriteria(content=query), limit=limit, allowed_tag_ids=allowed
            )
            files = [hit.file for hit in hits]
        else:
            files = self._store.list_owner_files(owner_id, tag_ids=allowed)
        return files[:limit]

    def _profiles_for(self, owner_id: int, api_key: Optional[ApiKey]) -> list[int]:
        return self._redaction.resolve_profiles(owner_id, None, api_key)

    async def export_text(
        self,
        owner_id: int,
        tag: Optional[str] = None,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        as_html: bool = False,
        api_key: Optional[ApiKey] = None,
    ) -> str:
        """
        Concatenate the redacted text of the selected document files.

        Non-document files are left out. Once the output passes the size
        ceiling a warning line is appended and the remaining files are dropped.
        """
        files = self.select_files(owner_id, tag=tag, query=query, limit=limit, api_key=api_key)
        profile_ids = self._profiles_for(owner_id, api_key)

        parts: list[str] = []
        size = 0
        for record in files:
            if size > MAX_TEXT_EXPORT_CHARS:
                parts.append(TRUNCATION_WARNING)
                logger.warning(f"Text export for owner {owner_id} truncated at {size} characters")
                break
            if record.extension.lower() not in EXPORT_EXTENSIONS:
                continue

            try:
                text = await self._redaction.redact_file(record, profile_ids, as_html=as_html)
            except Exception as exc:
                logger.warning(f"Failed to export {record.path}: {exc}")
                block = _text_block(record, f"[Error extracting text: {exc}]")
            else:
                block = _html_block(record, text) if as_html else _text_block(record, text)
            parts.append(block)
            size += len(block)

        logger.info(f"Exported {len(files)} candidate files as text for owner {owner_id}")
        return "".join(parts)

    async def export_json(
        self,
        owner_id: int,
        tag: Optional[str] = None,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        as_html: bool = False,
        api_key: Optional[ApiKey] = None,
    ) -> list[ExportedFile]:
        """
        Export the selected files one entry each, with a per-file status.

        Stops taking files once the collected content passes its ceiling.
        """
        files = self.select_files(owner_id, tag=tag, query=query, limit=limit, api_key=api_key)
        profile_ids = self._profiles_for(owner_id, api_key)

        results: list[ExportedFile] = []
        size = 0
        for record in files:
            if size > MAX_JSON_EXPORT_CHARS:
                logger.warning(f"JSON export for owner {owner_id} stopped at {size} characters")
                break
            if record.extension.lower() not in EXPORT_EXTENSIONS:
                results.append(ExportedFile(file=record, status=STATUS_SKIPPED))
                continue

            try:
                text = await self._redaction.redact_file(record, profile_ids, as_html=as_html)
            except Exception as exc:
                logger.warning(f"Failed to export {record.path}: {exc}")
                results.append(ExportedFile(file=record, status=STATUS_ERROR, error=str(exc)))
                continue
            size += len(text)
            results.append(ExportedFile(file=record, status=STATUS_OK, content=text))

        return results


def _text_block(record: FileRecord, text: str) -> str:
    return f"\n=== SOURCE: {record.name} (ID: {record.id}) ===\n{text}\n"


def _html_block(record: FileRecord, text: str) -> str:
    return (
        '<div style="margin-bottom: 2rem; border-bottom: 1px solid #eee; padding-bottom: 1rem;">'
        f'<h3 style="margin: 0 0 0.5rem 0; font-family: sans-serif;">'
        f"SOURCE: {html.escape(record.name)} (ID: {record.id})</h3>"
        f'<pre style="white-space: pre-wrap; font-family: monospace; font-size: 13px;">{text}</pre>'
        "</div>"
    )
