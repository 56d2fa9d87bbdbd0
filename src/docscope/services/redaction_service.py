"""
Redaction Service for docscope.

Serves the extracted text of a file, rewritten through the caller's
privacy profiles.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Optional

from docscope.core.models import ApiKey, FileRecord
from docscope.core.permissions import allowed_tag_ids, can_read_files
from docscope.core.redaction import redact_with_multiple_profiles
from docscope.core.text_extractor import extract_text
from docscope.infrastructure.metadata_store import MetadataStore

logger = logging.getLogger(__name__)


class RedactionServiceError(Exception):
    """Base exception for redaction service errors."""

    pass


class FileNotAccessibleError(RedactionServiceError):
    """The file does not exist or belongs to another owner."""

    pass


class AccessDeniedError(RedactionServiceError):
    """The API key may not read this file."""

    pass


class ProfileNotFoundError(RedactionServiceError):
    """A requested privacy profile does not exist or is not owned by the caller."""

    pass


class RedactionService:
    """Extracts a file's text and runs it through the redaction engine."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        extractor: Callable[[str, str], str] = extract_text,
    ):
        self._store = metadata_store
        self._extractor = extractor

    def check_file_access(
        self, owner_id: int, file_id: int, api_key: Optional[ApiKey] = None
    ) -> FileRecord:
        """
        Resolve a file the caller may read.

        Raises:
            FileNotAccessibleError: If the owner has no such file
            AccessDeniedError: If the API key lacks file access or tag access
        """
        record = self._store.get_file(file_id, owner_id=owner_id)
        if record is None:
            raise FileNotAccessibleError(f"File {file_id} not found")

        if api_key is not None:
            if not can_read_files(api_key.permissions):
                raise AccessDeniedError("API key lacks file read permission")
            tag_ids = allowed_tag_ids(api_key.permissions)
            if tag_ids is not None and not tag_ids & set(self._store.get_file_tag_ids(file_id)):
                raise AccessDeniedError(f"API key may not read file {file_id}")
        return record

    def resolve_profiles(
        self,
        owner_id: int,
        profile_ids: Optional[Sequence[int]],
        api_key: Optional[ApiKey] = None,
    ) -> list[int]:
        """
        Pick the profiles to apply, in order.

        An API key carrying profiles always gets exactly those; explicit
        profile ids cannot replace them. Otherwise explicit ids apply.
        """
        if api_key is not None and api_key.profile_ids:
            if profile_ids and list(profile_ids) != list(api_key.profile_ids):
                logger.info(
                    f"Ignoring requested profiles {list(profile_ids)} for API key {api_key.id}"
                )
            ids = list(api_key.profile_ids)
        elif profile_ids:
            ids = list(profile_ids)
        else:
            ids = []

        for profile_id in ids:
            profile = self._store.get_profile(profile_id)
            if profile is None or profile.owner_id != owner_id:
                raise ProfileNotFoundError(f"Privacy profile {profile_id} not found")
        return ids

    async def redact_file(
        self, record: FileRecord, profile_ids: Sequence[int], as_html: bool = False
    ) -> str:
        """Freshly extract a file's text off the event loop and redact it."""
        text = await asyncio.to_thread(self._extractor, record.path, record.extension)
        logger.debug(f"Redacting file {record.id} with profiles {list(profile_ids)}")
        return redact_with_multiple_profiles(text, profile_ids, self._store, as_html=as_html)

    async def get_file_text(
        self,
        owner_id: int,
        file_id: int,
        profile_ids: Optional[Sequence[int]] = None,
        as_html: bool = False,
        api_key: Optional[ApiKey] = None,
    ) -> str:
        """Freshly extract a file's text and redact it through the resolved profiles."""
        record = self.check_file_access(owner_id, file_id, api_key)
        ids = self.resolve_profiles(owner_id, profile_ids, api_key)
        return await self.redact_file(record, ids, as_html=as_html)
