"""
Metadata Store implementation.

SQLite-based storage for scopes, file records, search settings,
privacy profiles and rules, tags and API keys.
"""

import json
import logging
import mimetypes
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from docscope.core.crawler.interfaces import FileMetadataStoreInterface
from docscope.core.models import (
    ApiKey,
    FileRecord,
    FileStat,
    PrivacyProfile,
    Scope,
    SearchSettings,
    Tag,
)
from docscope.core.path_utils import file_extension
from docscope.core.permissions import Permission, format_permissions, parse_permissions
from docscope.core.redaction import PrivacyRule, RuleStoreInterface, RuleType

from .models import MetadataStoreError, ScopeConflictError
from .queries import MetadataQueryExecutor
from .schema import initialize_schema, migrate_schema

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

_MIME_TYPES = {
    ".txt": "text/plain",
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def guess_mime_type(path: str) -> str:
    """Map a file path to a MIME type, defaulting to octet-stream."""
    ext = file_extension(path)
    if ext in _MIME_TYPES:
        return _MIME_TYPES[ext]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


def _row_to_scope(row: sqlite3.Row) -> Scope:
    return Scope(
        id=row["id"],
        owner_id=row["owner_id"],
        root_path=row["root_path"],
        display_name=row["display_name"],
        created_at=row["created_at"],
    )


def _row_to_file(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        id=row["id"],
        scope_id=row["scope_id"],
        path=row["path"],
        name=row["name"],
        extension=row["extension"],
        size_bytes=row["size_bytes"],
        mime_type=row["mime_type"],
        updated_at=row["updated_at"],
    )


def _row_to_rule(row: sqlite3.Row) -> PrivacyRule:
    return PrivacyRule(
        id=row["id"],
        profile_id=row["profile_id"],
        type=RuleType(row["type"]),
        pattern=row["pattern"],
        replacement=row["replacement"],
        is_active=bool(row["is_active"]),
        sequence=row["sequence"],
    )


class MetadataStore(FileMetadataStoreInterface, RuleStoreInterface):
    """
    SQLite-based metadata storage.

    A single connection is shared by the event loop thread; it is opened
    with check_same_thread=False so shutdown hooks running elsewhere can
    close it.
    """

    def __init__(self, db_path: Path | str):
        self._db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._query: Optional[MetadataQueryExecutor] = None
        self._initialized = False

    @property
    def db_path(self) -> str:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            if self._db_path != MEMORY_DB:
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA busy_timeout=5000;")
            self._conn.execute("PRAGMA foreign_keys=ON;")
            self._query = MetadataQueryExecutor(self._conn)
        return self._conn

    def initialize(self) -> None:
        """Initialize the database schema."""
        if self._initialized:
            return
        conn = self._get_connection()
        try:
            initialize_schema(conn)
            migrate_schema(conn)
            self._initialized = True
            logger.info(f"Initialized metadata store: {self._db_path}")
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to initialize schema: {e}") from e

    def _ensure_query(self) -> MetadataQueryExecutor:
        """Ensure query executor is available."""
        self.initialize()
        assert self._query is not None
        return self._query

    @property
    def query(self) -> MetadataQueryExecutor:
        """Query executor shared with the content index."""
        return self._ensure_query()

    # ─────────────────────────────────────────────────────────────────
    # Scope Operations
    # ─────────────────────────────────────────────────────────────────

    def create_scope(
        self, owner_id: int, root_path: str, display_name: Optional[str] = None
    ) -> Scope:
        """
        Register a scope root for an owner.

        Raises:
            ScopeConflictError: If the owner already registered root_path
        """
        name = display_name or Path(root_path).name or root_path
        try:
            scope_id = self._ensure_query().insert_scope(owner_id, root_path, name)
        except sqlite3.IntegrityError as e:
            raise ScopeConflictError(
                f"Scope already registered for owner {owner_id}: {root_path}"
            ) from e
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to create scope: {e}") from e
        scope = self.get_scope_by_id(scope_id)
        assert scope is not None
        return scope

    def get_scope_by_id(self, scope_id: int) -> Optional[Scope]:
        try:
            row = self._ensure_query().get_scope(scope_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get scope: {e}") from e
        return _row_to_scope(row) if row else None

    def get_scope_by_path(self, owner_id: int, root_path: str) -> Optional[Scope]:
        try:
            row = self._ensure_query().get_scope_by_path(owner_id, root_path)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get scope: {e}") from e
        return _row_to_scope(row) if row else None

    def list_scopes(self, owner_id: Optional[int] = None) -> List[Scope]:
        """List scopes, optionally restricted to one owner."""
        try:
            rows = self._ensure_query().list_scopes(owner_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to list scopes: {e}") from e
        return [_row_to_scope(row) for row in rows]

    def delete_scope(self, scope_id: int, owner_id: int) -> bool:
        """Delete an owned scope and its files. Returns True if deleted."""
        try:
            return self._ensure_query().delete_scope(scope_id, owner_id) > 0
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to delete scope: {e}") from e

    # ─────────────────────────────────────────────────────────────────
    # File Operations
    # ─────────────────────────────────────────────────────────────────

    def upsert_file(self, scope_id: int, path: str, stat: FileStat) -> int:
        p = Path(path)
        updated_at = datetime.fromtimestamp(stat.mtime).astimezone().isoformat()
        try:
            return self._ensure_query().upsert_file(
                scope_id,
                str(p),
                p.name,
                file_extension(p),
                stat.size,
                guess_mime_type(str(p)),
                updated_at,
            )
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to upsert file: {e}") from e

    def get_file(self, file_id: int, owner_id: Optional[int] = None) -> Optional[FileRecord]:
        """Get a file record; with owner_id, only if that owner's scope holds it."""
        try:
            query = self._ensure_query()
            if owner_id is None:
                row = query.get_file(file_id)
            else:
                row = query.get_file_for_owner(file_id, owner_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get file: {e}") from e
        return _row_to_file(row) if row else None

    def list_files(self, scope_id: int) -> List[FileRecord]:
        try:
            rows = self._ensure_query().list_files(scope_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to list files: {e}") from e
        return [_row_to_file(row) for row in rows]

    def list_owner_files(
        self, owner_id: int, tag_ids: Optional[Iterable[int]] = None
    ) -> List[FileRecord]:
        """List an owner's files, newest first. tag_ids restricts to files carrying any of them."""
        try:
            rows = self._ensure_query().list_owner_files(
                owner_id, sorted(tag_ids) if tag_ids is not None else None
            )
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to list files: {e}") from e
        return [_row_to_file(row) for row in rows]

    def count_files(self, scope_id: Optional[int] = None) -> int:
        try:
            return self._ensure_query().count_files(scope_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to count files: {e}") from e

    def delete_files_except(self, scope_id: int, keep_ids: Iterable[int]) -> int:
        keep = set(keep_ids)
        try:
            query = self._ensure_query()
            stale = [file_id for file_id in query.get_file_ids(scope_id) if file_id not in keep]
            if not stale:
                return 0
            query.delete_files_by_id(stale)
            return len(stale)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to delete stale files: {e}") from e

    # ─────────────────────────────────────────────────────────────────
    # Search Settings Operations
    # ─────────────────────────────────────────────────────────────────

    def get_search_settings(self, owner_id: int) -> SearchSettings:
        try:
            raw = self._ensure_query().get_app_state(owner_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get search settings: {e}") from e
        if not raw:
            return SearchSettings()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed search settings for owner {owner_id}")
            return SearchSettings()
        allowed = data.get("allowedExtensions") if isinstance(data, dict) else None
        if not isinstance(allowed, list):
            return SearchSettings()
        return SearchSettings(allowed_extensions=[str(ext) for ext in allowed])

    def set_search_settings(self, owner_id: int, settings: SearchSettings) -> None:
        value = json.dumps({"allowedExtensions": settings.allowed_extensions})
        try:
            self._ensure_query().set_app_state(owner_id, value)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to save search settings: {e}") from e

    # ─────────────────────────────────────────────────────────────────
    # Tag Operations
    # ─────────────────────────────────────────────────────────────────

    def create_tag(self, owner_id: int, name: str, color: Optional[str] = None) -> Tag:
        try:
            row = self._ensure_query().get_or_create_tag(owner_id, name, color)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to create tag: {e}") from e
        return Tag(id=row["id"], owner_id=row["owner_id"], name=row["name"], color=row["color"])

    def get_tag_by_name(self, owner_id: int, name: str) -> Optional[Tag]:
        try:
            row = self._ensure_query().get_tag_by_name(owner_id, name)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get tag: {e}") from e
        if row is None:
            return None
        return Tag(id=row["id"], owner_id=row["owner_id"], name=row["name"], color=row["color"])

    def tag_file(self, file_id: int, tag_id: int) -> None:
        try:
            self._ensure_query().link_file_tag(file_id, tag_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to tag file: {e}") from e

    def get_file_tag_ids(self, file_id: int) -> List[int]:
        try:
            return self._ensure_query().get_file_tag_ids(file_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get file tags: {e}") from e

    # ─────────────────────────────────────────────────────────────────
    # Privacy Profile Operations
    # ─────────────────────────────────────────────────────────────────

    def create_profile(self, owner_id: int, name: str) -> PrivacyProfile:
        try:
            profile_id = self._ensure_query().insert_profile(owner_id, name)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to create profile: {e}") from e
        return PrivacyProfile(id=profile_id, owner_id=owner_id, name=name)

    def get_profile(self, profile_id: int) -> Optional[PrivacyProfile]:
        try:
            row = self._ensure_query().get_profile(profile_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get profile: {e}") from e
        if row is None:
            return None
        return PrivacyProfile(id=row["id"], owner_id=row["owner_id"], name=row["name"])

    def add_rule(
        self,
        profile_id: int,
        rule_type: RuleType | str,
        pattern: str = "",
        replacement: str = "",
        is_active: bool = True,
        sequence: Optional[int] = None,
    ) -> PrivacyRule:
        """Append a rule to a profile. Without a sequence it goes last."""
        try:
            row = self._ensure_query().insert_rule(
                profile_id,
                RuleType(rule_type).value,
                pattern,
                replacement,
                is_active,
                sequence,
            )
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to add rule: {e}") from e
        return _row_to_rule(row)

    def get_rules(self, profile_id: int) -> list[PrivacyRule]:
        try:
            rows = self._ensure_query().get_rules(profile_id)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get rules: {e}") from e
        return [_row_to_rule(row) for row in rows]

    def set_rule_active(self, rule_id: int, is_active: bool) -> bool:
        try:
            return self._ensure_query().set_rule_active(rule_id, is_active) > 0
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to update rule: {e}") from e

    # ─────────────────────────────────────────────────────────────────
    # API Key Operations
    # ─────────────────────────────────────────────────────────────────

    def create_api_key(
        self,
        owner_id: int,
        name: str,
        key: str,
        permissions: Sequence[Permission] = (),
        profile_ids: Sequence[int] = (),
    ) -> ApiKey:
        try:
            api_key_id = self._ensure_query().insert_api_key(
                owner_id, name, key, format_permissions(permissions), list(profile_ids)
            )
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to create API key: {e}") from e
        return ApiKey(
            id=api_key_id,
            owner_id=owner_id,
            name=name,
            key=key,
            permissions=list(permissions),
            profile_ids=list(profile_ids),
        )

    def get_api_key_by_key(self, key: str) -> Optional[ApiKey]:
        """
        Resolve an API key string.

        Raises:
            PermissionParseError: If the stored permissions are corrupt
        """
        try:
            query = self._ensure_query()
            row = query.get_api_key_by_key(key)
            if row is None:
                return None
            profile_ids = query.get_api_key_profile_ids(row["id"])
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get API key: {e}") from e
        return ApiKey(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            key=row["key"],
            permissions=parse_permissions(row["permissions"]),
            profile_ids=profile_ids,
        )

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._query = None
            self._initialized = False


def create_metadata_store(db_path: Path | str) -> MetadataStore:
    """Factory function to create and initialize a metadata store."""
    store = MetadataStore(db_path)
    store.initialize()
    return store
