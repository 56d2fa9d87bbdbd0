"""
Fake implementations for testing.

Provides in-memory implementations of the crawler and redaction
interfaces for use in unit tests without a database.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from docscope.core.crawler.interfaces import ContentIndexInterface, FileMetadataStoreInterface
from docscope.core.models import FileRecord, FileStat, Scope, SearchSettings
from docscope.core.path_utils import file_extension
from docscope.core.redaction import PrivacyRule, RuleStoreInterface


class InMemoryMetadataStore(FileMetadataStoreInterface):
    """
    In-memory scope and file store.

    File ids are assigned once per (scope_id, path) and stay stable
    across repeated upserts, like the SQLite store.
    """

    def __init__(self):
        self.scopes: dict[int, Scope] = {}
        self.files: dict[int, FileRecord] = {}
        self.settings: dict[int, SearchSettings] = {}
        self.upsert_calls = 0
        self._ids_by_path: dict[tuple[int, str], int] = {}
        self._next_scope_id = 1
        self._next_file_id = 1

    def add_scope(self, root_path: Path | str, owner_id: int = 1) -> Scope:
        scope = Scope(
            id=self._next_scope_id,
            owner_id=owner_id,
            root_path=str(root_path),
            display_name=Path(root_path).name,
        )
        self.scopes[scope.id] = scope
        self._next_scope_id += 1
        return scope

    def get_scope_by_id(self, scope_id: int) -> Scope | None:
        return self.scopes.get(scope_id)

    def get_search_settings(self, owner_id: int) -> SearchSettings:
        return self.settings.get(owner_id, SearchSettings())

    def upsert_file(self, scope_id: int, path: str, stat: FileStat) -> int:
        self.upsert_calls += 1
        key = (scope_id, path)
        file_id = self._ids_by_path.get(key)
        if file_id is None:
            file_id = self._next_file_id
            self._next_file_id += 1
            self._ids_by_path[key] = file_id
        self.files[file_id] = FileRecord(
            id=file_id,
            scope_id=scope_id,
            path=path,
            name=Path(path).name,
            extension=file_extension(path),
            size_bytes=stat.size,
            mime_type=None,
            updated_at=str(stat.mtime),
        )
        return file_id

    def delete_files_except(self, scope_id: int, keep_ids: Iterable[int]) -> int:
        keep = set(keep_ids)
        stale = [
            file_id
            for file_id, record in self.files.items()
            if record.scope_id == scope_id and file_id not in keep
        ]
        for file_id in stale:
            record = self.files.pop(file_id)
            self._ids_by_path.pop((scope_id, record.path), None)
        return len(stale)

    def paths(self) -> set[str]:
        return {record.path for record in self.files.values()}


class InMemoryContentIndex(ContentIndexInterface):
    """In-memory content index recording every write."""

    def __init__(self):
        self.entries: dict[int, str] = {}
        self.writes = 0

    def index_content(self, file_id: int, text: str) -> None:
        self.writes += 1
        self.entries[file_id] = text


class InMemoryRuleStore(RuleStoreInterface):
    """Rule store backed by a dict of profile id to rule list."""

    def __init__(self, rules: dict[int, list[PrivacyRule]] | None = None):
        self._rules: dict[int, list[PrivacyRule]] = rules or {}

    def add_rule(self, rule: PrivacyRule) -> None:
        self._rules.setdefault(rule.profile_id, []).append(rule)

    def get_rules(self, profile_id: int) -> list[PrivacyRule]:
        return sorted(self._rules.get(profile_id, []), key=lambda r: (r.sequence, r.id))
