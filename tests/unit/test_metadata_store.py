"""
Tests for the SQLite metadata store.

**Feature: docscope-metadata-store**
"""

import sqlite3
from pathlib import Path

import pytest

from docscope.core.models import FileStat, SearchSettings
from docscope.core.permissions import FILES_READ, TagPermission
from docscope.core.redaction import RuleType
from docscope.infrastructure.metadata_store import (
    MetadataStore,
    ScopeConflictError,
    create_metadata_store,
    guess_mime_type,
    migrate_schema,
)


@pytest.fixture
def store(tmp_path: Path):
    store = create_metadata_store(tmp_path / "meta.db")
    yield store
    store.close()


class TestScopes:
    def test_create_and_get(self, store: MetadataStore, tmp_path: Path):
        scope = store.create_scope(1, str(tmp_path / "docs"))

        assert scope.id > 0
        assert scope.display_name == "docs"
        assert store.get_scope_by_id(scope.id) == scope
        assert store.get_scope_by_path(1, str(tmp_path / "docs")) == scope

    def test_duplicate_root_per_owner_conflicts(self, store: MetadataStore):
        store.create_scope(1, "/data/docs")

        with pytest.raises(ScopeConflictError):
            store.create_scope(1, "/data/docs")

    def test_same_root_for_different_owners(self, store: MetadataStore):
        store.create_scope(1, "/data/docs")
        other = store.create_scope(2, "/data/docs", "Shared")

        assert other.display_name == "Shared"
        assert [s.owner_id for s in store.list_scopes()] == [1, 2]
        assert [s.owner_id for s in store.list_scopes(2)] == [2]

    def test_delete_requires_owner(self, store: MetadataStore):
        scope = store.create_scope(1, "/data/docs")

        assert store.delete_scope(scope.id, owner_id=2) is False
        assert store.delete_scope(scope.id, owner_id=1) is True
        assert store.get_scope_by_id(scope.id) is None


class TestFiles:
    def test_upsert_is_stable_per_path(self, store: MetadataStore):
        scope = store.create_scope(1, "/data")

        first = store.upsert_file(scope.id, "/data/a.TXT", FileStat(size=10, mtime=1_700_000_000))
        second = store.upsert_file(scope.id, "/data/a.TXT", FileStat(size=20, mtime=1_700_000_100))

        assert first == second
        record = store.get_file(first)
        assert record.size_bytes == 20
        assert record.name == "a.TXT"
        assert record.extension == ".txt"
        assert record.mime_type == "text/plain"
        assert store.count_files(scope.id) == 1

    def test_get_file_checks_owner(self, store: MetadataStore):
        scope = store.create_scope(1, "/data")
        file_id = store.upsert_file(scope.id, "/data/a.txt", FileStat(size=1, mtime=0))

        assert store.get_file(file_id, owner_id=1) is not None
        assert store.get_file(file_id, owner_id=2) is None

    def test_scope_delete_cascades_to_files_and_content(self, store: MetadataStore):
        scope = store.create_scope(1, "/data")
        file_id = store.upsert_file(scope.id, "/data/a.txt", FileStat(size=1, mtime=0))
        store.query.upsert_content(file_id, "hello")

        store.delete_scope(scope.id, 1)

        assert store.get_file(file_id) is None
        assert store.query.get_content(file_id) is None

    def test_delete_files_except(self, store: MetadataStore):
        scope = store.create_scope(1, "/data")
        keep = store.upsert_file(scope.id, "/data/keep.txt", FileStat(size=1, mtime=0))
        store.upsert_file(scope.id, "/data/drop.txt", FileStat(size=1, mtime=0))

        assert store.delete_files_except(scope.id, [keep]) == 1
        assert [f.path for f in store.list_files(scope.id)] == ["/data/keep.txt"]
        assert store.delete_files_except(scope.id, [keep]) == 0

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("a.pdf", "application/pdf"),
            ("a.JPG", "image/jpeg"),
            ("a.png", "image/png"),
            (
                "a.docx",
                "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            ),
            ("a.unknownext", "application/octet-stream"),
        ],
    )
    def test_mime_types(self, path, expected):
        assert guess_mime_type(path) == expected


class TestSearchSettings:
    def test_default_is_none(self, store: MetadataStore):
        assert store.get_search_settings(1).allowed_extensions is None

    def test_round_trip_per_owner(self, store: MetadataStore):
        store.set_search_settings(1, SearchSettings(allowed_extensions=[".md"]))

        assert store.get_search_settings(1).allowed_extensions == [".md"]
        assert store.get_search_settings(2).allowed_extensions is None

    def test_malformed_state_falls_back(self, store: MetadataStore):
        store.query.set_app_state(1, "{not json")

        assert store.get_search_settings(1) == SearchSettings()


class TestRules:
    def test_rules_ordered_by_sequence(self, store: MetadataStore):
        profile = store.create_profile(1, "default")
        late = store.add_rule(profile.id, RuleType.LITERAL, "b", "B", sequence=5)
        early = store.add_rule(profile.id, "REGEX", "a", "A", sequence=1)
        appended = store.add_rule(profile.id, RuleType.EMAIL)

        assert appended.sequence == 6
        assert [r.id for r in store.get_rules(profile.id)] == [early.id, late.id, appended.id]

    def test_set_rule_active(self, store: MetadataStore):
        profile = store.create_profile(1, "default")
        rule = store.add_rule(profile.id, RuleType.LITERAL, "x", "y")

        store.set_rule_active(rule.id, False)

        assert store.get_rules(profile.id)[0].is_active is False


class TestApiKeys:
    def test_permissions_and_profile_order(self, store: MetadataStore):
        p1 = store.create_profile(1, "one")
        p2 = store.create_profile(1, "two")
        store.create_api_key(1, "ci", "key-123", [FILES_READ, TagPermission(4)], [p2.id, p1.id])

        api_key = store.get_api_key_by_key("key-123")

        assert api_key.owner_id == 1
        assert api_key.permissions == [FILES_READ, TagPermission(4)]
        assert api_key.profile_ids == [p2.id, p1.id]
        assert store.get_api_key_by_key("missing") is None


class TestTags:
    def test_tag_files(self, store: MetadataStore):
        scope = store.create_scope(1, "/data")
        file_id = store.upsert_file(scope.id, "/data/a.txt", FileStat(size=1, mtime=0))
        tag = store.create_tag(1, "public")

        store.tag_file(file_id, tag.id)
        store.tag_file(file_id, tag.id)

        assert store.create_tag(1, "public").id == tag.id
        assert store.get_file_tag_ids(file_id) == [tag.id]


class TestLifecycle:
    def test_in_memory_database(self):
        store = create_metadata_store(":memory:")
        try:
            scope = store.create_scope(1, "/data")
            assert store.list_scopes() == [scope]
        finally:
            store.close()

    def test_migration_adds_sequence_column(self, tmp_path: Path):
        conn = sqlite3.connect(str(tmp_path / "old.db"))
        conn.execute(
            "CREATE TABLE privacy_rules (id INTEGER PRIMARY KEY, profile_id INTEGER, "
            "type TEXT, pattern TEXT, replacement TEXT, is_active INTEGER)"
        )
        conn.execute("INSERT INTO privacy_rules VALUES (3, 1, 'LITERAL', 'a', 'b', 1)")

        migrate_schema(conn)

        row = conn.execute("SELECT sequence FROM privacy_rules WHERE id = 3").fetchone()
        assert row[0] == 3
        conn.close()
