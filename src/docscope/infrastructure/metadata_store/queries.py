"""
Low-level SQL query executor for metadata store.
"""

import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

_FILE_COLUMNS = (
    "f.id, f.scope_id, f.path, f.name, f.extension, "
    "f.size_bytes, f.mime_type, f.updated_at"
)


def _now_with_tz() -> datetime:
    """Get current datetime with local timezone."""
    return datetime.now().astimezone()


def build_match_query(content: str) -> str:
    """
    Build an FTS5 MATCH expression from free text.

    Every whitespace separated term becomes a quoted prefix query
    and all terms must match.
    """
    terms = [t for t in content.split() if t]
    return " AND ".join('"' + t.replace('"', '""') + '"*' for t in terms)


class MetadataQueryExecutor:
    """Executes SQL queries for metadata store."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    # ─────────────────────────────────────────────────────────────────
    # Scope Operations
    # ─────────────────────────────────────────────────────────────────

    def insert_scope(self, owner_id: int, root_path: str, display_name: str) -> int:
        cursor = self._conn.execute(
            "INSERT INTO scopes (owner_id, root_path, display_name) VALUES (?, ?, ?)",
            (owner_id, root_path, display_name),
        )
        self._conn.commit()
        return int(cursor.lastrowid)

    def get_scope(self, scope_id: int) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            "SELECT id, owner_id, root_path, display_name, created_at FROM scopes WHERE id = ?",
            (scope_id,),
        )
        return cursor.fetchone()

    def get_scope_by_path(self, owner_id: int, root_path: str) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            """
            SELECT id, owner_id, root_path, display_name, created_at
            FROM scopes WHERE owner_id = ? AND root_path = ?
            """,
            (owner_id, root_path),
        )
        return cursor.fetchone()

    def list_scopes(self, owner_id: Optional[int] = None) -> List[sqlite3.Row]:
        if owner_id is None:
            cursor = self._conn.execute(
                "SELECT id, owner_id, root_path, display_name, created_at FROM scopes ORDER BY id"
            )
        else:
            cursor = self._conn.execute(
                """
                SELECT id, owner_id, root_path, display_name, created_at
                FROM scopes WHERE owner_id = ? ORDER BY id
                """,
                (owner_id,),
            )
        return cursor.fetchall()

    def delete_scope(self, scope_id: int, owner_id: int) -> int:
        cursor = self._conn.execute(
            "DELETE FROM scopes WHERE id = ? AND owner_id = ?", (scope_id, owner_id)
        )
        self._conn.commit()
        return cursor.rowcount

    # ─────────────────────────────────────────────────────────────────
    # File Operations
    # ─────────────────────────────────────────────────────────────────

    def upsert_file(
        self,
        scope_id: int,
        path: str,
        name: str,
        extension: str,
        size_bytes: int,
        mime_type: Optional[str],
        updated_at: str,
    ) -> int:
        """Insert a file or refresh its size and modification time."""
        self._conn.execute(
            """
            INSERT INTO files
                (scope_id, path, name, extension, size_bytes, mime_type, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(scope_id, path) DO UPDATE SET
                size_bytes = excluded.size_bytes,
                updated_at = excluded.updated_at
            """,
            (scope_id, path, name, extension, size_bytes, mime_type, updated_at),
        )
        cursor = self._conn.execute(
            "SELECT id FROM files WHERE scope_id = ? AND path = ?", (scope_id, path)
        )
        row = cursor.fetchone()
        self._conn.commit()
        return int(row["id"])

    def get_file(self, file_id: int) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM files f WHERE f.id = ?", (file_id,)
        )
        return cursor.fetchone()

    def get_file_for_owner(self, file_id: int, owner_id: int) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            f"""
            SELECT {_FILE_COLUMNS}
            FROM files f JOIN scopes s ON f.scope_id = s.id
            WHERE f.id = ? AND s.owner_id = ?
            """,
            (file_id, owner_id),
        )
        return cursor.fetchone()

    def list_files(self, scope_id: int) -> List[sqlite3.Row]:
        cursor = self._conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM files f WHERE f.scope_id = ? ORDER BY f.path",
            (scope_id,),
        )
        return cursor.fetchall()

    def list_owner_files(
        self, owner_id: int, tag_ids: Optional[Sequence[int]] = None
    ) -> List[sqlite3.Row]:
        """Files across all of an owner's scopes, optionally limited to tagged files."""
        sql = f"""
            SELECT {_FILE_COLUMNS}
            FROM files f JOIN scopes s ON f.scope_id = s.id
            WHERE s.owner_id = ?
        """
        params: list = [owner_id]
        if tag_ids is not None:
            placeholders = ", ".join("?" for _ in tag_ids) or "NULL"
            sql += f" AND f.id IN (SELECT file_id FROM file_tags WHERE tag_id IN ({placeholders}))"
            params.extend(tag_ids)
        sql += " ORDER BY f.updated_at DESC, f.id"
        return self._conn.execute(sql, params).fetchall()

    def get_file_ids(self, scope_id: int) -> List[int]:
        cursor = self._conn.execute("SELECT id FROM files WHERE scope_id = ?", (scope_id,))
        return [row["id"] for row in cursor.fetchall()]

    def delete_files_by_id(self, file_ids: Iterable[int]) -> int:
        cursor = self._conn.executemany(
            "DELETE FROM files WHERE id = ?", [(file_id,) for file_id in file_ids]
        )
        self._conn.commit()
        return cursor.rowcount

    def count_files(self, scope_id: Optional[int] = None) -> int:
        if scope_id is None:
            cursor = self._conn.execute("SELECT COUNT(*) AS n FROM files")
        else:
            cursor = self._conn.execute(
                "SELECT COUNT(*) AS n FROM files WHERE scope_id = ?", (scope_id,)
            )
        return int(cursor.fetchone()["n"])

    # ─────────────────────────────────────────────────────────────────
    # App State Operations
    # ─────────────────────────────────────────────────────────────────

    def get_app_state(self, owner_id: int) -> Optional[str]:
        cursor = self._conn.execute(
            "SELECT value FROM app_state WHERE owner_id = ?", (owner_id,)
        )
        row = cursor.fetchone()
        return row["value"] if row else None

    def set_app_state(self, owner_id: int, value: str) -> None:
        self._conn.execute(
            """
            INSERT INTO app_state (owner_id, value) VALUES (?, ?)
            ON CONFLICT(owner_id) DO UPDATE SET value = excluded.value
            """,
            (owner_id, value),
        )
        self._conn.commit()

    # ─────────────────────────────────────────────────────────────────
    # Tag Operations
    # ─────────────────────────────────────────────────────────────────

    def get_or_create_tag(self, owner_id: int, name: str, color: Optional[str]) -> sqlite3.Row:
        self._conn.execute(
            """
            INSERT INTO tags (owner_id, name, color) VALUES (?, ?, ?)
            ON CONFLICT(owner_id, name) DO NOTHING
            """,
            (owner_id, name, color),
        )
        cursor = self._conn.execute(
            "SELECT id, owner_id, name, color FROM tags WHERE owner_id = ? AND name = ?",
            (owner_id, name),
        )
        row = cursor.fetchone()
        self._conn.commit()
        return row

    def get_tag_by_name(self, owner_id: int, name: str) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            "SELECT id, owner_id, name, color FROM tags WHERE owner_id = ? AND name = ?",
            (owner_id, name),
        )
        return cursor.fetchone()

    def link_file_tag(self, file_id: int, tag_id: int) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO file_tags (file_id, tag_id) VALUES (?, ?)",
            (file_id, tag_id),
        )
        self._conn.commit()

    def get_file_tag_ids(self, file_id: int) -> List[int]:
        cursor = self._conn.execute(
            "SELECT tag_id FROM file_tags WHERE file_id = ? ORDER BY tag_id", (file_id,)
        )
        return [row["tag_id"] for row in cursor.fetchall()]

    # ─────────────────────────────────────────────────────────────────
    # Privacy Profile Operations
    # ─────────────────────────────────────────────────────────────────

    def insert_profile(self, owner_id: int, name: str) -> int:
        cursor = self._conn.execute(
            "INSERT INTO privacy_profiles (owner_id, name) VALUES (?, ?)", (owner_id, name)
        )
        self._conn.commit()
        return int(cursor.lastrowid)

    def get_profile(self, profile_id: int) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            "SELECT id, owner_id, name FROM privacy_profiles WHERE id = ?", (profile_id,)
        )
        return cursor.fetchone()

    def insert_rule(
        self,
        profile_id: int,
        rule_type: str,
        pattern: str,
        replacement: str,
        is_active: bool,
        sequence: Optional[int],
    ) -> sqlite3.Row:
        if sequence is None:
            cursor = self._conn.execute(
                "SELECT COALESCE(MAX(sequence), 0) + 1 AS next FROM privacy_rules WHERE profile_id = ?",
                (profile_id,),
            )
            sequence = int(cursor.fetchone()["next"])
        cursor = self._conn.execute(
            """
            INSERT INTO privacy_rules
                (profile_id, type, pattern, replacement, is_active, sequence)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (profile_id, rule_type, pattern, replacement, 1 if is_active else 0, sequence),
        )
        rule_id = cursor.lastrowid
        self._conn.commit()
        return self.get_rule(int(rule_id))

    def get_rule(self, rule_id: int) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            """
            SELECT id, profile_id, type, pattern, replacement, is_active, sequence
            FROM privacy_rules WHERE id = ?
            """,
            (rule_id,),
        )
        return cursor.fetchone()

    def get_rules(self, profile_id: int) -> List[sqlite3.Row]:
        cursor = self._conn.execute(
            """
            SELECT id, profile_id, type, pattern, replacement, is_active, sequence
            FROM privacy_rules WHERE profile_id = ?
            ORDER BY sequence, id
            """,
            (profile_id,),
        )
        return cursor.fetchall()

    def set_rule_active(self, rule_id: int, is_active: bool) -> int:
        cursor = self._conn.execute(
            "UPDATE privacy_rules SET is_active = ? WHERE id = ?",
            (1 if is_active else 0, rule_id),
        )
        self._conn.commit()
        return cursor.rowcount

    # ─────────────────────────────────────────────────────────────────
    # API Key Operations
    # ─────────────────────────────────────────────────────────────────

    def insert_api_key(
        self, owner_id: int, name: str, key: str, permissions: str, profile_ids: Sequence[int]
    ) -> int:
        cursor = self._conn.execute(
            "INSERT INTO api_keys (owner_id, name, key, permissions) VALUES (?, ?, ?, ?)",
            (owner_id, name, key, permissions),
        )
        api_key_id = int(cursor.lastrowid)
        self._conn.executemany(
            """
            INSERT INTO api_key_profiles (api_key_id, profile_id, sequence)
            VALUES (?, ?, ?)
            """,
            [(api_key_id, profile_id, seq) for seq, profile_id in enumerate(profile_ids)],
        )
        self._conn.commit()
        return api_key_id

    def get_api_key_by_key(self, key: str) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            "SELECT id, owner_id, name, key, permissions FROM api_keys WHERE key = ?", (key,)
        )
        return cursor.fetchone()

    def get_api_key_profile_ids(self, api_key_id: int) -> List[int]:
        cursor = self._conn.execute(
            """
            SELECT profile_id FROM api_key_profiles
            WHERE api_key_id = ? ORDER BY sequence, profile_id
            """,
            (api_key_id,),
        )
        return [row["profile_id"] for row in cursor.fetchall()]

    # ─────────────────────────────────────────────────────────────────
    # Content Index Operations
    # ─────────────────────────────────────────────────────────────────

    def upsert_content(self, file_id: int, content: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO file_content_index (rowid, content) VALUES (?, ?)",
            (file_id, content),
        )
        self._conn.commit()

    def delete_content(self, file_id: int) -> int:
        cursor = self._conn.execute(
            "DELETE FROM file_content_index WHERE rowid = ?", (file_id,)
        )
        self._conn.commit()
        return cursor.rowcount

    def get_content(self, file_id: int) -> Optional[str]:
        cursor = self._conn.execute(
            "SELECT content FROM file_content_index WHERE rowid = ?", (file_id,)
        )
        row = cursor.fetchone()
        return row["content"] if row else None

    def search_files(
        self,
        owner_id: int,
        match_query: str,
        filename: str,
        directory: str,
        tag_ids: Optional[Sequence[int]],
        limit: int,
        snippet_tokens: int,
    ) -> List[sqlite3.Row]:
        """Run a combined metadata and full-text query."""
        conditions = ["s.owner_id = ?"]
        params: list = [owner_id]
        join_content = bool(match_query)

        if join_content:
            conditions.append("file_content_index MATCH ?")
            params.append(match_query)

        if filename:
            conditions.append("f.name LIKE ?")
            params.append(f"%{filename}%")

        if directory:
            conditions.append("(f.path LIKE '%/' || ? || '/%' OR f.path LIKE '%' || ?)")
            params.extend([directory, directory])

        if tag_ids is not None:
            placeholders = ", ".join("?" for _ in tag_ids) or "NULL"
            conditions.append(
                f"f.id IN (SELECT file_id FROM file_tags WHERE tag_id IN ({placeholders}))"
            )
            params.extend(tag_ids)

        tokens = max(1, min(int(snippet_tokens), 64))
        snippet_column = (
            f", snippet(file_content_index, 0, '<b>', '</b>', '...', {tokens}) AS snippet"
            if join_content
            else ", NULL AS snippet"
        )
        join_clause = (
            "JOIN file_content_index ON file_content_index.rowid = f.id" if join_content else ""
        )
        order_clause = "file_content_index.rank" if join_content else "f.updated_at DESC"

        sql = f"""
            SELECT {_FILE_COLUMNS}{snippet_column}
            FROM files f
            JOIN scopes s ON f.scope_id = s.id
            {join_clause}
            WHERE {' AND '.join(conditions)}
            ORDER BY {order_clause}
            LIMIT ?
        """
        params.append(limit)
        return self._conn.execute(sql, params).fetchall()
