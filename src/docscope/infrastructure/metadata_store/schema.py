"""
Metadata store schema definitions and migrations.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA = """
-- Registered scope roots
CREATE TABLE IF NOT EXISTS scopes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id INTEGER NOT NULL,
    root_path TEXT NOT NULL,
    display_name TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(owner_id, root_path)
);

-- Discovered files
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scope_id INTEGER NOT NULL REFERENCES scopes(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    name TEXT NOT NULL,
    extension TEXT NOT NULL,
    size_bytes INTEGER NOT NULL,
    mime_type TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL,
    UNIQUE(scope_id, path)
);

-- Full-text index, rowid = files.id
CREATE VIRTUAL TABLE IF NOT EXISTS file_content_index USING fts5(
    content,
    tokenize = 'porter unicode61'
);

CREATE TRIGGER IF NOT EXISTS files_after_delete AFTER DELETE ON files BEGIN
    DELETE FROM file_content_index WHERE rowid = old.id;
END;

-- Per-owner settings stored as JSON
CREATE TABLE IF NOT EXISTS app_state (
    owner_id INTEGER PRIMARY KEY,
    value TEXT NOT NULL
);

-- Tags used for API key scoping
CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    color TEXT,
    UNIQUE(owner_id, name)
);

CREATE TABLE IF NOT EXISTS file_tags (
    file_id INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    UNIQUE(file_id, tag_id)
);

-- Redaction profiles and rules
CREATE TABLE IF NOT EXISTS privacy_profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id INTEGER NOT NULL,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS privacy_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    profile_id INTEGER NOT NULL REFERENCES privacy_profiles(id) ON DELETE CASCADE,
    type TEXT NOT NULL,
    pattern TEXT NOT NULL DEFAULT '',
    replacement TEXT NOT NULL DEFAULT '',
    is_active INTEGER NOT NULL DEFAULT 1,
    sequence INTEGER NOT NULL DEFAULT 0
);

-- API keys and their ordered profiles
CREATE TABLE IF NOT EXISTS api_keys (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    key TEXT NOT NULL UNIQUE,
    permissions TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS api_key_profiles (
    api_key_id INTEGER NOT NULL REFERENCES api_keys(id) ON DELETE CASCADE,
    profile_id INTEGER NOT NULL REFERENCES privacy_profiles(id) ON DELETE CASCADE,
    sequence INTEGER NOT NULL DEFAULT 0,
    UNIQUE(api_key_id, profile_id)
);

-- Indexes for efficient queries
CREATE INDEX IF NOT EXISTS idx_files_scope
    ON files(scope_id);
CREATE INDEX IF NOT EXISTS idx_files_name
    ON files(name);
CREATE INDEX IF NOT EXISTS idx_rules_profile
    ON privacy_rules(profile_id, sequence);
"""


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript(SCHEMA)
    conn.commit()


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Run schema migrations for existing databases."""
    try:
        cursor = conn.execute("PRAGMA table_info(privacy_rules)")
        columns = {row[1] for row in cursor.fetchall()}

        if "sequence" not in columns:
            logger.info("Migrating database: adding sequence column to privacy_rules")
            conn.execute(
                "ALTER TABLE privacy_rules ADD COLUMN sequence INTEGER NOT NULL DEFAULT 0"
            )
            conn.execute("UPDATE privacy_rules SET sequence = id")
            conn.commit()
    except sqlite3.Error as e:
        logger.warning(f"Schema migration warning: {e}")
