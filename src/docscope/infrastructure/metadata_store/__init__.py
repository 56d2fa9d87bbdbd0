"""
Metadata Store module for docscope.

SQLite-based storage for scopes, file records, settings and redaction rules.
"""

from .models import MetadataStoreError, ScopeConflictError
from .queries import MetadataQueryExecutor, build_match_query
from .schema import initialize_schema, migrate_schema
from .store import MetadataStore, create_metadata_store, guess_mime_type

__all__ = [
    # Main classes
    "MetadataStore",
    "MetadataStoreError",
    "ScopeConflictError",
    # Query executor
    "MetadataQueryExecutor",
    "build_match_query",
    # Schema
    "initialize_schema",
    "migrate_schema",
    # Factory
    "create_metadata_store",
    # Utilities
    "guess_mime_type",
]
