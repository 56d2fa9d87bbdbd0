"""
Infrastructure Layer - SQLite metadata store and FTS5 content index.
"""

from docscope.infrastructure.content_index import ContentIndex
from docscope.infrastructure.fakes import (
    InMemoryContentIndex,
    InMemoryMetadataStore,
    InMemoryRuleStore,
)
from docscope.infrastructure.metadata_store import (
    MetadataStore,
    MetadataStoreError,
    ScopeConflictError,
    create_metadata_store,
)

__all__ = [
    # Metadata store
    "MetadataStore",
    "MetadataStoreError",
    "ScopeConflictError",
    "create_metadata_store",
    # Content index
    "ContentIndex",
    # Fakes for testing
    "InMemoryMetadataStore",
    "InMemoryContentIndex",
    "InMemoryRuleStore",
]
