"""
Exceptions for the metadata store.
"""


class MetadataStoreError(Exception):
    """Base exception for metadata store errors."""
    pass


class ScopeConflictError(MetadataStoreError):
    """Raised when an owner registers the same root path twice."""
    pass
