"""
Service Layer - ScanService, SearchService, RedactionService, ExportService, ExtractionPool
and ServicesContainer.
"""

from docscope.services.container import ServicesContainer, create_services
from docscope.services.extraction_worker import ExtractionPool
from docscope.services.export_service import ExportError, ExportService
from docscope.services.redaction_service import (
    AccessDeniedError,
    FileNotAccessibleError,
    ProfileNotFoundError,
    RedactionService,
    RedactionServiceError,
)
from docscope.services.scan_service import (
    ScanService,
    ScanServiceError,
    ScopeValidationError,
)
from docscope.services.search_service import SearchService, SearchSettingsError

__all__ = [
    # Container and factory
    "ServicesContainer",
    "create_services",
    # Services
    "ScanService",
    "SearchService",
    "RedactionService",
    "ExportService",
    "ExtractionPool",
    # Errors
    "ScanServiceError",
    "ScopeValidationError",
    "SearchSettingsError",
    "RedactionServiceError",
    "FileNotAccessibleError",
    "AccessDeniedError",
    "ProfileNotFoundError",
    "ExportError",
]
