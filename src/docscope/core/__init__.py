"""
Core Layer - Crawling, text extraction, redaction and configuration.
"""

from docscope.core.config import (
    CrawlerConfig,
    DocscopeConfig,
    LoggingConfig,
    SearchConfig,
    ServerConfig,
    StorageConfig,
    load_config,
)
from docscope.core.crawler import (
    Crawler,
    ExtractRequest,
    ExtractResult,
    ScanResult,
    ScanStatus,
)
from docscope.core.permissions import (
    Permission,
    PermissionParseError,
    parse_permissions,
)
from docscope.core.redaction import (
    PrivacyRule,
    RuleStoreInterface,
    RuleType,
    redact,
    redact_with_multiple_profiles,
)
from docscope.core.text_extractor import extract_text

__all__ = [
    # Config
    "DocscopeConfig",
    "CrawlerConfig",
    "StorageConfig",
    "SearchConfig",
    "ServerConfig",
    "LoggingConfig",
    "load_config",
    # Crawler
    "Crawler",
    "ExtractRequest",
    "ExtractResult",
    "ScanResult",
    "ScanStatus",
    # Text extraction
    "extract_text",
    # Redaction
    "PrivacyRule",
    "RuleStoreInterface",
    "RuleType",
    "redact",
    "redact_with_multiple_profiles",
    # Permissions
    "Permission",
    "PermissionParseError",
    "parse_permissions",
]
