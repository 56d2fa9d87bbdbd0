"""
Centralized services container module for docscope.

Provides a shared container for all services used by the CLI and HTTP
entry points.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from docscope.core.config import DocscopeConfig, load_config
from docscope.core.crawler import Crawler
from docscope.infrastructure import ContentIndex, MetadataStore, create_metadata_store
from docscope.services.extraction_worker import ExtractionPool
from docscope.services.export_service import ExportService
from docscope.services.redaction_service import RedactionService
from docscope.services.scan_service import ScanService
from docscope.services.search_service import SearchService


@dataclass
class ServicesContainer:
    """
    Container holding all shared service instances.

    Attributes:
        config: Application configuration
        metadata_store: SQLite store for scopes, files, settings and rules
        content_index: FTS5 index sharing the metadata store connection
        extraction_pool: Thread pool running text extraction
        crawler: Directory walker feeding the store and index
        scan_service: Background scan orchestration
        search_service: File search and search settings
        redaction_service: Redacted file text
        export_service: File listing and bulk text export
    """

    config: DocscopeConfig
    metadata_store: MetadataStore
    content_index: ContentIndex
    extraction_pool: ExtractionPool
    crawler: Crawler
    scan_service: ScanService
    search_service: SearchService
    redaction_service: RedactionService
    export_service: ExportService

    def close(self) -> None:
        """Release worker threads and the database connection."""
        self.extraction_pool.shutdown()
        self.metadata_store.close()


def create_services(
    config_path: Optional[Path] = None,
    metadata_db_path: Optional[Path | str] = None,
    config: Optional[DocscopeConfig] = None,
) -> ServicesContainer:
    """
    Create and initialize all services.

    Args:
        config_path: Optional path to configuration file. If None, uses
                    environment variables and defaults.
        metadata_db_path: Optional path for the database. If None, uses
                         storage.db_path from the configuration.
        config: Ready configuration, used instead of loading one.

    Returns:
        ServicesContainer with all initialized services.
    """
    if config is None:
        config = load_config(config_path)

    db_path = metadata_db_path or config.storage.db_path
    metadata_store = create_metadata_store(db_path)

    content_index = ContentIndex(
        metadata_store,
        result_limit=config.search.result_limit,
        snippet_tokens=config.search.snippet_tokens,
    )
    extraction_pool = ExtractionPool(max_workers=config.crawler.extraction_workers)
    crawler = Crawler(metadata_store, content_index, extraction_pool, config.crawler)

    redaction_service = RedactionService(metadata_store)

    return ServicesContainer(
        config=config,
        metadata_store=metadata_store,
        content_index=content_index,
        extraction_pool=extraction_pool,
        crawler=crawler,
        scan_service=ScanService(metadata_store, crawler),
        search_service=SearchService(
            content_index, metadata_store, default_limit=config.search.result_limit
        ),
        redaction_service=redaction_service,
        export_service=ExportService(metadata_store, content_index, redaction_service),
    )
