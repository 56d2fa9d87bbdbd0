"""
Configuration module for docscope.

Supports loading from YAML/JSON files with environment variable overrides.
Default values are loaded from defaults.yaml for maintainability.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from docscope.core.path_utils import normalize_extension

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, Any] | None = None

_MB = 1024 * 1024


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section, {})
    return section_defaults.get(key, fallback)


DEFAULT_ALLOWED_EXTENSIONS: list[str] = [
    ".txt", ".md", ".markdown", ".rst", ".log", ".csv", ".json", ".xml",
    ".yaml", ".yml", ".toml", ".ini", ".cfg", ".html", ".htm", ".css",
    ".scss", ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".go", ".rs",
    ".c", ".h", ".cpp", ".hpp", ".cs", ".rb", ".php", ".sh", ".sql",
    ".pdf", ".docx", ".odt",
]

DEFAULT_IGNORE_DIRS: list[str] = [
    "node_modules",
    "dist",
    "build",
    "coverage",
    "target",
    "venv",
    "__pycache__",
]


@dataclass
class CrawlerConfig:
    """Configuration for directory crawling and content extraction."""

    allowed_extensions: list[str] = field(
        default_factory=lambda: list(
            _get_default("crawler", "allowed_extensions", DEFAULT_ALLOWED_EXTENSIONS)
        )
    )
    ignore_dirs: list[str] = field(
        default_factory=lambda: list(
            _get_default("crawler", "ignore_dirs", DEFAULT_IGNORE_DIRS)
        )
    )
    max_depth: int = field(default_factory=lambda: _get_default("crawler", "max_depth", 20))
    max_file_size_bytes: int = field(
        default_factory=lambda: _get_default("crawler", "max_file_size_bytes", 5 * _MB)
    )
    max_document_size_bytes: int = field(
        default_factory=lambda: _get_default("crawler", "max_document_size_bytes", 20 * _MB)
    )
    document_extensions: list[str] = field(
        default_factory=lambda: list(
            _get_default("crawler", "document_extensions", [".pdf", ".docx"])
        )
    )
    progress_interval: int = field(
        default_factory=lambda: _get_default("crawler", "progress_interval", 100)
    )
    extraction_workers: int = field(
        default_factory=lambda: _get_default("crawler", "extraction_workers", 4)
    )
    max_pending_extractions: int = field(
        default_factory=lambda: _get_default("crawler", "max_pending_extractions", 16)
    )
    follow_symlinks: bool = field(
        default_factory=lambda: _get_default("crawler", "follow_symlinks", False)
    )
    prune_missing: bool = field(
        default_factory=lambda: _get_default("crawler", "prune_missing", False)
    )
    scan_on_startup: bool = field(
        default_factory=lambda: _get_default("crawler", "scan_on_startup", True)
    )

    def size_ceiling_for(self, extension: str) -> int:
        """Return the maximum indexable size in bytes for an extension."""
        documents = {normalize_extension(ext) for ext in self.document_extensions}
        if normalize_extension(extension) in documents:
            return self.max_document_size_bytes
        return self.max_file_size_bytes


@dataclass
class StorageConfig:
    """Configuration for the SQLite metadata store."""

    db_path: str = field(
        default_factory=lambda: _get_default("storage", "db_path", ".docscope/docscope.db")
    )


@dataclass
class SearchConfig:
    """Configuration for the search service."""

    result_limit: int = field(default_factory=lambda: _get_default("search", "result_limit", 500))
    snippet_tokens: int = field(
        default_factory=lambda: _get_default("search", "snippet_tokens", 64)
    )


@dataclass
class ServerConfig:
    """Configuration for the HTTP server."""

    host: str = field(default_factory=lambda: _get_default("server", "host", "127.0.0.1"))
    port: int = field(default_factory=lambda: _get_default("server", "port", 8000))
    default_owner_id: int = field(
        default_factory=lambda: _get_default("server", "default_owner_id", 1)
    )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "INFO"))
    format: str = field(
        default_factory=lambda: _get_default(
            "logging", "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )


@dataclass
class DocscopeConfig:
    """Main configuration class for docscope."""

    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "DocscopeConfig":
        """
        Load configuration from a YAML or JSON file.

        Args:
            path: Path to the configuration file (.yaml, .yml, or .json)

        Returns:
            DocscopeConfig instance with loaded values

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "DocscopeConfig":
        """Create DocscopeConfig from a dictionary."""
        config = cls()

        if "crawler" in data:
            config.crawler = CrawlerConfig(**data["crawler"])
        if "storage" in data:
            config.storage = StorageConfig(**data["storage"])
        if "search" in data:
            config.search = SearchConfig(**data["search"])
        if "server" in data:
            config.server = ServerConfig(**data["server"])
        if "logging" in data:
            config.logging = LoggingConfig(**data["logging"])

        return config

    def apply_env_overrides(self) -> "DocscopeConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: DOCSCOPE_<SECTION>_<KEY>
        Examples:
            - DOCSCOPE_STORAGE_DB_PATH
            - DOCSCOPE_CRAWLER_MAX_DEPTH
            - DOCSCOPE_CRAWLER_ALLOWED_EXTENSIONS (comma separated)
            - DOCSCOPE_LOGGING_LEVEL

        Returns:
            Self with environment overrides applied
        """
        env_mappings = {
            # Crawler config
            "DOCSCOPE_CRAWLER_ALLOWED_EXTENSIONS": ("crawler", "allowed_extensions", _parse_list),
            "DOCSCOPE_CRAWLER_IGNORE_DIRS": ("crawler", "ignore_dirs", _parse_list),
            "DOCSCOPE_CRAWLER_MAX_DEPTH": ("crawler", "max_depth", int),
            "DOCSCOPE_CRAWLER_MAX_FILE_SIZE_BYTES": ("crawler", "max_file_size_bytes", int),
            "DOCSCOPE_CRAWLER_MAX_DOCUMENT_SIZE_BYTES": (
                "crawler", "max_document_size_bytes", int
            ),
            "DOCSCOPE_CRAWLER_PROGRESS_INTERVAL": ("crawler", "progress_interval", int),
            "DOCSCOPE_CRAWLER_EXTRACTION_WORKERS": ("crawler", "extraction_workers", int),
            "DOCSCOPE_CRAWLER_MAX_PENDING_EXTRACTIONS": (
                "crawler", "max_pending_extractions", int
            ),
            "DOCSCOPE_CRAWLER_FOLLOW_SYMLINKS": ("crawler", "follow_symlinks", _parse_bool),
            "DOCSCOPE_CRAWLER_PRUNE_MISSING": ("crawler", "prune_missing", _parse_bool),
            "DOCSCOPE_CRAWLER_SCAN_ON_STARTUP": ("crawler", "scan_on_startup", _parse_bool),
            # Storage config
            "DOCSCOPE_STORAGE_DB_PATH": ("storage", "db_path", str),
            # Search config
            "DOCSCOPE_SEARCH_RESULT_LIMIT": ("search", "result_limit", int),
            "DOCSCOPE_SEARCH_SNIPPET_TOKENS": ("search", "snippet_tokens", int),
            # Server config
            "DOCSCOPE_SERVER_HOST": ("server", "host", str),
            "DOCSCOPE_SERVER_PORT": ("server", "port", int),
            "DOCSCOPE_SERVER_DEFAULT_OWNER_ID": ("server", "default_owner_id", int),
            # Logging config
            "DOCSCOPE_LOGGING_LEVEL": ("logging", "level", str),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_obj = getattr(self, section)
                setattr(section_obj, key, converter(value))

        return self

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Serialize configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        """Serialize configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def save(self, path: Path | str) -> None:
        """
        Save configuration to a file.

        Args:
            path: Path to save the configuration (.yaml, .yml, or .json)

        Raises:
            ValueError: If the file format is unsupported
        """
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            content = self.to_yaml()
        elif path.suffix == ".json":
            content = self.to_json()
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _parse_bool(value: str) -> bool:
    """Parse a string to boolean."""
    return value.lower() in ("true", "1", "yes", "on")


def _parse_list(value: str) -> list[str]:
    """Parse a comma separated string into a list of trimmed items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def configure_logging(config: LoggingConfig) -> None:
    """Configure the root logger from a LoggingConfig section."""
    logging.basicConfig(level=config.level.upper(), format=config.format)


def load_config(
    config_path: Optional[Path | str] = None, apply_env: bool = True
) -> DocscopeConfig:
    """
    Load configuration with optional environment variable overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        DocscopeConfig instance
    """
    if config_path:
        config = DocscopeConfig.from_file(config_path)
    else:
        config = DocscopeConfig()

    if apply_env:
        config.apply_env_overrides()

    return config
