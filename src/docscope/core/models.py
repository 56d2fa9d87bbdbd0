"""
Domain records shared by the crawler, stores and services.
"""

from dataclasses import dataclass, field
from typing import Optional

from docscope.core.permissions import Permission


@dataclass
class Scope:
    """A registered root directory to be crawled."""

    id: int
    owner_id: int
    root_path: str
    display_name: str
    created_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "root_path": self.root_path,
            "display_name": self.display_name,
            "created_at": self.created_at,
        }


@dataclass
class FileStat:
    """The subset of os.stat_result the metadata store records."""

    size: int
    mtime: float


@dataclass
class FileRecord:
    """Persisted metadata for one discovered file."""

    id: int
    scope_id: int
    path: str
    name: str
    extension: str
    size_bytes: int
    mime_type: Optional[str]
    updated_at: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scope_id": self.scope_id,
            "path": self.path,
            "name": self.name,
            "extension": self.extension,
            "size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
            "updated_at": self.updated_at,
        }


@dataclass
class SearchSettings:
    """Per-owner search settings. None means the configured default allow-list."""

    allowed_extensions: Optional[list[str]] = None


@dataclass
class SearchCriteria:
    """Filters for a search. All-empty criteria match nothing."""

    filename: str = ""
    content: str = ""
    directory: str = ""

    def is_empty(self) -> bool:
        return not (
            self.filename.strip() or self.content.strip() or self.directory.strip()
        )


@dataclass
class SearchHit:
    """A file matched by a search, with an optional content snippet."""

    file: FileRecord
    snippet: Optional[str] = None

    def to_dict(self) -> dict:
        data = self.file.to_dict()
        data["snippet"] = self.snippet
        return data


@dataclass
class PrivacyProfile:
    """A named, ordered collection of redaction rules."""

    id: int
    owner_id: int
    name: str


@dataclass
class Tag:
    id: int
    owner_id: int
    name: str
    color: Optional[str] = None


@dataclass
class ApiKey:
    """An API key with its permissions and ordered redaction profiles."""

    id: int
    owner_id: int
    name: str
    key: str
    permissions: list[Permission] = field(default_factory=list)
    profile_ids: list[int] = field(default_factory=list)
