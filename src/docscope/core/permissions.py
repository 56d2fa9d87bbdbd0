"""
API key permissions.

Permissions are stored as a comma separated list of tokens
("*", "files:read", "tags:read", "tag:<id>") and parsed into
typed values here.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union


class PermissionParseError(ValueError):
    """Raised when a permission token cannot be parsed."""

    pass


@dataclass(frozen=True)
class AllPermission:
    """Unrestricted access."""


@dataclass(frozen=True)
class FilesReadPermission:
    """Read access to files and their text."""


@dataclass(frozen=True)
class TagsReadPermission:
    """Read access to tags."""


@dataclass(frozen=True)
class TagPermission:
    """Access restricted to files carrying a tag."""

    tag_id: int


Permission = Union[AllPermission, FilesReadPermission, TagsReadPermission, TagPermission]

ALL = AllPermission()
FILES_READ = FilesReadPermission()
TAGS_READ = TagsReadPermission()

_FIXED_TOKENS: dict[str, Permission] = {
    "*": ALL,
    "all": ALL,
    "files:read": FILES_READ,
    "tags:read": TAGS_READ,
}


def parse_permission(token: str) -> Permission:
    """Parse a single permission token."""
    value = token.strip()
    fixed = _FIXED_TOKENS.get(value.lower())
    if fixed is not None:
        return fixed

    prefix, sep, raw_id = value.partition(":")
    if sep and prefix.lower() == "tag":
        try:
            tag_id = int(raw_id)
        except ValueError:
            raise PermissionParseError(f"Invalid tag id in permission: {token!r}") from None
        if tag_id < 0:
            raise PermissionParseError(f"Invalid tag id in permission: {token!r}")
        return TagPermission(tag_id)

    raise PermissionParseError(f"Unknown permission: {token!r}")


def format_permission(permission: Permission) -> str:
    """Serialize a permission to its token form."""
    if isinstance(permission, AllPermission):
        return "*"
    if isinstance(permission, FilesReadPermission):
        return "files:read"
    if isinstance(permission, TagsReadPermission):
        return "tags:read"
    if isinstance(permission, TagPermission):
        return f"tag:{permission.tag_id}"
    raise TypeError(f"Not a permission: {permission!r}")


def parse_permissions(value: Optional[str]) -> list[Permission]:
    """Parse a comma separated permission string. Blank items are ignored."""
    if not value:
        return []
    return [parse_permission(token) for token in value.split(",") if token.strip()]


def format_permissions(permissions: Iterable[Permission]) -> str:
    """Serialize permissions to a comma separated string."""
    return ",".join(format_permission(p) for p in permissions)


def allowed_tag_ids(permissions: Iterable[Permission]) -> Optional[set[int]]:
    """
    Return the tag ids a key is restricted to.

    None means the key is not restricted by tag (it has no tag
    permissions, or it holds the unrestricted permission).
    """
    perms = list(permissions)
    if any(isinstance(p, AllPermission) for p in perms):
        return None
    tag_ids = {p.tag_id for p in perms if isinstance(p, TagPermission)}
    return tag_ids or None


def can_read_files(permissions: Iterable[Permission]) -> bool:
    """Whether the permissions grant access to file content."""
    return any(
        isinstance(p, (AllPermission, FilesReadPermission, TagPermission))
        for p in permissions
    )
