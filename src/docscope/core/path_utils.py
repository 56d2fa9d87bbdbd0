"""
Path validation utilities for docscope.

Provides scope root validation, system directory detection and
extension normalization used by the crawler, HTTP and CLI layers.
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class PathValidationResult:
    """Result of path validation.

    Attributes:
        valid: True if the path can be registered as a scope root.
        error_message: Human-readable error message if validation failed.
    """
    valid: bool
    error_message: Optional[str] = None


# POSIX system directories that should not be crawled
POSIX_SYSTEM_DIRS = frozenset([
    "/etc",
    "/var",
    "/usr",
    "/bin",
    "/sbin",
    "/proc",
    "/sys",
    "/dev",
    "/boot",
    "/lib",
    "/lib64",
])

# Windows system directory names (case-insensitive)
WINDOWS_SYSTEM_DIRS = frozenset([
    "windows",
    "program files",
    "program files (x86)",
    "programdata",
    "system32",
    "syswow64",
])


def is_system_directory(path: Path) -> bool:
    """
    Check if a path is a protected system directory.

    Platform-aware: checks POSIX paths on Unix-like systems,
    Windows paths on Windows.
    """
    try:
        resolved = path.resolve()
        path_str = str(resolved)

        if sys.platform == "win32":
            return _is_windows_system_directory(resolved)
        return _is_posix_system_directory(path_str)
    except (OSError, ValueError):
        return False


def _is_posix_system_directory(path_str: str) -> bool:
    """Check if path is under a POSIX system directory."""
    for sys_dir in POSIX_SYSTEM_DIRS:
        if path_str == sys_dir or path_str.startswith(sys_dir + "/"):
            return True
    return False


def _is_windows_system_directory(resolved: Path) -> bool:
    """Check if path is under a Windows system directory."""
    parts_lower = [p.lower() for p in resolved.parts]
    return any(part in WINDOWS_SYSTEM_DIRS for part in parts_lower)


def validate_scope_path(path: str | Path | None) -> PathValidationResult:
    """
    Validate that a path can be registered as a scope root.

    Performs the following checks:
    1. Path is given
    2. Path exists
    3. Path is a directory
    4. Path is not a system directory
    """
    if path is None or (isinstance(path, str) and not path.strip()):
        return PathValidationResult(valid=False, error_message="Path is required")

    try:
        p = Path(path)

        if not p.exists():
            return PathValidationResult(
                valid=False,
                error_message=f"Path '{path}' does not exist"
            )

        if not p.is_dir():
            return PathValidationResult(
                valid=False,
                error_message=f"Path '{path}' is not a directory"
            )

        if is_system_directory(p):
            return PathValidationResult(
                valid=False,
                error_message="Registering system directories is forbidden"
            )

        return PathValidationResult(valid=True)

    except (OSError, ValueError) as e:
        return PathValidationResult(
            valid=False,
            error_message=f"Invalid path '{path}': {e}"
        )


def normalize_extension(extension: str) -> str:
    """Lowercase an extension and make sure it starts with a dot."""
    ext = extension.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def file_extension(path: str | Path) -> str:
    """Return the lowercased extension of a path, including the dot."""
    return Path(path).suffix.lower()
