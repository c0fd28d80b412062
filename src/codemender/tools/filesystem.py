"""
Filesystem tools exposed to the model.

Every tool returns a dict.  Failures are reported as ``{"error": True, "message": ...}`` instead of
raising, so the conversation can carry on and the model can react to them.
"""

import logging
import os
import stat
from typing import (
    Any,
    Dict,
    Iterator,
    List,
)

from codemender.tools import register_tool

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx", ".html", ".css"})
"""Only files with one of these extensions are listed."""

EXCLUDED_NAMES = ("node_modules", "dist", "build")
"""Any entry whose full path contains one of these strings is skipped, subtree included."""


def _error(exc: Exception) -> Dict[str, Any]:
    return {"error": True, "message": str(exc)}


def _is_excluded(path: str) -> bool:
    # Plain substring test on the whole path, so "/x/rebuild/a.js" is skipped as well.
    return any(name in path for name in EXCLUDED_NAMES)


def _entries(directory: str) -> Iterator[str]:
    try:
        names = os.listdir(directory)
    except OSError as exc:
        logger.debug("Skipping unreadable directory %s: %s", directory, exc)
        return iter(())
    return (os.path.join(directory, name) for name in names)


def scan_source_files(directory: str) -> List[str]:
    """
    Walk *directory* depth-first and return the source files below it.

    The walk uses an explicit stack of directory iterators, so a subdirectory is fully visited
    before the entries that follow it in its parent's listing, exactly as a recursive walk would.
    Entries are taken in ``os.listdir`` order and never sorted.  Unreadable directories and entries
    that cannot be stat'ed are skipped.
    """
    files: List[str] = []
    stack = [_entries(os.path.abspath(directory))]
    while stack:
        full_path = next(stack[-1], None)
        if full_path is None:
            stack.pop()
            continue
        if _is_excluded(full_path):
            continue
        try:
            mode = os.stat(full_path).st_mode
        except OSError:
            continue
        if stat.S_ISDIR(mode):
            stack.append(_entries(full_path))
        elif os.path.splitext(full_path)[1] in SOURCE_EXTENSIONS:
            files.append(full_path)
    return files


@register_tool("list_files")
def list_files(directory: str) -> Dict[str, Any]:
    """List all project source files."""
    files = scan_source_files(directory)
    logger.debug("list_files(%s) found %d files", directory, len(files))
    return {"files": files}


@register_tool("read_file")
def read_file(file_path: str) -> Dict[str, Any]:
    """Read file content."""
    if not isinstance(file_path, str):
        return _error(TypeError(f"file_path must be a string, not {type(file_path).__name__}"))
    try:
        with open(file_path, "r", encoding="utf-8", newline="") as f:
            return {"content": f.read()}
    except (OSError, UnicodeDecodeError) as exc:
        return _error(exc)


@register_tool("write_file")
def write_file(file_path: str, content: str) -> Dict[str, Any]:
    """Write updated file content, replacing whatever the file held before."""
    for arg_name, value in (("file_path", file_path), ("content", content)):
        if not isinstance(value, str):
            return _error(TypeError(f"{arg_name} must be a string, not {type(value).__name__}"))
    # Encode before opening: the file is only truncated once the new bytes are known.
    try:
        data = content.encode("utf-8")
    except UnicodeEncodeError as exc:
        return _error(exc)
    try:
        with open(file_path, "wb") as f:
            f.write(data)
    except OSError as exc:
        return _error(exc)
    return {"success": True}
