"""
Manifest buffers and manifest path resolution.

A buffer is the in-memory view of a manifest that annotations are drawn on.
It can be closed at any time; closed buffers must not be touched.
"""

import itertools
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from .error_handling import ErrorCategory, get_error_handler

MANIFEST_NAME = "mix.exs"

_handles = itertools.count(1)


class ManifestBuffer:
    """An open manifest: its path, its lines, and its annotation namespaces."""

    def __init__(self, path: str = "", lines: Optional[List[str]] = None):
        self.handle = next(_handles)
        self.path = path
        self.lines: List[str] = list(lines or [])
        self.namespaces: Dict[str, list] = {}
        self._valid = True

    def is_valid(self) -> bool:
        return self._valid

    def close(self) -> None:
        """Close the buffer and drop everything drawn on it."""
        self._valid = False
        self.namespaces.clear()

    def __repr__(self) -> str:
        state = "open" if self._valid else "closed"
        return f"<ManifestBuffer {self.handle} {self.path or '[No Name]'} {state}>"


def open_buffer(path: Optional[Union[str, Path]] = None) -> ManifestBuffer:
    """
    Open a buffer on ``path``.

    A missing or unreadable file still yields a buffer, just an empty one,
    matching an editor that opens a new file by name.
    """
    if not path:
        return ManifestBuffer()

    path = os.path.abspath(str(path))
    lines: List[str] = []
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()
    except OSError as e:
        get_error_handler().warning(
            ErrorCategory.FILESYSTEM,
            "Could not read buffer contents",
            "buffers",
            "open_buffer",
            exception=e,
            details={"file_path": Path(path).name},
        )
    return ManifestBuffer(path, lines)


class BufferResolver:
    """Decides which manifest a check run should read."""

    manifest_name = MANIFEST_NAME

    def buffer_path(self, buffer: ManifestBuffer) -> str:
        return buffer.path

    def is_readable(self, path: str) -> bool:
        return bool(path) and os.path.isfile(path) and os.access(path, os.R_OK)

    def manifest_in(self, cwd: Optional[str]) -> Optional[str]:
        """Return the manifest next to ``cwd`` if there is a readable one."""
        if not cwd:
            return None
        candidate = os.path.join(cwd, self.manifest_name)
        if self.is_readable(candidate):
            return candidate
        return None

    def resolve_manifest_path(
        self, buffer: ManifestBuffer, cwd: Optional[str] = None
    ) -> Optional[str]:
        """
        Prefer the buffer's own file when it is a readable manifest, else
        fall back to the manifest in ``cwd`` (the process cwd by default).
        """
        path = self.buffer_path(buffer)
        if path and path.endswith(self.manifest_name) and self.is_readable(path):
            return path

        return self.manifest_in(cwd if cwd is not None else os.getcwd())
