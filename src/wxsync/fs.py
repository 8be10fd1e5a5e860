"""Filesystem primitives used by the pipeline.

Paths are kept as plain strings in the form the descriptor stores them,
relative paths being resolved against the process working directory.
"""

from __future__ import annotations

import os
from pathlib import Path

_CURRENT_DIR_PREFIX = f".{os.sep}"


def join(parent: str, name: str) -> str:
    """Join a directory path and a leaf name."""
    return os.path.join(parent, name)


def canonical_source(directory: str, name: str) -> str:
    """Return the ``Source`` value for file *name* inside *directory*.

    A single leading ``./`` is stripped so paths rooted at the working
    directory are written without it.
    """
    path = join(directory, name)
    if path.startswith(_CURRENT_DIR_PREFIX):
        path = path[len(_CURRENT_DIR_PREFIX):]
    return path


class LocalFileSystem:
    """Read-only view of the local disk.

    Listings are sorted by name so repeated runs see entries in the same
    order regardless of the platform's enumeration order.
    """

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def list_dirs(self, path: str) -> list[str]:
        """Names of the subdirectories of *path*."""
        return sorted(p.name for p in Path(path).iterdir() if p.is_dir())

    def list_files(self, path: str) -> list[str]:
        """Names of the regular files directly inside *path*."""
        return sorted(p.name for p in Path(path).iterdir() if p.is_file())
