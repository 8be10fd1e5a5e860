"""Reconciliation pipeline: build, prune, synchronise, in that order."""

from __future__ import annotations

import logging
import sys
from dataclasses import asdict, dataclass, field
from typing import IO, TYPE_CHECKING

from wxsync.descriptor import load_descriptor
from wxsync.fs import LocalFileSystem
from wxsync.prune import prune_missing_files, prune_orphan_components
from wxsync.sync import sync_directories, sync_files
from wxsync.tree import build_tree

if TYPE_CHECKING:
    from pathlib import Path

    from wxsync.config import Settings
    from wxsync.descriptor import Descriptor

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """What a run changed in the descriptor."""

    removed_directories: list[str] = field(default_factory=list)
    orphan_components: list[str] = field(default_factory=list)
    missing_file_components: list[str] = field(default_factory=list)
    added_directories: list[str] = field(default_factory=list)
    added_components: list[str] = field(default_factory=list)

    @property
    def removed_components(self) -> list[str]:
        return self.orphan_components + self.missing_file_components

    @property
    def has_changes(self) -> bool:
        return bool(
            self.removed_directories
            or self.removed_components
            or self.added_directories
            or self.added_components
        )


def result_to_dict(result: ReconcileResult) -> dict[str, object]:
    """Serialize a ReconcileResult to a JSON-compatible dict."""
    data: dict[str, object] = asdict(result)
    data["has_changes"] = result.has_changes
    return data


def reconcile(
    descriptor: Descriptor,
    settings: Settings,
    fs: LocalFileSystem | None = None,
) -> ReconcileResult:
    """Update *descriptor* in place to match ``settings.source_dir``.

    Stages run strictly in order, each relying on the state left by the
    previous one:

    1. build the directory tree, dropping branches missing on disk;
    2. remove components pointing at directories that did not survive;
    3. remove components with a missing source file;
    4. add directories found on disk under the destination directory;
    5. add components for files no component references.
    """
    if fs is None:
        fs = LocalFileSystem()
    result = ReconcileResult()

    tree = build_tree(descriptor, settings, fs)
    result.removed_directories = list(tree.removed)

    result.orphan_components = prune_orphan_components(descriptor, tree)
    result.missing_file_components = prune_missing_files(descriptor, fs)

    added_dirs = sync_directories(descriptor, tree, settings, fs)
    result.added_directories = [e.dir_id for e in added_dirs]

    result.added_components = sync_files(descriptor, tree, fs)

    logger.info(
        "Reconciled %s: -%d dirs, -%d components, +%d dirs, +%d components",
        settings.source_dir,
        len(result.removed_directories),
        len(result.removed_components),
        len(result.added_directories),
        len(result.added_components),
    )
    return result


def run(
    settings: Settings,
    *,
    input_path: Path | None = None,
    output_path: Path | None = None,
    stdin: IO[bytes] | None = None,
    stdout: IO[bytes] | None = None,
) -> ReconcileResult:
    """Read a descriptor, reconcile it and write the result.

    Reads *input_path* (or binary stdin) and writes *output_path* (or binary
    stdout).  Nothing is written unless every stage succeeds.
    """
    settings.validate()

    if input_path is not None:
        descriptor = load_descriptor(input_path)
    else:
        descriptor = load_descriptor(stdin or sys.stdin.buffer)
    result = reconcile(descriptor, settings)

    if output_path is not None:
        descriptor.write(output_path, indent=settings.indent)
    else:
        out = stdout or sys.stdout.buffer
        out.write(descriptor.to_bytes(indent=settings.indent))
        out.flush()
    return result
