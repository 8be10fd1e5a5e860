"""Bring the tree and the descriptor up to date with the source directory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wxsync import fs as fspath
from wxsync.tree import DirectoryEntry

if TYPE_CHECKING:
    from wxsync.config import Settings
    from wxsync.descriptor import Descriptor
    from wxsync.fs import LocalFileSystem
    from wxsync.tree import DirectoryTree

logger = logging.getLogger(__name__)


def sync_directories(
    descriptor: Descriptor,
    tree: DirectoryTree,
    settings: Settings,
    fs: LocalFileSystem,
) -> list[DirectoryEntry]:
    """Add entries and ``Directory`` elements for new subdirectories on disk.

    Walks down from the destination directory.  New directories get the id
    ``<destination_id><n>`` with the smallest free ``n``.  Returns the
    entries that were added, parents before children.
    """
    start = tree.get(settings.destination_id)
    if start is None or start.source_dir is None:
        logger.warning(
            "Destination directory %s not found in descriptor; source tree not synchronised",
            settings.destination_id,
        )
        return []

    added: list[DirectoryEntry] = []
    _sync_subdirectories(descriptor, tree, settings, fs, start, added)
    return added


def _sync_subdirectories(
    descriptor: Descriptor,
    tree: DirectoryTree,
    settings: Settings,
    fs: LocalFileSystem,
    parent: DirectoryEntry,
    added: list[DirectoryEntry],
) -> None:
    assert parent.source_dir is not None
    for name in fs.list_dirs(parent.source_dir):
        if name in parent.children:
            continue
        dir_id = tree.registry.allocate_directory_id(settings.destination_id)
        element = descriptor.append_directory(parent.element, dir_id, name)
        entry = DirectoryEntry(
            dir_id=dir_id,
            name=name,
            element=element,
            source_dir=fspath.join(parent.source_dir, name),
        )
        tree.attach(parent, entry)
        added.append(entry)
        logger.info("Added directory %s for %s", dir_id, entry.source_dir)

    for child in tree.children_of(parent):
        if child.source_dir is not None:
            _sync_subdirectories(descriptor, tree, settings, fs, child, added)


def _existing_sources(descriptor: Descriptor) -> dict[str, set[str]]:
    """Map directory id -> ``Source`` values of the components under it."""
    sources: dict[str, set[str]] = {}
    for component in descriptor.components():
        dir_id = component.get("Directory")
        if dir_id is None:
            continue
        bucket = sources.setdefault(dir_id, set())
        for file_el in descriptor.files(component):
            source = file_el.get("Source")
            if source is not None:
                bucket.add(source)
    return sources


def sync_files(
    descriptor: Descriptor,
    tree: DirectoryTree,
    fs: LocalFileSystem,
) -> list[str]:
    """Add a component for every file on disk that no component references.

    A file counts as referenced when a component of the same directory has
    a ``File`` whose ``Source`` equals the file's canonical path.  Returns
    the ids of the new components.
    """
    existing = _existing_sources(descriptor)
    added: list[str] = []

    for entry in tree.mapped_entries():
        assert entry.source_dir is not None
        known = existing.get(entry.dir_id, set())
        for name in fs.list_files(entry.source_dir):
            source = fspath.canonical_source(entry.source_dir, name)
            if source in known:
                continue
            component_id = tree.registry.new_component_id()
            descriptor.new_component(
                component_id=component_id,
                directory_id=entry.dir_id,
                file_id=tree.registry.new_file_id(),
                source=source,
            )
            added.append(component_id)
            logger.debug("Added component %s for %s", component_id, source)

    if added:
        logger.info("Added %d component(s)", len(added))
    return added
