"""In-memory directory tree mirrored from the descriptor's ``Directory`` elements."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wxsync import fs as fspath
from wxsync.errors import DescriptorError
from wxsync.ids import IdRegistry

if TYPE_CHECKING:
    import xml.etree.ElementTree as ET

    from wxsync.config import Settings
    from wxsync.descriptor import Descriptor
    from wxsync.fs import LocalFileSystem

logger = logging.getLogger(__name__)


@dataclass
class DirectoryEntry:
    """One directory of the tree.

    ``parent_id`` and ``children`` hold ids into the tree's registry rather
    than entries, so the tree has a single owner.
    """

    dir_id: str
    name: str
    element: ET.Element
    parent_id: str | None = None
    source_dir: str | None = None
    children: dict[str, str] = field(default_factory=dict)


@dataclass
class DirectoryTree:
    """Arena of directory entries keyed by id, in registration order."""

    registry: IdRegistry[DirectoryEntry]
    removed: list[str] = field(default_factory=list)

    def get(self, dir_id: str) -> DirectoryEntry | None:
        return self.registry.get(dir_id)

    def children_of(self, entry: DirectoryEntry) -> list[DirectoryEntry]:
        result: list[DirectoryEntry] = []
        for child_id in entry.children.values():
            child = self.registry.get(child_id)
            if child is not None:
                result.append(child)
        return result

    def mapped_entries(self) -> list[DirectoryEntry]:
        """Entries matched to a directory on disk, in registration order."""
        return [e for e in self.registry.values() if e.source_dir is not None]

    def attach(self, parent: DirectoryEntry, entry: DirectoryEntry) -> None:
        """Register *entry* and link it under *parent*."""
        self.registry.register(entry.dir_id, entry)
        entry.parent_id = parent.dir_id
        parent.children[entry.name] = entry.dir_id


class _TreeBuilder:
    def __init__(
        self,
        descriptor: Descriptor,
        settings: Settings,
        fs: LocalFileSystem,
        tree: DirectoryTree,
    ) -> None:
        self.descriptor = descriptor
        self.settings = settings
        self.fs = fs
        self.tree = tree

    def visit(self, element: ET.Element, parent: DirectoryEntry | None) -> DirectoryEntry | None:
        entry = DirectoryEntry(
            dir_id=element.get("Id", ""),
            name=element.get("Name", ""),
            element=element,
            parent_id=parent.dir_id if parent is not None else None,
        )

        if parent is not None and parent.source_dir is not None:
            candidate = fspath.join(parent.source_dir, entry.name)
            if not self.fs.is_dir(candidate):
                # Descendants go with it and are never registered.
                self.descriptor.remove(element)
                self.tree.removed.append(entry.dir_id)
                logger.info("Dropping directory %s: %s does not exist", entry.dir_id, candidate)
                return None
            entry.source_dir = candidate
        elif entry.dir_id == self.settings.destination_id:
            entry.source_dir = self.settings.source_dir

        self.tree.registry.register(entry.dir_id, entry)

        for child_el in self.descriptor.child_directories(element):
            name = child_el.get("Name", "")
            duplicate = name in entry.children
            if duplicate and entry.source_dir is not None:
                # Both would map to the same directory on disk.
                raise DescriptorError(
                    f"Directory '{entry.dir_id}' declares '{name}' more than once "
                    f"('{entry.children[name]}' and '{child_el.get('Id', '')}')"
                )
            child = self.visit(child_el, entry)
            if child is not None and not duplicate:
                entry.children[name] = child.dir_id
        return entry


def build_tree(
    descriptor: Descriptor,
    settings: Settings,
    fs: LocalFileSystem,
    registry: IdRegistry[DirectoryEntry] | None = None,
) -> DirectoryTree:
    """Mirror the descriptor's directories, dropping branches missing on disk.

    Every ``Directory`` under a directory that is mapped to disk must exist
    as a subdirectory there; otherwise its element is removed and its whole
    subtree discarded.  The entry whose id is ``settings.destination_id``
    (and whose parent is unmapped) is mapped to ``settings.source_dir``.

    Raises :class:`~wxsync.errors.DuplicateIdError` if two surviving
    directories share an id, and :class:`~wxsync.errors.DescriptorError` if
    a mapped directory declares the same child name twice.
    """
    if registry is None:
        registry = IdRegistry()
    registry.reserve(descriptor.iter_ids())
    tree = DirectoryTree(registry=registry)
    builder = _TreeBuilder(descriptor, settings, fs, tree)

    for element in descriptor.root_directories():
        builder.visit(element, None)

    logger.debug(
        "Built directory tree: %d directories, %d dropped", len(registry), len(tree.removed)
    )
    return tree
