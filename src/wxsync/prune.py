"""Removal of components that no longer match the tree or the disk."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wxsync.descriptor import Descriptor
    from wxsync.fs import LocalFileSystem
    from wxsync.tree import DirectoryTree

logger = logging.getLogger(__name__)


def prune_orphan_components(descriptor: Descriptor, tree: DirectoryTree) -> list[str]:
    """Remove components whose ``Directory`` is not a registered directory.

    Components without a ``Directory`` attribute are left alone.  Must run
    after :func:`~wxsync.tree.build_tree` so the registry only holds
    directories confirmed on disk.  Returns the ids of removed components.
    """
    removed: list[str] = []
    for component in descriptor.components():
        dir_id = component.get("Directory")
        if dir_id is None or dir_id in tree.registry:
            continue
        descriptor.remove(component)
        comp_id = component.get("Id", "")
        removed.append(comp_id)
        logger.info("Removing component %s: directory %s is gone", comp_id, dir_id)
    return removed


def prune_missing_files(descriptor: Descriptor, fs: LocalFileSystem) -> list[str]:
    """Remove every component that has a ``File`` whose source is missing.

    The whole component goes, sibling files included.  Returns the ids of
    removed components.
    """
    removed: list[str] = []
    for component in descriptor.components():
        for file_el in descriptor.files(component):
            source = file_el.get("Source", "")
            if source and fs.is_file(source):
                continue
            descriptor.remove(component)
            comp_id = component.get("Id", "")
            removed.append(comp_id)
            logger.info("Removing component %s: source %r not found", comp_id, source)
            break
    return removed
