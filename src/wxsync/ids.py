"""Id registry and allocator for one reconciliation run."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Generic, TypeVar

from wxsync.errors import DuplicateIdError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMPONENT_PREFIX = "C"
FILE_PREFIX = "F"


class IdRegistry(Generic[T]):
    """Directory ids registered during a run, plus ids that must not be handed out.

    Registered ids map to the live directory entries in insertion order.
    Reserved ids are every id the input document already used (including
    directories later pruned), so newly allocated ids never collide with
    or recycle them.
    """

    def __init__(self, reserved: Iterable[str] = ()) -> None:
        self._entries: dict[str, T] = {}
        self._reserved: set[str] = set(reserved)

    def __contains__(self, dir_id: object) -> bool:
        return dir_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, dir_id: str) -> T | None:
        return self._entries.get(dir_id)

    def values(self) -> list[T]:
        """Registered entries in insertion order."""
        return list(self._entries.values())

    def register(self, dir_id: str, entry: T) -> None:
        if dir_id in self._entries:
            raise DuplicateIdError(dir_id)
        self._entries[dir_id] = entry
        self._reserved.add(dir_id)

    def reserve(self, ids: Iterable[str]) -> None:
        self._reserved.update(ids)

    def is_taken(self, any_id: str) -> bool:
        return any_id in self._entries or any_id in self._reserved

    def allocate_directory_id(self, prefix: str) -> str:
        """Return ``prefix`` followed by the smallest free non-negative integer."""
        n = 0
        while self.is_taken(f"{prefix}{n}"):
            n += 1
        return f"{prefix}{n}"

    def new_component_id(self) -> str:
        return self._unique_token(COMPONENT_PREFIX)

    def new_file_id(self) -> str:
        return self._unique_token(FILE_PREFIX)

    def _unique_token(self, prefix: str) -> str:
        # 32 hex digits; retried on the off chance of a clash.
        while True:
            candidate = prefix + uuid.uuid4().hex
            if not self.is_taken(candidate):
                self._reserved.add(candidate)
                return candidate
            logger.debug("Regenerating colliding id %s", candidate)
