"""Exceptions raised by the reconciliation pipeline."""

from __future__ import annotations


class WxsyncError(Exception):
    """Base class for fatal wxsync errors."""


class ConfigError(WxsyncError):
    """Raised when settings or command-line configuration are invalid."""


class DescriptorError(WxsyncError):
    """Raised when the input descriptor cannot be reconciled."""


class DuplicateIdError(DescriptorError):
    """Raised when two directories in the descriptor share an id."""

    def __init__(self, dir_id: str) -> None:
        super().__init__(f"Duplicate directory id '{dir_id}'")
        self.dir_id = dir_id
