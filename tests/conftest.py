"""Shared test fixtures for wxsync."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from wxsync.descriptor import WIX3_NAMESPACE as WIX_NS

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


PLACEHOLDER_COMPONENT = (
    '<Component Id="Placeholder" Guid="*" Directory="INSTALLDIR" Win64="yes">'
    '<File Id="PlaceholderFile" KeyPath="yes" Source="placeholder.txt" />'
    "</Component>"
)


def build_wxs(directories: str, components: str = PLACEHOLDER_COMPONENT) -> str:
    """Wrap directory and component markup in a WiX document."""
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<Wix xmlns="{WIX_NS}">\n'
        "  <Fragment>\n"
        f"    {directories}\n"
        "  </Fragment>\n"
        "  <Fragment>\n"
        '    <ComponentGroup Id="ProductComponents">\n'
        f"      {components}\n"
        "    </ComponentGroup>\n"
        "  </Fragment>\n"
        "</Wix>\n"
    )


@pytest.fixture()
def make_wxs() -> Callable[..., str]:
    return build_wxs


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Working directory containing an empty ``src`` source root."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "src").mkdir()
    return tmp_path
