"""Tests for wxsync.pipeline — end-to-end reconciliation behaviour."""

from __future__ import annotations

import io
import os
import re
from typing import TYPE_CHECKING

import pytest

from wxsync.config import Settings
from wxsync.descriptor import parse_descriptor
from wxsync.errors import ConfigError, DescriptorError, DuplicateIdError
from wxsync.pipeline import ReconcileResult, reconcile, result_to_dict, run

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from wxsync.descriptor import Descriptor

SETTINGS = Settings(source_dir="src")

_INSTALL_ONLY = '<Directory Id="INSTALLDIR" Name="App" />'


def _write(path: Path, text: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def _directory_ids(descriptor: Descriptor) -> list[str]:
    ids: list[str] = []
    stack = list(descriptor.root_directories())
    while stack:
        element = stack.pop()
        ids.append(element.get("Id", ""))
        stack.extend(descriptor.child_directories(element))
    return ids


def _file_sources(descriptor: Descriptor) -> list[str]:
    return [
        f.get("Source", "")
        for c in descriptor.components()
        for f in descriptor.files(c)
    ]


def _reconcile_text(
    text: str | bytes, settings: Settings = SETTINGS
) -> tuple[bytes, ReconcileResult]:
    descriptor = parse_descriptor(text)
    result = reconcile(descriptor, settings)
    return descriptor.to_bytes(indent=settings.indent), result


# --- scenarios ---


class TestScenarios:
    def test_fresh_descriptor_gains_tree(
        self, workspace: Path, make_wxs: Callable[..., str]
    ) -> None:
        _write(workspace / "src" / "a" / "b.txt")
        _write(workspace / "src" / "a" / "sub" / "c.txt")
        descriptor = parse_descriptor(make_wxs(_INSTALL_ONLY))

        result = reconcile(descriptor, SETTINGS)

        assert result.missing_file_components == ["Placeholder"]
        assert result.added_directories == ["INSTALLDIR0", "INSTALLDIR1"]
        install = descriptor.root_directories()[0]
        (a_dir,) = descriptor.child_directories(install)
        assert a_dir.attrib == {"Id": "INSTALLDIR0", "Name": "a"}
        (sub_dir,) = descriptor.child_directories(a_dir)
        assert sub_dir.attrib == {"Id": "INSTALLDIR1", "Name": "sub"}

        components = descriptor.components()
        assert len(components) == 2
        by_source = {
            descriptor.files(c)[0].get("Source"): c.get("Directory") for c in components
        }
        assert by_source == {
            os.path.join("src", "a", "b.txt"): "INSTALLDIR0",
            os.path.join("src", "a", "sub", "c.txt"): "INSTALLDIR1",
        }
        assert "Placeholder" not in {c.get("Id") for c in components}

    def test_directory_missing_on_disk(
        self, workspace: Path, make_wxs: Callable[..., str]
    ) -> None:
        _write(workspace / "src" / "keep.txt")
        _write(workspace / "src" / "other" / "o.txt")
        dirs = (
            '<Directory Id="INSTALLDIR" Name="App">'
            '<Directory Id="INSTALLDIR5" Name="vanished" />'
            "</Directory>"
        )
        components = (
            '<Component Id="KeepC" Directory="INSTALLDIR">'
            f'<File Id="KeepF" Source="{os.path.join("src", "keep.txt")}" /></Component>'
            '<Component Id="V1" Directory="INSTALLDIR5">'
            '<File Id="V1F" Source="src/vanished/1.txt" /></Component>'
            '<Component Id="V2" Directory="INSTALLDIR5">'
            '<File Id="V2F" Source="src/vanished/2.txt" /></Component>'
        )
        descriptor = parse_descriptor(make_wxs(dirs, components))

        result = reconcile(descriptor, SETTINGS)

        assert result.removed_directories == ["INSTALLDIR5"]
        assert result.orphan_components == ["V1", "V2"]
        assert "INSTALLDIR5" not in _directory_ids(descriptor)
        assert result.added_directories == ["INSTALLDIR0"]
        assert all(c.get("Directory") != "INSTALLDIR5" for c in descriptor.components())

    def test_new_directory_never_reuses_pruned_id(
        self, workspace: Path, make_wxs: Callable[..., str]
    ) -> None:
        for i in range(7):
            (workspace / "src" / f"d{i}").mkdir()
        dirs = (
            '<Directory Id="INSTALLDIR" Name="App">'
            '<Directory Id="INSTALLDIR5" Name="vanished" />'
            "</Directory>"
        )
        descriptor = parse_descriptor(make_wxs(dirs))
        result = reconcile(descriptor, SETTINGS)
        assert "INSTALLDIR5" not in result.added_directories
        assert result.added_directories == [
            "INSTALLDIR0", "INSTALLDIR1", "INSTALLDIR2", "INSTALLDIR3",
            "INSTALLDIR4", "INSTALLDIR6", "INSTALLDIR7",
        ]

    def test_deleted_source_removes_whole_component(
        self, workspace: Path, make_wxs: Callable[..., str]
    ) -> None:
        _write(workspace / "src" / "one.txt")
        _write(workspace / "src" / "two.txt")
        one = os.path.join("src", "one.txt")
        two = os.path.join("src", "two.txt")
        components = (
            '<Component Id="Pair" Directory="INSTALLDIR">'
            f'<File Id="P1" Source="{one}" /><File Id="P2" Source="{two}" />'
            "</Component>"
        )
        text = make_wxs(_INSTALL_ONLY, components)
        (workspace / "src" / "two.txt").unlink()

        descriptor = parse_descriptor(text)
        result = reconcile(descriptor, SETTINGS)

        assert result.missing_file_components == ["Pair"]
        assert "Pair" not in {c.get("Id") for c in descriptor.components()}
        # one.txt is still on disk and comes back as a fresh component.
        assert _file_sources(descriptor) == [one]
        assert result.added_components == [descriptor.components()[0].get("Id")]

    def test_manual_metadata_preserved(
        self, workspace: Path, make_wxs: Callable[..., str]
    ) -> None:
        _write(workspace / "src" / "app.exe")
        components = (
            '<Component Id="MainExe" Guid="{11111111-2222-3333-4444-555555555555}" '
            'Directory="INSTALLDIR">'
            f'<File Id="AppExe" Source="{os.path.join("src", "app.exe")}" KeyPath="yes" '
            'Checksum="yes" />'
            "</Component>"
        )
        out, result = _reconcile_text(make_wxs(_INSTALL_ONLY, components))
        assert not result.has_changes
        assert b'Guid="{11111111-2222-3333-4444-555555555555}"' in out
        assert b'Checksum="yes"' in out


# --- properties ---


class TestProperties:
    @pytest.fixture()
    def populated(self, workspace: Path) -> Path:
        for rel in ("readme.txt", "bin/app.exe", "bin/lib/core.dll", "docs/a.md", "docs/b.md"):
            _write(workspace / "src" / rel)
        (workspace / "src" / "empty").mkdir()
        return workspace

    def test_idempotent(self, populated: Path, make_wxs: Callable[..., str]) -> None:
        first, first_result = _reconcile_text(make_wxs(_INSTALL_ONLY))
        assert first_result.has_changes
        second, second_result = _reconcile_text(first)
        assert not second_result.has_changes
        assert second == first

    def test_complete(self, populated: Path, make_wxs: Callable[..., str]) -> None:
        descriptor = parse_descriptor(make_wxs(_INSTALL_ONLY))
        reconcile(descriptor, SETTINGS)
        expected = sorted(
            os.path.join(root, name) for root, _dirs, files in os.walk("src") for name in files
        )
        assert sorted(_file_sources(descriptor)) == expected

    def test_referential_integrity(self, populated: Path, make_wxs: Callable[..., str]) -> None:
        components = (
            '<Component Id="Stale" Directory="GONE"><File Id="SF" Source="nope" /></Component>'
        )
        descriptor = parse_descriptor(make_wxs(_INSTALL_ONLY, components))
        reconcile(descriptor, SETTINGS)
        dir_ids = set(_directory_ids(descriptor))
        assert all(c.get("Directory") in dir_ids for c in descriptor.components())

    def test_ids_unique(self, populated: Path, make_wxs: Callable[..., str]) -> None:
        out, _ = _reconcile_text(make_wxs(_INSTALL_ONLY))
        ids = re.findall(rb' Id="([^"]+)"', out)
        assert len(ids) == len(set(ids))

    def test_new_ids_follow_scheme(self, populated: Path, make_wxs: Callable[..., str]) -> None:
        descriptor = parse_descriptor(make_wxs(_INSTALL_ONLY))
        reconcile(descriptor, SETTINGS)
        for component in descriptor.components():
            assert re.fullmatch(r"C[0-9a-f]{32}", component.get("Id", ""))
            for file_el in descriptor.files(component):
                assert re.fullmatch(r"F[0-9a-f]{32}", file_el.get("Id", ""))


# --- errors ---


class TestErrors:
    def test_duplicate_directory_id(self, workspace: Path, make_wxs: Callable[..., str]) -> None:
        dirs = '<Directory Id="INSTALLDIR" Name="App" /><Directory Id="INSTALLDIR" Name="B" />'
        with pytest.raises(DuplicateIdError):
            reconcile(parse_descriptor(make_wxs(dirs)), SETTINGS)

    def test_repeated_child_name_rejected(
        self, workspace: Path, make_wxs: Callable[..., str]
    ) -> None:
        _write(workspace / "src" / "a" / "x.txt")
        dirs = (
            '<Directory Id="INSTALLDIR" Name="App">'
            '<Directory Id="D1" Name="a" /><Directory Id="D2" Name="a" />'
            "</Directory>"
        )
        dst = workspace / "out.wxs"
        stdin = io.BytesIO(make_wxs(dirs).encode("utf-8"))
        with pytest.raises(DescriptorError, match="more than once"):
            run(SETTINGS, stdin=stdin, output_path=dst)
        assert not dst.exists()

    def test_drift_is_not_an_error(self, workspace: Path, make_wxs: Callable[..., str]) -> None:
        components = (
            '<Component Id="C" Directory="NOWHERE"><File Id="F" Source="missing" /></Component>'
        )
        result = reconcile(parse_descriptor(make_wxs(_INSTALL_ONLY, components)), SETTINGS)
        assert result.orphan_components == ["C"]


# --- run ---


class TestRun:
    def test_file_to_file(self, workspace: Path, make_wxs: Callable[..., str]) -> None:
        _write(workspace / "src" / "a.txt")
        src = workspace / "in.wxs"
        dst = workspace / "out.wxs"
        src.write_text(make_wxs(_INSTALL_ONLY))

        result = run(SETTINGS, input_path=src, output_path=dst)

        assert len(result.added_components) == 1
        assert os.path.join("src", "a.txt").encode() in dst.read_bytes()

    def test_streams(self, workspace: Path, make_wxs: Callable[..., str]) -> None:
        _write(workspace / "src" / "a.txt")
        stdin = io.BytesIO(make_wxs(_INSTALL_ONLY).encode("utf-8"))
        stdout = io.BytesIO()
        run(SETTINGS, stdin=stdin, stdout=stdout)
        assert stdout.getvalue().startswith(b"<?xml")

    def test_missing_source_checked_first(self, workspace: Path) -> None:
        dst = workspace / "out.wxs"
        with pytest.raises(ConfigError):
            run(Settings(source_dir="nope"), stdin=io.BytesIO(b"not xml"), output_path=dst)
        assert not dst.exists()

    def test_no_output_on_failure(self, workspace: Path, make_wxs: Callable[..., str]) -> None:
        dst = workspace / "out.wxs"
        dst.write_text("previous")
        stdin = io.BytesIO(make_wxs(_INSTALL_ONLY, "").encode("utf-8"))
        with pytest.raises(DescriptorError):
            run(SETTINGS, stdin=stdin, output_path=dst)
        assert dst.read_text() == "previous"


class TestResultToDict:
    def test_fields(self) -> None:
        result = ReconcileResult(added_components=["C1"], orphan_components=["X"])
        data = result_to_dict(result)
        assert data["added_components"] == ["C1"]
        assert data["orphan_components"] == ["X"]
        assert data["has_changes"] is True
        assert result.removed_components == ["X"]

    def test_empty(self) -> None:
        assert result_to_dict(ReconcileResult())["has_changes"] is False
