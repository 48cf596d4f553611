"""Tests for mise binary resolution (locator.py).

All candidates live under ``tmp_path``; the real PATH is never consulted.
"""

import os
import stat
from unittest.mock import patch

import pytest

from misekit.errors import MiseNotFoundError
from misekit.locator import MiseLocator


def _make_binary(path, executable=True):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n")
    mode = stat.S_IRUSR | stat.S_IWUSR
    if executable:
        mode |= stat.S_IXUSR
    path.chmod(mode)
    return path


class TestResolve:
    def test_override_wins(self, tmp_path):
        override = _make_binary(tmp_path / "custom" / "mise")
        on_path = _make_binary(tmp_path / "bin" / "mise")
        locator = MiseLocator(
            {"MISE_BIN": str(override), "PATH": str(on_path.parent)}, locations=[]
        )
        assert locator.resolve() == str(override)

    def test_non_executable_override_falls_through(self, tmp_path):
        override = _make_binary(tmp_path / "custom" / "mise", executable=False)
        on_path = _make_binary(tmp_path / "bin" / "mise")
        locator = MiseLocator(
            {"MISE_BIN": str(override), "PATH": str(on_path.parent)}, locations=[]
        )
        assert locator.resolve() == str(on_path)

    def test_found_on_path(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        binary = _make_binary(tmp_path / "bin" / "mise")
        path = os.pathsep.join([str(empty), "", str(binary.parent)])
        locator = MiseLocator({"PATH": path}, locations=[])
        assert locator.resolve() == str(binary)

    def test_falls_back_to_well_known_location(self, tmp_path):
        binary = _make_binary(tmp_path / "opt" / "mise")
        locator = MiseLocator(
            {"PATH": ""}, locations=[str(tmp_path / "missing" / "mise"), str(binary)]
        )
        assert locator.resolve() == str(binary)

    def test_expands_home_in_locations(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        binary = _make_binary(tmp_path / ".local" / "bin" / "mise")
        locator = MiseLocator({"PATH": ""}, locations=["~/.local/bin/mise"])
        assert locator.resolve() == str(binary)

    def test_directory_named_mise_is_skipped(self, tmp_path):
        (tmp_path / "bin" / "mise").mkdir(parents=True)
        locator = MiseLocator({"PATH": str(tmp_path / "bin")}, locations=[])
        with pytest.raises(MiseNotFoundError):
            locator.resolve()

    def test_not_found_raises_with_hint(self, tmp_path):
        locator = MiseLocator({"PATH": str(tmp_path)}, locations=[])
        with pytest.raises(MiseNotFoundError, match="Unable to locate") as exc_info:
            locator.resolve()
        assert "MISE_BIN" in exc_info.value.hint

    def test_windows_extensions(self, tmp_path):
        binary = tmp_path / "bin" / "mise.cmd"
        binary.parent.mkdir()
        binary.write_text("@echo off\n")
        with patch("misekit.locator._is_windows", return_value=True):
            locator = MiseLocator({"PATH": str(binary.parent)}, locations=[])
            assert locator.resolve() == str(binary)

    def test_no_extensions_off_windows(self, tmp_path):
        _make_binary(tmp_path / "bin" / "mise.exe")
        with patch("misekit.locator._is_windows", return_value=False):
            locator = MiseLocator({"PATH": str(tmp_path / "bin")}, locations=[])
            with pytest.raises(MiseNotFoundError):
                locator.resolve()


class TestCaching:
    def test_result_is_cached(self, tmp_path):
        binary = _make_binary(tmp_path / "bin" / "mise")
        locator = MiseLocator({"PATH": str(binary.parent)}, locations=[])
        first = locator.resolve()
        binary.unlink()
        assert locator.resolve() == first
        assert locator.cached_path == first

    def test_clear_forces_new_search(self, tmp_path):
        binary = _make_binary(tmp_path / "bin" / "mise")
        locator = MiseLocator({"PATH": str(binary.parent)}, locations=[])
        locator.resolve()
        binary.unlink()
        locator.clear()
        with pytest.raises(MiseNotFoundError):
            locator.resolve()


class TestCandidates:
    def test_order_and_dedup(self):
        locator = MiseLocator(
            {"MISE_BIN": "/usr/bin/mise"}, locations=["/usr/bin/mise", "/opt/mise"]
        )
        assert locator.candidates() == ["/usr/bin/mise", "mise", "/opt/mise"]

    def test_empty_override_ignored(self):
        locator = MiseLocator({"MISE_BIN": ""}, locations=["/opt/mise"])
        assert locator.candidates() == ["mise", "/opt/mise"]
