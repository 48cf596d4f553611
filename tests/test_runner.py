"""Tests for the command runner (runner.py).

``subprocess.run`` is patched at the module boundary.
"""

import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from misekit.errors import MiseCommandError, MiseOutputTooLargeError
from misekit.runner import EXTRA_PATHS, MiseRunner


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def locator():
    fake = MagicMock()
    fake.resolve.return_value = "/fake/bin/mise"
    return fake


@pytest.fixture
def mise_runner(locator):
    return MiseRunner(locator=locator, environ={"PATH": "/home/me/bin", "HOME": "/home/me"})


class TestEnvironment:
    def test_overlay_applied(self, mise_runner):
        env = mise_runner.build_env()
        assert env["MISE_YES"] == "1"
        assert env["MISE_NO_COLOR"] == "1"
        assert env["CI"] == "1"
        assert env["MISE_SKIP_VERSION_CHECK"] == "1"
        assert env["SHELL"] == "/bin/bash"
        assert env["HOME"] == "/home/me"

    def test_path_prepends_install_dirs(self, mise_runner):
        env = mise_runner.build_env()
        parts = env["PATH"].split(os.pathsep)
        assert parts[: len(EXTRA_PATHS)] == EXTRA_PATHS
        assert parts[-1] == "/home/me/bin"

    def test_inherited_defaults_are_kept(self, locator):
        mise_runner = MiseRunner(
            locator=locator,
            environ={"CI": "0", "MISE_SKIP_VERSION_CHECK": "0", "SHELL": "/bin/zsh"},
        )
        env = mise_runner.build_env()
        assert env["CI"] == "0"
        assert env["MISE_SKIP_VERSION_CHECK"] == "0"
        assert env["SHELL"] == "/bin/zsh"

    def test_empty_defaults_kept_but_empty_shell_replaced(self, locator):
        mise_runner = MiseRunner(
            locator=locator,
            environ={"CI": "", "MISE_SKIP_VERSION_CHECK": "", "SHELL": ""},
        )
        env = mise_runner.build_env()
        assert env["CI"] == ""
        assert env["MISE_SKIP_VERSION_CHECK"] == ""
        assert env["SHELL"] == "/bin/bash"

    def test_forced_values_override_inherited(self, locator):
        mise_runner = MiseRunner(locator=locator, environ={"MISE_YES": "0"})
        assert mise_runner.build_env()["MISE_YES"] == "1"

    def test_caller_overrides_win(self, mise_runner):
        env = mise_runner.build_env({"MISE_NO_COLOR": "0", "EXTRA": "x"})
        assert env["MISE_NO_COLOR"] == "0"
        assert env["EXTRA"] == "x"


class TestRun:
    @patch("misekit.runner.subprocess.run")
    def test_success(self, mock_run, mise_runner):
        mock_run.return_value = _completed(stdout="ok\n", stderr="warn\n")
        result = mise_runner.run(["ls", "--json"])

        assert result.stdout == "ok\n"
        assert result.stderr == "warn\n"
        assert result.exit_code == 0
        argv = mock_run.call_args.args[0]
        assert argv == ["/fake/bin/mise", "ls", "--json"]
        assert mock_run.call_args.kwargs["env"]["MISE_YES"] == "1"
        assert mock_run.call_args.kwargs["capture_output"] is True

    @patch("misekit.runner.subprocess.run")
    def test_cwd_passed_through(self, mock_run, mise_runner, tmp_path):
        mock_run.return_value = _completed()
        mise_runner.run(["use", "node@22"], cwd=tmp_path)
        assert mock_run.call_args.kwargs["cwd"] == str(tmp_path)

    @patch("misekit.runner.subprocess.run")
    def test_nonzero_exit_raises(self, mock_run, mise_runner):
        mock_run.return_value = _completed(returncode=2, stdout="out", stderr="boom")
        with pytest.raises(MiseCommandError) as exc_info:
            mise_runner.run(["install", "nope"])

        error = exc_info.value
        assert error.message == "mise install nope"
        assert error.command_args == ["install", "nope"]
        assert error.stdout == "out"
        assert error.stderr == "boom"
        assert error.exit_code == 2

    @patch("misekit.runner.subprocess.run")
    def test_nonzero_exit_tolerated(self, mock_run, mise_runner):
        mock_run.return_value = _completed(returncode=1, stdout="partial", stderr="err")
        result = mise_runner.run(["search", "zzz"], allow_nonzero_exit=True)
        assert result.exit_code == 1
        assert result.stdout == "partial"
        assert result.stderr == "err"

    @patch("misekit.runner.subprocess.run")
    def test_spawn_failure_is_command_error(self, mock_run, mise_runner):
        mock_run.side_effect = FileNotFoundError(2, "No such file or directory")
        with pytest.raises(MiseCommandError) as exc_info:
            mise_runner.run(["ls"])
        assert exc_info.value.exit_code is None
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @patch("misekit.runner.subprocess.run")
    def test_output_cap(self, mock_run, locator):
        mise_runner = MiseRunner(locator=locator, environ={}, max_output_size=10)
        mock_run.return_value = _completed(stdout="x" * 11)
        with pytest.raises(MiseOutputTooLargeError):
            mise_runner.run(["registry", "--json"])

    @patch("misekit.runner.subprocess.run")
    def test_output_cap_is_per_stream(self, mock_run, locator):
        mise_runner = MiseRunner(locator=locator, environ={}, max_output_size=10)
        mock_run.return_value = _completed(stdout="x" * 10, stderr="y" * 10)
        result = mise_runner.run(["registry", "--json"])
        assert result.stdout == "x" * 10
        assert result.stderr == "y" * 10

    @patch("misekit.runner.subprocess.run")
    def test_output_cap_on_stderr(self, mock_run, locator):
        mise_runner = MiseRunner(locator=locator, environ={}, max_output_size=10)
        mock_run.return_value = _completed(stderr="y" * 11)
        with pytest.raises(MiseOutputTooLargeError):
            mise_runner.run(["registry", "--json"])

    @patch("misekit.runner.subprocess.run")
    def test_none_output_normalized(self, mock_run, mise_runner):
        mock_run.return_value = _completed(stdout=None, stderr=None)
        result = mise_runner.run(["reshim"])
        assert result.stdout == ""
        assert result.stderr == ""


class TestExec:
    @patch("misekit.runner.subprocess.run")
    def test_runs_program_with_path_overlay_only(self, mock_run, mise_runner):
        mock_run.return_value = _completed()
        mise_runner.exec(["brew", "upgrade", "mise"])

        argv = mock_run.call_args.args[0]
        env = mock_run.call_args.kwargs["env"]
        assert argv == ["brew", "upgrade", "mise"]
        assert "MISE_YES" not in env
        assert env["PATH"].startswith(EXTRA_PATHS[0])

    @patch("misekit.runner.subprocess.run")
    def test_failure_message_names_program(self, mock_run, mise_runner):
        mock_run.return_value = _completed(returncode=1)
        with pytest.raises(MiseCommandError, match="brew list mise"):
            mise_runner.exec(["brew", "list", "mise"])
