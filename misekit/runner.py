"""Run mise as a child process and normalize the outcome.

Every call is a single blocking round trip: no retries, no timeout, no
streaming. Each captured stream is capped separately at ``MAX_OUTPUT_SIZE``
characters. The child's environment is the inherited one plus a fixed overlay
that keeps mise non-interactive and free of color codes.
"""

import logging
import os
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Optional, Union

from misekit.errors import MiseCommandError, MiseOutputTooLargeError
from misekit.locator import MiseLocator
from misekit.models import MiseResult

logger = logging.getLogger(__name__)

# Prepended to PATH so mise can find the tools it shells out to
EXTRA_PATHS = [
    "/opt/homebrew/bin",
    "/opt/homebrew/sbin",
    "/usr/local/bin",
    "/usr/bin",
    "/bin",
    "/usr/sbin",
    "/sbin",
]

# Applied only when the inherited environment does not define them
DEFAULT_ENV = {
    "CI": "1",
    "MISE_SKIP_VERSION_CHECK": "1",
}

# Applied when unset or empty
DEFAULT_SHELL = "/bin/bash"

# Always applied
FORCED_ENV = {
    "MISE_YES": "1",
    "MISE_NO_COLOR": "1",
}

MAX_OUTPUT_SIZE = 20 * 1024 * 1024


def prepend_paths(path: str, extra: Optional[list[str]] = None) -> str:
    """Put the well-known install directories in front of an existing PATH"""
    extra = EXTRA_PATHS if extra is None else extra
    return os.pathsep.join(extra) + os.pathsep + path


class MiseRunner:
    """Executes mise subcommands through a shared locator"""

    def __init__(
        self,
        locator: Optional[MiseLocator] = None,
        environ: Optional[Mapping[str, str]] = None,
        max_output_size: int = MAX_OUTPUT_SIZE,
    ):
        self._environ = environ if environ is not None else os.environ
        self.locator = locator or MiseLocator(self._environ)
        self.max_output_size = max_output_size

    @property
    def binary(self) -> str:
        return self.locator.resolve()

    def build_env(self, overrides: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Inherited environment merged with the mise overlay and caller overrides"""
        env = dict(self._environ)
        for key, value in DEFAULT_ENV.items():
            env.setdefault(key, value)
        if not env.get("SHELL"):
            env["SHELL"] = DEFAULT_SHELL
        env.update(FORCED_ENV)
        env["PATH"] = prepend_paths(self._environ.get("PATH", ""))
        if overrides:
            env.update(overrides)
        return env

    def run(
        self,
        args: list[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        allow_nonzero_exit: bool = False,
        cwd: Optional[Union[str, Path]] = None,
    ) -> MiseResult:
        """Run ``mise <args>``.

        Raises MiseCommandError on a non-zero exit unless
        ``allow_nonzero_exit`` is set, in which case the captured output is
        returned with its exit code.
        """
        argv = [self.binary, *args]
        return self._spawn(
            argv,
            args,
            f"mise {' '.join(args)}",
            env=self.build_env(env),
            allow_nonzero_exit=allow_nonzero_exit,
            cwd=cwd,
        )

    def exec(
        self,
        argv: list[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        allow_nonzero_exit: bool = False,
    ) -> MiseResult:
        """Run an arbitrary program with only the PATH overlay applied"""
        merged = dict(self._environ)
        merged["PATH"] = prepend_paths(self._environ.get("PATH", ""))
        if env:
            merged.update(env)
        return self._spawn(
            argv, argv, " ".join(argv), env=merged, allow_nonzero_exit=allow_nonzero_exit
        )

    def _spawn(
        self,
        argv: list[str],
        args: list[str],
        message: str,
        *,
        env: dict[str, str],
        allow_nonzero_exit: bool,
        cwd: Optional[Union[str, Path]] = None,
    ) -> MiseResult:
        logger.debug("Running: %s", " ".join(argv))

        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
                cwd=str(cwd) if cwd is not None else None,
                check=False,
            )
        except OSError as e:
            raise MiseCommandError(message, args, stderr=str(e)) from e

        stdout = proc.stdout or ""
        stderr = proc.stderr or ""
        if max(len(stdout), len(stderr)) > self.max_output_size:
            raise MiseOutputTooLargeError(
                f"{message}: output stream exceeded {self.max_output_size} characters",
                args,
                exit_code=proc.returncode,
            )

        logger.debug("Exit code %s for: %s", proc.returncode, message)
        if proc.returncode != 0:
            if allow_nonzero_exit:
                return MiseResult(stdout=stdout, stderr=stderr, exit_code=proc.returncode)
            raise MiseCommandError(
                message, args, stdout=stdout, stderr=stderr, exit_code=proc.returncode
            )
        return MiseResult(stdout=stdout, stderr=stderr, exit_code=0)
