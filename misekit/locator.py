"""Locate the mise executable.

Search order: ``$MISE_BIN``, ``mise`` on ``PATH``, then the places the
official installers and Homebrew put it. The first executable hit is cached
on the locator for the rest of the process; a binary that moves mid-session
is not noticed.
"""

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from misekit.errors import MiseNotFoundError

logger = logging.getLogger(__name__)

BINARY_NAME = "mise"
OVERRIDE_ENV = "MISE_BIN"

# Well-known install locations, checked after PATH
DEFAULT_LOCATIONS = [
    "~/Library/Application Support/mise/bin/mise",
    "~/.local/bin/mise",
    "/opt/homebrew/bin/mise",
    "/usr/local/bin/mise",
    "/usr/bin/mise",
]


def _is_windows() -> bool:
    return sys.platform == "win32"


def _executable_extensions() -> list[str]:
    if _is_windows():
        return [".exe", ".cmd", ".bat", ""]
    return [""]


def _is_executable(path: Path) -> bool:
    if not path.is_file():
        return False
    if _is_windows():
        return True
    return os.access(path, os.X_OK)


class MiseLocator:
    """Resolves and remembers the path of the mise binary.

    One locator is created by whoever owns the runner and shared by
    reference, so the lookup happens at most once per process.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        locations: Optional[list[str]] = None,
    ):
        self._environ = environ if environ is not None else os.environ
        self._locations = DEFAULT_LOCATIONS if locations is None else locations
        self._path: Optional[str] = None

    @property
    def cached_path(self) -> Optional[str]:
        return self._path

    def clear(self) -> None:
        """Forget the cached path so the next resolve() searches again"""
        self._path = None

    def candidates(self) -> list[str]:
        """Candidate names and paths in search order, without duplicates"""
        ordered = []
        override = self._environ.get(OVERRIDE_ENV)
        if override:
            ordered.append(override)
        ordered.append(BINARY_NAME)
        ordered.extend(self._locations)
        return list(dict.fromkeys(ordered))

    def resolve(self) -> str:
        """Return an executable mise path or raise MiseNotFoundError"""
        if self._path:
            return self._path

        for candidate in self.candidates():
            if "/" in candidate or "\\" in candidate:
                found = self._check_path(candidate)
            else:
                found = self._search_path(candidate)
            if found:
                logger.debug("Resolved mise binary: %s", found)
                self._path = found
                return found
            logger.debug("No mise at candidate %s", candidate)

        raise MiseNotFoundError(
            "Unable to locate the mise binary.",
            hint=f"Set {OVERRIDE_ENV} or ensure mise is on PATH.",
        )

    def _check_path(self, candidate: str) -> Optional[str]:
        path = Path(candidate).expanduser()
        if _is_executable(path):
            return str(path)
        return None

    def _search_path(self, name: str) -> Optional[str]:
        for directory in self._environ.get("PATH", "").split(os.pathsep):
            if not directory:
                continue
            for ext in _executable_extensions():
                path = Path(directory) / f"{name}{ext}"
                if _is_executable(path):
                    return str(path)
        return None
