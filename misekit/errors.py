"""Exceptions raised by misekit and the formatter that turns them into text.

MiseError
├── MiseNotFoundError
├── MiseCommandError
│   └── MiseOutputTooLargeError
└── MiseValidationError

Malformed JSON from an otherwise successful call is not wrapped: the
``json.JSONDecodeError`` reaches the caller as-is.
"""

import re
from typing import Optional, Union

# CSI/OSC-style escape sequences emitted by colored terminals
ANSI_PATTERN = re.compile(
    r"[\u001b\u009b][\[()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-ORZcf-nqry=><]"
)

MAX_ERROR_LINES = 5


class MiseError(Exception):
    """Base class for every misekit error"""

    def __init__(self, message: str, *, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class MiseNotFoundError(MiseError):
    """No executable mise binary among the search candidates"""


class MiseCommandError(MiseError):
    """mise exited non-zero (or could not be spawned at all)"""

    def __init__(
        self,
        message: str,
        args: list[str],
        stdout: str = "",
        stderr: str = "",
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.command_args = list(args)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


class MiseOutputTooLargeError(MiseCommandError):
    """Captured output exceeded the runner's buffer cap"""


class MiseValidationError(MiseError, ValueError):
    """Caller input rejected before anything was spawned"""


def strip_ansi(text: str) -> str:
    return ANSI_PATTERN.sub("", text)


def _tail(text: str, count: int = MAX_ERROR_LINES) -> str:
    return "\n".join(text.split("\n")[-count:])


def format_mise_error(error: Union[BaseException, object]) -> str:
    """Convert any caught error into a short human-readable string.

    Command errors prefer the tail of stderr, then the tail of stdout, then
    the command line with its exit code.
    """
    if isinstance(error, MiseCommandError):
        stderr = strip_ansi(error.stderr.strip())
        if stderr:
            return _tail(stderr)
        stdout = strip_ansi(error.stdout.strip())
        if stdout:
            return _tail(stdout)
        exit_code = "unknown" if error.exit_code is None else error.exit_code
        return f"{error.message} (exit code {exit_code})"
    if isinstance(error, BaseException):
        return strip_ansi(str(error))
    return "Unknown mise error"
