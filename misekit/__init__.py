from misekit.cli import __version__
from misekit.client import MiseClient
from misekit.errors import (
    MiseCommandError,
    MiseError,
    MiseNotFoundError,
    MiseValidationError,
    format_mise_error,
)
from misekit.locator import MiseLocator
from misekit.models import InstalledTool, OutdatedTool, RegistryEntry, ToolVersion
from misekit.runner import MiseRunner

__all__ = [
    "__version__",
    "InstalledTool",
    "MiseClient",
    "MiseCommandError",
    "MiseError",
    "MiseLocator",
    "MiseNotFoundError",
    "MiseRunner",
    "MiseValidationError",
    "OutdatedTool",
    "RegistryEntry",
    "ToolVersion",
    "format_mise_error",
]
