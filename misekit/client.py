"""High-level mise operations: build the argument vector, run, parse."""

import logging
import sys
from typing import Optional

from misekit.errors import MiseCommandError, MiseValidationError
from misekit.models import (
    DoctorResult,
    InstalledTool,
    MiseResult,
    OutdatedTool,
    Plugin,
    RegistryEntry,
    Setting,
    Task,
)
from misekit.parsers import (
    parse_backends,
    parse_doctor,
    parse_installed_tools,
    parse_outdated_tools,
    parse_plugins,
    parse_registry,
    parse_remote_versions,
    parse_search_results,
    parse_settings,
    parse_tasks,
)
from misekit.runner import MiseRunner

logger = logging.getLogger(__name__)

ACTIVATE_MODES = ("none", "local", "global")

# Install paths that mean mise was installed by Homebrew
HOMEBREW_MARKERS = ("/Cellar/", "/opt/homebrew/", "/usr/local/Cellar", "/home/linuxbrew/")

# Shown by `search` before the user types anything
RECOMMENDED_TOOLS = ["cargo-binstall", "jdx/usage", "sccache"]
RECOMMENDED_ALIASES = {"jdx/usage": "usage"}

INSTALLED_FILTERS = ("all", "active", "global", "local", "multiple", "unused")


def _require(value: Optional[str], what: str) -> str:
    if value is None or not value.strip():
        raise MiseValidationError(f"{what} must not be empty")
    return value.strip()


def build_tool_spec(
    name: str, version: Optional[str] = None, backend: Optional[str] = None
) -> str:
    """Build a `[backend:]name[@version]` tool spec.

    A name that already carries a backend (``cargo:ripgrep``) or a version
    (``node@20``) is not prefixed or suffixed a second time.
    """
    name = name.strip()
    if backend and backend.strip() and ":" not in name:
        backend_name = backend.strip().rstrip(":")
        if version and version.strip():
            return f"{backend_name}:{name}@{version.strip()}"
        return f"{backend_name}:{name}"
    if version and version.strip() and "@" not in name:
        return f"{name}@{version.strip()}"
    return name


def _prefer(value, fallback):
    return value if value is not None else fallback


def merge_registry_entries(
    results: list[RegistryEntry], registry: list[RegistryEntry]
) -> list[RegistryEntry]:
    """Fill gaps in search results from full registry entries of the same name.

    Fields already present on a search result win.
    """
    by_name = {entry.name: entry for entry in registry}
    merged = []
    for entry in results:
        info = by_name.get(entry.name) or RegistryEntry(name=entry.name)
        merged.append(
            RegistryEntry(
                name=entry.name,
                identifier=_prefer(entry.identifier, info.identifier),
                description=_prefer(entry.description, info.description),
                url=_prefer(entry.url, info.url),
                backends=_prefer(entry.backends, info.backends) or [],
            )
        )
    return merged


def recommended_entries(registry: list[RegistryEntry]) -> list[RegistryEntry]:
    """The recommended tools, enriched from the registry where possible"""
    by_name = {entry.name: entry for entry in registry}
    entries = []
    for name in RECOMMENDED_TOOLS:
        info = by_name.get(RECOMMENDED_ALIASES.get(name, name))
        entries.append(
            RegistryEntry(
                name=name,
                identifier=info.identifier if info else None,
                description=info.description if info else None,
                url=info.url if info else None,
                backends=(info.backends or []) if info else [],
            )
        )
    return entries


def filter_installed_tools(tools: list[InstalledTool], mode: str = "all") -> list[InstalledTool]:
    """Narrow an installed-tools listing for display.

    ``multiple`` keeps whole tools that have more than one version; every
    other mode filters versions and drops tools left with none.
    """
    if mode not in INSTALLED_FILTERS:
        raise MiseValidationError(
            f"Unknown filter '{mode}'. Valid filters: {', '.join(INSTALLED_FILTERS)}"
        )
    if mode == "all":
        return list(tools)
    if mode == "multiple":
        return [tool for tool in tools if len(tool.versions) > 1]

    predicates = {
        "active": lambda v: v.is_active,
        "global": lambda v: v.is_global,
        "local": lambda v: bool(v.source_path) and not v.is_global,
        "unused": lambda v: not v.is_active and not v.requested_version,
    }
    keep = predicates[mode]

    filtered = []
    for tool in tools:
        versions = [v for v in tool.versions if keep(v)]
        if versions:
            filtered.append(InstalledTool(name=tool.name, versions=versions))
    return filtered


def summarize_prune_output(output: str) -> str:
    """One-line summary of what `mise prune` removed"""
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if not lines:
        return "No files removed."
    preview = " · ".join(lines[:2])
    if len(lines) > 2:
        return f"{preview} · +{len(lines) - 2} more"
    return preview


def task_run_command(task_name: str) -> str:
    return f"mise run {task_name}"


class MiseClient:
    """One method per mise subcommand the front-end uses"""

    def __init__(self, runner: Optional[MiseRunner] = None):
        self.runner = runner or MiseRunner()

    def _run(self, args: list[str], **kwargs) -> MiseResult:
        return self.runner.run(args, **kwargs)

    # -------------------------------------------------------------------------
    # Tools
    # -------------------------------------------------------------------------

    def list_installed_tools(self) -> list[InstalledTool]:
        return parse_installed_tools(self._run(["ls", "--json"]).stdout)

    def list_outdated_tools(self) -> list[OutdatedTool]:
        return parse_outdated_tools(self._run(["outdated", "--json"]).stdout)

    def list_all_versions(self, name: str) -> list[str]:
        """Versions available for install, newest first"""
        name = _require(name, "Tool name")
        return parse_remote_versions(self._run(["ls-remote", name]).stdout)

    def install_tool(
        self,
        name: str,
        version: Optional[str] = None,
        backend: Optional[str] = None,
        activate: str = "none",
        pin: bool = False,
        force: bool = False,
    ) -> MiseResult:
        """Install a tool, optionally activating it locally or globally.

        Activation goes through `mise use`, which installs as a side effect;
        otherwise a plain `mise install` is run.
        """
        _require(name, "Tool name")
        if activate not in ACTIVATE_MODES:
            raise MiseValidationError(
                f"Unknown activation '{activate}'. Valid values: {', '.join(ACTIVATE_MODES)}"
            )
        spec = build_tool_spec(name, version, backend)

        if activate != "none":
            args = ["use"]
            if activate == "global":
                args.append("--global")
            if pin:
                args.append("--pin")
            if force:
                args.append("--force")
            args.append(spec)
            return self._run(args)

        args = ["install"]
        if force:
            args.append("--force")
        args.append(spec)
        return self._run(args)

    def uninstall_tool_version(self, name: str, version: str) -> MiseResult:
        name = _require(name, "Tool name")
        version = _require(version, "Version")
        return self._run(["uninstall", f"{name}@{version}"])

    def set_tool_version(
        self,
        name: str,
        version: str,
        global_: bool = False,
        path: Optional[str] = None,
    ) -> MiseResult:
        """Pin a version in the global config or in the project at ``path``"""
        name = _require(name, "Tool name")
        version = _require(version, "Version")
        args = []
        if path:
            args.extend(["-C", path])
        args.append("use")
        if global_:
            args.append("--global")
        args.append(f"{name}@{version}")
        return self._run(args)

    def unuse_tool(self, name: str, path: Optional[str] = None) -> MiseResult:
        name = _require(name, "Tool name")
        args = ["use", "--remove", name]
        if path:
            args.extend(["--path", path])
        return self._run(args)

    def upgrade_tool(self, name: str) -> MiseResult:
        name = _require(name, "Tool name")
        return self._run(["upgrade", name])

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    def search_registry(self, query: str) -> list[RegistryEntry]:
        """Search the registry; "no matches" (exit code 1) is an empty list"""
        if not query or not query.strip():
            return []
        try:
            result = self._run(["search", query])
        except MiseCommandError as e:
            if e.exit_code == 1:
                logger.debug("No registry matches for %r", query)
                return []
            raise
        return parse_search_results(result.stdout)

    def list_registry_entries(self) -> list[RegistryEntry]:
        return parse_registry(self._run(["registry", "--json"]).stdout)

    def list_backends(self) -> list[str]:
        return parse_backends(self._run(["backends", "ls"]).stdout)

    # -------------------------------------------------------------------------
    # Plugins
    # -------------------------------------------------------------------------

    def list_installed_plugins(self) -> list[Plugin]:
        return parse_plugins(self._run(["plugins", "ls", "--urls"]).stdout)

    def install_plugin(self, name: str, url: Optional[str] = None) -> MiseResult:
        args = ["plugins", "install", _require(name, "Plugin name")]
        if url and url.strip():
            args.append(url.strip())
        return self._run(args)

    def uninstall_plugin(self, name: str) -> MiseResult:
        return self._run(["plugins", "uninstall", _require(name, "Plugin name")])

    def update_plugins(self) -> MiseResult:
        return self._run(["plugins", "update"])

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def run_prune(self, dry_run: bool = False) -> MiseResult:
        args = ["prune", "--yes"]
        if dry_run:
            args.append("--dry-run")
        return self._run(args)

    def get_cache_path(self) -> str:
        return self._run(["cache", "path"]).stdout.strip()

    def clean_cache(self) -> MiseResult:
        return self._run(["cache", "clean"])

    def reshim(self) -> MiseResult:
        return self._run(["reshim"])

    def run_doctor(self) -> DoctorResult:
        return parse_doctor(self._run(["doctor", "--json"]).stdout)

    def update_mise(self) -> MiseResult:
        """Upgrade mise itself, through Homebrew when that is how it was installed"""
        binary = self.runner.binary
        is_homebrew = sys.platform in ("darwin", "linux") and any(
            marker in binary for marker in HOMEBREW_MARKERS
        )
        if is_homebrew:
            try:
                self.runner.exec(["brew", "list", "mise"])
                return self.runner.exec(["brew", "upgrade", "mise"])
            except MiseCommandError as e:
                logger.debug("Homebrew upgrade failed, using self-update: %s", e)
        return self._run(["self-update", "--yes"])

    # -------------------------------------------------------------------------
    # Settings and tasks
    # -------------------------------------------------------------------------

    def list_settings(self) -> list[Setting]:
        return parse_settings(self._run(["settings"]).stdout)

    def update_setting(self, key: str, value: str) -> MiseResult:
        key = _require(key, "Setting key")
        return self._run(["settings", f"{key}={value}"])

    def list_tasks(self) -> list[Task]:
        return parse_tasks(self._run(["tasks", "ls", "--json"]).stdout)
