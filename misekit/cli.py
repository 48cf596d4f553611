"""
misekit - A terminal front-end for the mise version manager

Browse installed and outdated tools, search the registry, and manage plugins,
settings and tasks, all by shelling out to the mise binary.
"""

import logging
import os
from contextlib import contextmanager
from typing import Annotated, Optional

from cyclopts import App, Parameter
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from misekit.client import (
    INSTALLED_FILTERS,
    MiseClient,
    filter_installed_tools,
    merge_registry_entries,
    recommended_entries,
    summarize_prune_output,
    task_run_command,
)
from misekit.errors import MiseError, format_mise_error
from misekit.models import DoctorResult, RegistryEntry

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "MISEKIT_LOG_LEVEL"

# Initialize Rich consoles; diagnostics go to stderr
console = Console()
err_console = Console(stderr=True)

app = App(
    name="misekit",
    help="""
[bold cyan]misekit[/] - Terminal front-end for the [green]mise[/] version manager

[dim]Examples:[/]
  misekit installed                  Show installed tools
  misekit outdated                   Show tools with newer releases
  misekit search ripgrep             Search the mise registry
  misekit install node -V 22         Install a tool
  misekit doctor                     Show the mise doctor report
""",
    version=__version__,
)

plugins_app = App(name="plugins", help="Manage mise plugins.")
cache_app = App(name="cache", help="Inspect and clean the mise cache.")
settings_app = App(name="settings", help="View and change mise settings.")
tasks_app = App(name="tasks", help="List mise tasks.")

app.command(plugins_app)
app.command(cache_app)
app.command(settings_app)
app.command(tasks_app)

_client: Optional[MiseClient] = None


# =============================================================================
# Helper Functions
# =============================================================================


def _get_client() -> MiseClient:
    """The process-wide client; the binary is located on first use"""
    global _client
    if _client is None:
        _client = MiseClient()
    return _client


def _setup_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _print_success(message: str = "Done"):
    """Print a success message"""
    console.print(f"[green]✓[/] {message}")


def _print_error(message: str):
    """Print an error message"""
    console.print(f"[red]✗[/] {message}")


def _print_header(action: str, target: str):
    """Print a styled header for an action"""
    console.print(f"\n[bold cyan]▶ {action}[/] [cyan]{target}[/]")


@contextmanager
def _handle_errors(action: str):
    """Report mise failures for ``action`` and exit with status 1"""
    try:
        yield
    except MiseError as e:
        _print_error(f"{action} failed")
        console.print(f"[red]Error:[/] {escape(format_mise_error(e))}", highlight=False)
        if e.hint:
            console.print(f"[dim]{e.hint}[/]")
        raise SystemExit(1)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        _print_error(f"{action} failed")
        console.print(
            f"[red]Error:[/] Could not parse mise output: {escape(format_mise_error(e))}",
            highlight=False,
        )
        raise SystemExit(1)


def _load_or_default(what: str, load, default):
    """Run an optional lookup, falling back to ``default`` when it fails"""
    try:
        return load()
    except (MiseError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.debug("Could not load %s: %s", what, format_mise_error(e))
        return default


def _registry_table(entries: list[RegistryEntry], installed: set[str], title: str) -> Table:
    table = Table(title=f"[bold cyan]{title}[/]", title_justify="left")
    table.add_column("Tool", style="cyan")
    table.add_column("Description")
    table.add_column("Backend", style="dim")
    table.add_column("Homepage")
    for entry in entries:
        name = Text(entry.name, style="green" if entry.name in installed else "cyan")
        if entry.name in installed:
            name.append(" ✓")
        table.add_row(
            name,
            entry.description or "",
            entry.identifier or "",
            f"[link={entry.url}]{entry.url}[/link]" if entry.url else "",
        )
    return table


def _yes_no(value: bool) -> str:
    return "[green]✓ yes[/]" if value else "[red]✗ no[/]"


def _doctor_table(report: DoctorResult) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="cyan", width=20)
    table.add_column("Value", style="white")

    update = " [yellow](update available)[/]" if report.self_update_available else ""
    table.add_row("Version", f"{report.version}{update}")
    table.add_row("Activated", _yes_no(report.activated))
    table.add_row("Shims on PATH", _yes_no(report.shims_on_path))
    if report.shell:
        table.add_row("Shell", f"{report.shell.name} {report.shell.version}")
    if report.build_info:
        table.add_row("Target", report.build_info.target)
        table.add_row("Built", report.build_info.built)
        table.add_row("Rust Version", report.build_info.rust_version)
        table.add_row("Features", report.build_info.features)

    table.add_row("Cache Dir", report.dirs.cache)
    table.add_row("Config Dir", report.dirs.config)
    table.add_row("Data Dir", report.dirs.data)
    table.add_row("Shims Dir", report.dirs.shims)
    table.add_row("State Dir", report.dirs.state)

    if report.config_files:
        table.add_row("Config Files", "\n".join(report.config_files))
    if report.ignored_config_files:
        table.add_row("Ignored Configs", "\n".join(report.ignored_config_files))
    for key, value in sorted(report.env_vars.items()):
        table.add_row(f"[dim]{key}[/]", value)
    for tool, versions in sorted(report.toolset.items()):
        table.add_row(
            f"[magenta]{tool}[/]",
            ", ".join(str(v.get("version", "")) for v in versions),
        )
    return table


# =============================================================================
# Tool Commands
# =============================================================================


@app.command
def installed(
    *,
    filter_mode: Annotated[
        str,
        Parameter(
            name=["--filter", "-f"],
            help="Filter: all, active, global, local, multiple, unused",
        ),
    ] = "all",
):
    """
    Show installed tools and their versions.

    Active versions are listed first and marked with a check.

    [dim]Examples:[/]
      misekit installed
      misekit installed --filter active
      misekit installed -f multiple
    """
    if filter_mode not in INSTALLED_FILTERS:
        console.print(
            f"[red]Error:[/] Unknown filter '[bold]{filter_mode}[/]'\n"
            f"Valid filters: {', '.join(INSTALLED_FILTERS)}"
        )
        raise SystemExit(1)

    with _handle_errors("Listing installed tools"):
        tools = filter_installed_tools(_get_client().list_installed_tools(), filter_mode)

    if not tools:
        console.print("[dim]No tools installed via mise.[/]")
        console.print(
            "[dim]Install one with[/] mise install <tool>@<version> [dim]or[/] misekit search"
        )
        return

    table = Table(title="[bold cyan]Installed Tools[/]", title_justify="left")
    table.add_column("Tool", style="cyan")
    table.add_column("Version")
    table.add_column("Requested", style="dim")
    table.add_column("Source", style="dim")

    for tool in tools:
        for index, version in enumerate(tool.versions):
            label = Text(version.version, style="green" if version.is_active else "white")
            if version.is_active:
                label.append(" ✓")
            if not version.is_installed:
                label.append(" (missing)", style="red")
            table.add_row(
                tool.name if index == 0 else "",
                label,
                version.requested_version or "",
                version.source_path or "",
            )

    console.print(table)


@app.command
def outdated():
    """
    Show tools with a newer release available.

    [dim]Examples:[/]
      misekit outdated
    """
    with _handle_errors("Checking for outdated tools"):
        tools = _get_client().list_outdated_tools()

    if not tools:
        console.print(Panel("[green]All tools are up to date![/]", style="green"))
        return

    table = Table(title="[bold cyan]Outdated Tools[/]", title_justify="left")
    table.add_column("Tool", style="cyan")
    table.add_column("Current", style="yellow")
    table.add_column("Latest", style="green")
    table.add_column("Requested", style="dim")
    table.add_column("Source", style="dim")
    for tool in tools:
        table.add_row(
            tool.name,
            tool.current_version,
            tool.latest_version,
            tool.requested_version or "",
            tool.source_path or "",
        )
    console.print(table)


@app.command
def search(
    query: Annotated[
        Optional[str],
        Parameter(help="Search text (shows recommended tools if omitted)"),
    ] = None,
):
    """
    Search the mise registry.

    Results are enriched with descriptions and homepages from the full
    registry, and tools you already have are marked with a check.

    [dim]Examples:[/]
      misekit search
      misekit search ripgrep
      misekit search cargo:ubi
    """
    client = _get_client()
    if not query or not query.strip():
        results = None
    else:
        with _handle_errors("Searching the registry"):
            results = client.search_registry(query)

    registry = _load_or_default("registry", client.list_registry_entries, [])
    installed_names = {
        tool.name for tool in _load_or_default("installed tools", client.list_installed_tools, [])
    }

    if results is None:
        entries = recommended_entries(registry)
        title = "Recommended Tools"
    else:
        entries = merge_registry_entries(results, registry)
        title = f"Results for “{query}”"

    if not entries:
        console.print(f"[yellow]No tools found.[/] No registry entries matched “{query}”.")
        return

    console.print(_registry_table(entries, installed_names, title))


@app.command
def versions(
    name: Annotated[str, Parameter(help="Tool name")],
    *,
    limit: Annotated[
        int,
        Parameter(name=["--limit", "-l"], help="Show at most this many versions (0 for all)"),
    ] = 20,
):
    """
    List versions of a tool available for install, newest first.

    [dim]Examples:[/]
      misekit versions node
      misekit versions python --limit 0
    """
    with _handle_errors(f"Listing versions of {name}"):
        available = _get_client().list_all_versions(name)

    if not available:
        console.print(f"[dim]No versions found for {name}.[/]")
        return

    shown = available[:limit] if limit > 0 else available
    for version in shown:
        console.print(f"  {version}", highlight=False)
    if len(shown) < len(available):
        console.print(f"[dim]... {len(available) - len(shown)} more (use --limit 0)[/]")


@app.command
def install(
    name: Annotated[str, Parameter(help="Tool name, optionally with backend or version (cargo:ripgrep, node@22)")],
    *,
    version: Annotated[
        Optional[str],
        Parameter(name=["--tool-version", "-V"], help="Version to install"),
    ] = None,
    backend: Annotated[
        Optional[str],
        Parameter(name=["--backend", "-b"], help="Backend to install through (cargo, npm, pip, ...)"),
    ] = None,
    use: Annotated[
        str,
        Parameter(name=["--use", "-u"], help="Activate after install: none, local, global"),
    ] = "none",
    pin: Annotated[
        bool,
        Parameter(name=["--pin"], help="Pin the exact version when activating"),
    ] = False,
    force: Annotated[
        bool,
        Parameter(name=["--force"], help="Reinstall even if already installed"),
    ] = False,
):
    """
    Install a tool.

    [dim]Examples:[/]
      misekit install node --tool-version 22
      misekit install ripgrep --backend cargo
      misekit install python@3.12 --use global --pin
    """
    _print_header("Installing", name)
    with _handle_errors(f"Installing {name}"):
        _get_client().install_tool(
            name, version=version, backend=backend, activate=use, pin=pin, force=force
        )
    _print_success(f"{name} installed")


@app.command
def use(
    name: Annotated[str, Parameter(help="Tool name")],
    version: Annotated[str, Parameter(help="Version to use")],
    *,
    global_: Annotated[
        bool,
        Parameter(name=["--global", "-g"], help="Write to the global config"),
    ] = False,
    path: Annotated[
        Optional[str],
        Parameter(name=["--path", "-p"], help="Project directory to write the config in"),
    ] = None,
):
    """
    Set the version of a tool for a project or globally.

    [dim]Examples:[/]
      misekit use node 22
      misekit use python 3.12 --global
      misekit use go 1.23 --path ~/src/project
    """
    with _handle_errors(f"Setting {name}@{version}"):
        _get_client().set_tool_version(name, version, global_=global_, path=path)
    scope = "globally" if global_ else (f"in {path}" if path else "locally")
    _print_success(f"Using {name}@{version} {scope}")


@app.command
def unuse(
    name: Annotated[str, Parameter(help="Tool name")],
    *,
    path: Annotated[
        Optional[str],
        Parameter(name=["--path", "-p"], help="Config file or directory to remove it from"),
    ] = None,
):
    """
    Remove a tool from a mise config.

    [dim]Examples:[/]
      misekit unuse node
      misekit unuse node --path ~/.config/mise/config.toml
    """
    with _handle_errors(f"Removing {name}"):
        _get_client().unuse_tool(name, path=path)
    _print_success(f"Removed {name} from config")


@app.command
def uninstall(
    name: Annotated[str, Parameter(help="Tool name")],
    version: Annotated[str, Parameter(help="Installed version to remove")],
):
    """
    Uninstall one version of a tool.

    [dim]Examples:[/]
      misekit uninstall node 20.11.0
    """
    _print_header("Uninstalling", f"{name}@{version}")
    with _handle_errors(f"Uninstalling {name}@{version}"):
        _get_client().uninstall_tool_version(name, version)
    _print_success(f"{name}@{version} uninstalled")


@app.command
def upgrade(
    name: Annotated[
        Optional[str],
        Parameter(help="Tool to upgrade (lists outdated tools if omitted)"),
    ] = None,
):
    """
    Upgrade a tool to its latest version.

    [dim]Examples:[/]
      misekit upgrade node
      misekit upgrade
    """
    if not name:
        outdated()
        return

    _print_header("Upgrading", name)
    with _handle_errors(f"Upgrading {name}"):
        _get_client().upgrade_tool(name)
    _print_success(f"{name} upgraded")


@app.command
def backends():
    """
    List the backends mise can install tools through.

    [dim]Examples:[/]
      misekit backends
    """
    with _handle_errors("Listing backends"):
        names = _get_client().list_backends()

    table = Table(title="[bold cyan]Backends[/]", title_justify="left")
    table.add_column("Backend", style="cyan")
    table.add_column("Usage", style="dim")
    for backend in names:
        table.add_row(backend, f"misekit install <tool> --backend {backend}")
    console.print(table)


# =============================================================================
# Maintenance Commands
# =============================================================================


@app.command
def prune(
    *,
    dry_run: Annotated[
        bool,
        Parameter(
            name=["--dry-run", "-n"],
            help="Show what would be removed without removing it",
        ),
    ] = False,
):
    """
    Remove tool versions no config file uses.

    [dim]Examples:[/]
      misekit prune
      misekit prune --dry-run
    """
    if dry_run:
        console.print(
            Panel("[yellow]DRY RUN[/] - No changes will be made", style="yellow")
        )
    with _handle_errors("Prune"):
        result = _get_client().run_prune(dry_run=dry_run)
    _print_success(f"Prune complete: {summarize_prune_output(result.stdout)}")


@app.command
def doctor():
    """
    Show the mise doctor report.

    [dim]Examples:[/]
      misekit doctor
    """
    with _handle_errors("mise doctor"):
        report = _get_client().run_doctor()

    console.print(Panel("[bold]mise Doctor[/]", style="cyan"))
    console.print(_doctor_table(report))


@app.command
def reshim():
    """
    Regenerate shims for installed tools.

    [dim]Examples:[/]
      misekit reshim
    """
    with _handle_errors("Reshim"):
        _get_client().reshim()
    _print_success("Shims regenerated")


@app.command(name="self-update")
def self_update():
    """
    Update mise itself.

    Uses Homebrew when mise was installed with it, otherwise
    `mise self-update`.

    [dim]Examples:[/]
      misekit self-update
    """
    _print_header("Updating", "mise")
    with _handle_errors("Updating mise"):
        _get_client().update_mise()
    _print_success("mise updated")


# =============================================================================
# Plugin Commands
# =============================================================================


@plugins_app.command(name="ls")
def plugins_ls():
    """List installed plugins and their git URLs."""
    with _handle_errors("Listing plugins"):
        plugins = _get_client().list_installed_plugins()

    if not plugins:
        console.print("[dim]No plugins installed.[/]")
        return

    table = Table(title="[bold cyan]Plugins[/]", title_justify="left")
    table.add_column("Plugin", style="cyan")
    table.add_column("URL", style="dim")
    for plugin in plugins:
        table.add_row(plugin.name, plugin.url or "")
    console.print(table)


@plugins_app.command(name="add")
def plugins_add(
    name: Annotated[str, Parameter(help="Plugin name")],
    url: Annotated[Optional[str], Parameter(help="Git URL (optional for registry plugins)")] = None,
):
    """
    Install a plugin.

    [dim]Examples:[/]
      misekit plugins add vfox-cmake
      misekit plugins add my-tool https://github.com/me/asdf-my-tool
    """
    _print_header("Installing plugin", name)
    with _handle_errors(f"Installing plugin {name}"):
        _get_client().install_plugin(name, url)
    _print_success(f"Plugin {name} installed")


@plugins_app.command(name="remove")
def plugins_remove(name: Annotated[str, Parameter(help="Plugin name")]):
    """Uninstall a plugin."""
    _print_header("Removing plugin", name)
    with _handle_errors(f"Removing plugin {name}"):
        _get_client().uninstall_plugin(name)
    _print_success(f"Plugin {name} removed")


@plugins_app.command(name="update")
def plugins_update():
    """Update all installed plugins."""
    _print_header("Updating", "plugins")
    with _handle_errors("Updating plugins"):
        _get_client().update_plugins()
    _print_success("Plugins updated")


# =============================================================================
# Cache Commands
# =============================================================================


@cache_app.command(name="path")
def cache_path():
    """Print the mise cache directory."""
    with _handle_errors("Locating the cache"):
        path = _get_client().get_cache_path()
    console.print(path, highlight=False, soft_wrap=True)


@cache_app.command(name="clean")
def cache_clean():
    """Delete everything in the mise cache."""
    with _handle_errors("Cleaning the cache"):
        _get_client().clean_cache()
    _print_success("Cache cleaned")


# =============================================================================
# Settings Commands
# =============================================================================


@settings_app.command(name="ls")
def settings_ls():
    """List settings and where they are defined."""
    with _handle_errors("Listing settings"):
        settings = _get_client().list_settings()

    if not settings:
        console.print("[dim]mise is using default configuration values.[/]")
        return

    table = Table(title="[bold cyan]Settings[/]", title_justify="left")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Defined In", style="dim")
    for setting in settings:
        table.add_row(setting.key, setting.value, setting.source or "")
    console.print(table)


@settings_app.command(name="set")
def settings_set(
    key: Annotated[str, Parameter(help="Setting key")],
    value: Annotated[str, Parameter(help="New value")],
):
    """
    Change a setting.

    [dim]Examples:[/]
      misekit settings set experimental true
      misekit settings set jobs 8
    """
    value = value.strip()
    with _handle_errors(f"Updating {key}"):
        _get_client().update_setting(key, value)
    _print_success(f"{key}={value}")


@settings_app.command(name="toggle")
def settings_toggle(key: Annotated[str, Parameter(help="Boolean setting key")]):
    """
    Flip a boolean setting.

    [dim]Examples:[/]
      misekit settings toggle experimental
    """
    client = _get_client()
    with _handle_errors(f"Toggling {key}"):
        setting = next((s for s in client.list_settings() if s.key == key), None)
        if setting is None:
            console.print(f"[red]Error:[/] Unknown setting '[bold]{key}[/]'")
            raise SystemExit(1)
        if not setting.is_boolean:
            console.print(
                f"[red]Error:[/] '{key}' is not a boolean setting (value: {setting.value})"
            )
            raise SystemExit(1)
        new_value = "false" if setting.value == "true" else "true"
        client.update_setting(key, new_value)
    _print_success(f"{key}={new_value}")


# =============================================================================
# Task Commands
# =============================================================================


@tasks_app.command(name="ls")
def tasks_ls():
    """List tasks defined in mise config files."""
    with _handle_errors("Listing tasks"):
        tasks = _get_client().list_tasks()

    if not tasks:
        console.print("[dim]No tasks found. Add tasks to your mise.toml to see them here.[/]")
        return

    table = Table(title="[bold cyan]Tasks[/]", title_justify="left")
    table.add_column("Task", style="cyan")
    table.add_column("Description")
    table.add_column("Aliases", style="dim")
    table.add_column("Depends", style="dim")
    table.add_column("Source", style="dim")
    for task in tasks:
        table.add_row(
            task.name,
            task.description or "",
            ", ".join(task.aliases),
            ", ".join(task.depends),
            task.source or "",
        )
    console.print(table)


@tasks_app.command(name="command")
def tasks_command(name: Annotated[str, Parameter(help="Task name")]):
    """Print the shell command that runs a task."""
    console.print(task_run_command(name), highlight=False)


def main():
    """Entry point for the CLI"""
    _setup_logging()
    app()


if __name__ == "__main__":
    main()
