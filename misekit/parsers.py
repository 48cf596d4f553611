"""Translate mise's stdout into typed records.

Every function here is pure: text in, records out. Malformed JSON raises
``json.JSONDecodeError`` and is left for the caller to handle.
"""

import json
import re
from collections.abc import Callable
from typing import Any, Optional

from misekit.homepages import derive_tool_url
from misekit.models import (
    DoctorResult,
    InstalledTool,
    OutdatedTool,
    Plugin,
    RegistryEntry,
    Setting,
    Task,
    ToolVersion,
)

SEARCH_HEADER_NAMES = {"name", "tool"}


def version_sort_key(version: str) -> list[tuple[int, int, str]]:
    """Numeric-aware sort key: "1.10" sorts after "1.9".

    Digit runs compare as integers, everything else case-insensitively.
    This is natural string ordering, not semver precedence.
    """
    key = []
    for chunk in re.findall(r"\d+|\D+", version):
        if chunk.isdigit():
            key.append((0, int(chunk), ""))
        else:
            key.append((1, 0, chunk.casefold()))
    return key


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _first_string(entry: dict, *keys: str) -> Optional[str]:
    """First non-empty string among the given keys"""
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _source_path(entry: dict) -> Optional[str]:
    source = entry.get("source")
    if isinstance(source, dict):
        return _string_or_none(source.get("path"))
    return None


# =============================================================================
# Installed tools (`mise ls --json`)
# =============================================================================


def _parse_tool_version(data: dict) -> ToolVersion:
    version = data.get("version")
    return ToolVersion(
        version="" if version is None else str(version),
        requested_version=_string_or_none(data.get("requested_version")),
        install_path=_string_or_none(data.get("install_path")),
        source_path=_source_path(data),
        is_active=bool(data.get("active")),
        is_installed=bool(data["installed"]) if "installed" in data else True,
    )


def parse_installed_tools(text: str) -> list[InstalledTool]:
    """Parse `mise ls --json`: an object mapping tool name to version records"""
    trimmed = text.strip()
    if not trimmed:
        return []

    parsed = json.loads(trimmed)
    if not isinstance(parsed, dict):
        return []

    tools = []
    for name, payload in parsed.items():
        if not isinstance(payload, list):
            continue
        versions = [
            _parse_tool_version(entry) for entry in payload if isinstance(entry, dict)
        ]
        versions.sort(key=lambda v: (not v.is_active, version_sort_key(v.version)))
        tools.append(InstalledTool(name=name, versions=versions))

    tools.sort(key=lambda t: t.name.casefold())
    return tools


# =============================================================================
# Outdated tools (`mise outdated --json`)
# =============================================================================


def _dicts(items: list) -> list[dict]:
    return [item for item in items if isinstance(item, dict)]


def _records_from_array(payload: list) -> list[dict]:
    return _dicts(payload)


def _records_from_tools_key(payload: dict) -> list[dict]:
    return _dicts(payload["tools"])


def _records_from_map(payload: dict) -> list[dict]:
    return [
        {"name": name, **entry} for name, entry in payload.items() if isinstance(entry, dict)
    ]


# Shapes mise has used for this payload, tried in order
OUTDATED_SHAPES: list[tuple[str, Callable[[Any], bool], Callable[[Any], list[dict]]]] = [
    ("array", lambda p: isinstance(p, list), _records_from_array),
    (
        "tools",
        lambda p: isinstance(p, dict) and isinstance(p.get("tools"), list),
        _records_from_tools_key,
    ),
    ("map", lambda p: isinstance(p, dict), _records_from_map),
]


def outdated_records(payload: Any) -> tuple[Optional[str], list[dict]]:
    """Detect the payload shape and return (shape name, raw records)"""
    for shape, matches, extract in OUTDATED_SHAPES:
        if matches(payload):
            return shape, extract(payload)
    return None, []


def _normalize_outdated(entry: dict) -> Optional[OutdatedTool]:
    name = _first_string(entry, "tool", "name", "plugin")
    if not name:
        return None
    return OutdatedTool(
        name=name,
        current_version=_first_string(entry, "current_version", "current", "installed") or "",
        latest_version=_first_string(entry, "latest_version", "latest", "available") or "",
        requested_version=_first_string(entry, "requested_version", "requested", "wanted"),
        source_path=_source_path(entry),
        install_path=_string_or_none(entry.get("install_path")),
    )


def parse_outdated_tools(text: str) -> list[OutdatedTool]:
    """Parse `mise outdated --json` in any of its known shapes"""
    trimmed = text.strip()
    if not trimmed:
        return []

    _, records = outdated_records(json.loads(trimmed))
    tools = [tool for tool in map(_normalize_outdated, records) if tool is not None]
    tools.sort(key=lambda t: t.name.casefold())
    return tools


# =============================================================================
# Registry (`mise search`, `mise registry --json`)
# =============================================================================


def parse_search_results(text: str) -> list[RegistryEntry]:
    """Parse `mise search` lines: name followed by a free-text description"""
    seen: set[str] = set()
    entries = []
    for line in text.splitlines():
        parts = line.split()
        if not parts:
            continue
        name, rest = parts[0], parts[1:]
        if not entries and name.lower() in SEARCH_HEADER_NAMES:
            continue
        if name in seen:
            continue
        seen.add(name)
        entries.append(RegistryEntry(name=name, description=" ".join(rest) or None))
    return entries


def parse_registry(text: str) -> list[RegistryEntry]:
    """Parse `mise registry --json` into entries with derived homepages"""
    parsed = json.loads(text)
    if not isinstance(parsed, list):
        return []

    entries = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        name = _first_string(item, "short", "name")
        if not name:
            continue
        backends = item.get("backends") or []
        entries.append(
            RegistryEntry(
                name=name,
                identifier=backends[0] if backends else None,
                description=item.get("description"),
                url=derive_tool_url(backends),
                backends=backends,
            )
        )
    return entries


# =============================================================================
# Line-oriented listings
# =============================================================================


def parse_plugins(text: str) -> list[Plugin]:
    """Parse `mise plugins ls --urls`"""
    plugins = []
    for line in text.splitlines():
        parts = line.split()
        if not parts:
            continue
        plugins.append(Plugin(name=parts[0], url=" ".join(parts[1:]) or None))
    return plugins


def parse_backends(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_settings(text: str) -> list[Setting]:
    """Parse `mise settings`: key, value and an optional source file"""
    settings = []
    for line in text.splitlines():
        parts = line.split()
        if not parts:
            continue
        settings.append(
            Setting(
                key=parts[0],
                value=parts[1] if len(parts) > 1 else "",
                source=" ".join(parts[2:]) or None,
            )
        )
    return settings


def parse_remote_versions(text: str) -> list[str]:
    """Parse `mise ls-remote`, newest version first"""
    versions = [line.strip() for line in text.splitlines() if line.strip()]
    versions.reverse()
    return versions


# =============================================================================
# JSON documents
# =============================================================================


def parse_tasks(text: str) -> list[Task]:
    """Parse `mise tasks ls --json`"""
    trimmed = text.strip()
    if not trimmed:
        return []

    parsed = json.loads(trimmed)
    if not isinstance(parsed, list):
        return []
    return [
        Task(
            name=item["name"],
            description=item.get("description") or None,
            source=item.get("source") or None,
            aliases=list(item.get("aliases") or []),
            depends=list(item.get("depends") or []),
        )
        for item in parsed
        if isinstance(item, dict)
    ]


def parse_doctor(text: str) -> DoctorResult:
    """Parse `mise doctor --json` as-is; schema drift surfaces as KeyError"""
    return DoctorResult.from_dict(json.loads(text))
