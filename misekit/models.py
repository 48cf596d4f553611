from dataclasses import dataclass, field, fields
from typing import Any, Optional


@dataclass
class MiseResult:
    """Captured output of a single mise invocation"""

    stdout: str
    stderr: str
    exit_code: Optional[int] = 0


@dataclass
class ToolVersion:
    """One installed (or requested) version of a tool"""

    version: str
    requested_version: Optional[str] = None
    install_path: Optional[str] = None
    source_path: Optional[str] = None  # Config file that requested this version
    is_active: bool = False
    is_installed: bool = True

    @property
    def is_global(self) -> bool:
        """Requested from the global mise config rather than a project file"""
        return bool(self.source_path) and "config.toml" in self.source_path


@dataclass
class InstalledTool:
    """A tool name with its versions, active versions first"""

    name: str
    versions: list[ToolVersion] = None

    def __post_init__(self):
        if self.versions is None:
            self.versions = []

    @property
    def active_version(self) -> Optional[ToolVersion]:
        return next((v for v in self.versions if v.is_active), None)


@dataclass
class OutdatedTool:
    """A tool whose installed version lags the latest release"""

    name: str
    current_version: str = ""
    latest_version: str = ""
    requested_version: Optional[str] = None
    source_path: Optional[str] = None
    install_path: Optional[str] = None


@dataclass
class Plugin:
    """An installed plugin and the git URL it came from"""

    name: str
    url: Optional[str] = None


@dataclass
class RegistryEntry:
    """A catalog entry from the mise registry"""

    name: str
    identifier: Optional[str] = None  # First backend, e.g. "aqua:BurntSushi/ripgrep"
    description: Optional[str] = None
    url: Optional[str] = None
    backends: Optional[list[str]] = None


@dataclass
class Setting:
    """A configuration key/value pair"""

    key: str
    value: str
    source: Optional[str] = None

    @property
    def is_boolean(self) -> bool:
        return self.value in ("true", "false")


@dataclass
class Task:
    """A task defined in a mise config"""

    name: str
    description: Optional[str] = None
    source: Optional[str] = None
    aliases: list[str] = None
    depends: list[str] = None

    def __post_init__(self):
        if self.aliases is None:
            self.aliases = []
        if self.depends is None:
            self.depends = []


def _pick(cls, data: dict):
    """Construct a dataclass from the keys it declares, ignoring extras"""
    return cls(**{f.name: data[f.name] for f in fields(cls)})


@dataclass
class DoctorDirs:
    cache: str
    config: str
    data: str
    shims: str
    state: str


@dataclass
class BuildInfo:
    target: str
    features: str
    built: str
    rust_version: str
    profile: str


@dataclass
class ShellInfo:
    name: str
    version: str


@dataclass
class DoctorResult:
    """Environment diagnostic snapshot reported by `mise doctor --json`"""

    version: str
    activated: bool
    dirs: DoctorDirs
    config_files: list[str]
    env_vars: dict[str, str]
    toolset: dict[str, list[dict[str, Any]]]
    self_update_available: bool = False
    shims_on_path: bool = False
    ignored_config_files: list[str] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)
    build_info: Optional[BuildInfo] = None
    shell: Optional[ShellInfo] = None
    aqua: Optional[dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DoctorResult":
        """Build from the decoded doctor payload, trusting mise's schema"""
        build_info = data.get("build_info")
        shell = data.get("shell")
        return cls(
            version=data["version"],
            activated=data["activated"],
            dirs=_pick(DoctorDirs, data["dirs"]),
            config_files=data["config_files"],
            env_vars=data["env_vars"],
            toolset=data["toolset"],
            self_update_available=bool(data.get("self_update_available")),
            shims_on_path=bool(data.get("shims_on_path")),
            ignored_config_files=data.get("ignored_config_files", []),
            paths=data.get("paths", []),
            settings=data.get("settings", {}),
            build_info=_pick(BuildInfo, build_info) if build_info else None,
            shell=_pick(ShellInfo, shell) if shell else None,
            aqua=data.get("aqua"),
        )
