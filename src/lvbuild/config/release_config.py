"""
Release configuration.

Defaults describe the Levython source tree. A project may override them with
an lvbuild.ini file in its root:

    [release]
    name = levython
    display_name = Levython
    version = 1.0.2
    sources =
        src/levython.cpp
        src/http_client.cpp
    docs = README.md LICENSE CHANGELOG.md
    release_dir = releases
    build_dir = build
    examples_dir = examples
    extension_dir = vscode-levython

Usage:
    config = ReleaseConfig.load(Path("."))
    print(config.release_basename(HostPlatform.LINUX, Architecture.X64))
"""

import configparser
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ConfigError
from ..packages.platform_utils import Architecture, HostPlatform

CONFIG_FILE_NAME = "lvbuild.ini"
CONFIG_SECTION = "release"

DEFAULT_INSTALLER_SCRIPTS: Dict[HostPlatform, List[str]] = {
    HostPlatform.WINDOWS: ["windows/install.bat", "windows/install.ps1"],
    HostPlatform.LINUX: ["install.sh"],
    HostPlatform.MACOS: ["install.sh"],
}


def _split_list(value: str) -> List[str]:
    """Split a whitespace/newline separated INI value."""
    return [item for item in value.split() if item]


@dataclass
class ReleaseConfig:
    """Inputs and output naming for a release run."""

    project_dir: Path
    name: str = "levython"
    display_name: str = "Levython"
    version: str = "1.0.2"
    sources: List[str] = field(default_factory=lambda: ["src/levython.cpp", "src/http_client.cpp"])
    docs: List[str] = field(default_factory=lambda: ["README.md", "LICENSE", "CHANGELOG.md"])
    installer_scripts: Dict[HostPlatform, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_INSTALLER_SCRIPTS.items()}
    )
    release_dir: str = "releases"
    build_dir: str = "build"
    examples_dir: str = "examples"
    extension_dir: str = "vscode-levython"
    extension_glob: str = "*.vsix"

    @classmethod
    def load(cls, project_dir: Path, config_file: Optional[Path] = None) -> "ReleaseConfig":
        """Load configuration, applying lvbuild.ini overrides if present.

        Args:
            project_dir: Project root
            config_file: Explicit config file (defaults to <project>/lvbuild.ini)

        Raises:
            ConfigError: If the file is unreadable or has invalid values
        """
        project_dir = Path(project_dir).resolve()
        config = cls(project_dir=project_dir)

        ini_path = config_file or project_dir / CONFIG_FILE_NAME
        if not ini_path.exists():
            if config_file is not None:
                raise ConfigError(f"Configuration file not found: {ini_path}")
            return config

        parser = configparser.ConfigParser(interpolation=configparser.ExtendedInterpolation())
        try:
            parser.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigError(f"Failed to parse {ini_path}: {e}") from e

        if CONFIG_SECTION not in parser:
            return config

        section = parser[CONFIG_SECTION]
        overrides = {}
        for key in ("name", "display_name", "version", "release_dir", "build_dir",
                    "examples_dir", "extension_dir", "extension_glob"):
            if key in section:
                overrides[key] = section[key].strip()
        for key in ("sources", "docs"):
            if key in section:
                overrides[key] = _split_list(section[key])

        if "sources" in overrides and not overrides["sources"]:
            raise ConfigError(f"{ini_path}: 'sources' must list at least one file")
        if "version" in overrides and not overrides["version"]:
            raise ConfigError(f"{ini_path}: 'version' must not be empty")

        scripts = dict(config.installer_scripts)
        for host in HostPlatform:
            key = f"installer_scripts.{host.value}"
            if key in section:
                scripts[host] = _split_list(section[key])
                overrides["installer_scripts"] = scripts

        return replace(config, **overrides)

    # Paths -----------------------------------------------------------------

    @property
    def release_path(self) -> Path:
        return self.project_dir / self.release_dir

    @property
    def build_path(self) -> Path:
        return self.project_dir / self.build_dir

    def source_paths(self) -> List[Path]:
        return [self.project_dir / source for source in self.sources]

    def executable_name(self, host: HostPlatform) -> str:
        """Canonical executable name inside a package."""
        return f"{self.name}.exe" if host is HostPlatform.WINDOWS else self.name

    def release_basename(self, host: HostPlatform, arch: Architecture) -> str:
        """Release name, e.g. levython-v1.0.2-windows-x64."""
        return f"{self.name}-v{self.version}-{host}-{arch}"

    def arch_build_dir(self, arch: Architecture) -> Path:
        return self.build_path / arch.value

    def object_dir(self, arch: Architecture) -> Path:
        return self.arch_build_dir(arch) / "obj"

    def built_executable(self, host: HostPlatform, arch: Architecture) -> Path:
        """Where the build stage writes the executable for an architecture."""
        return self.arch_build_dir(arch) / self.executable_name(host)

    def staging_dir(self, host: HostPlatform, arch: Architecture) -> Path:
        return self.build_path / "staging" / self.release_basename(host, arch)

    def release_executable(self, host: HostPlatform, arch: Architecture) -> Path:
        suffix = ".exe" if host is HostPlatform.WINDOWS else ""
        return self.release_path / f"{self.release_basename(host, arch)}{suffix}"

    def archive_path(self, host: HostPlatform, arch: Architecture) -> Path:
        suffix = ".zip" if host is HostPlatform.WINDOWS else ".tar.gz"
        return self.release_path / f"{self.release_basename(host, arch)}{suffix}"

    def installer_path(self, host: HostPlatform, arch: Architecture) -> Path:
        return self.release_path / f"{self.release_basename(host, arch)}-setup.exe"

    def installer_script_paths(self, host: HostPlatform) -> List[Path]:
        return [self.project_dir / script for script in self.installer_scripts.get(host, [])]

    def launcher_script(self, host: HostPlatform) -> Optional[str]:
        """Script name run after self-extraction (relative to the package root)."""
        scripts = self.installer_scripts.get(host, [])
        return Path(scripts[0]).name if scripts else None
