"""
Unit tests for ReleaseConfig.
"""

import pytest
from pathlib import Path

from lvbuild.config import CONFIG_FILE_NAME, ReleaseConfig
from lvbuild.errors import ConfigError
from lvbuild.packages.platform_utils import Architecture, HostPlatform


class TestNaming:
    """Test release artifact naming."""

    @pytest.fixture
    def config(self, tmp_path):
        return ReleaseConfig(project_dir=tmp_path)

    def test_release_basename(self, config):
        assert config.release_basename(HostPlatform.WINDOWS, Architecture.X86) == "levython-v1.0.2-windows-x86"

    def test_windows_outputs(self, config, tmp_path):
        host, arch = HostPlatform.WINDOWS, Architecture.X64
        assert config.executable_name(host) == "levython.exe"
        assert config.release_executable(host, arch) == tmp_path / "releases" / "levython-v1.0.2-windows-x64.exe"
        assert config.archive_path(host, arch) == tmp_path / "releases" / "levython-v1.0.2-windows-x64.zip"
        assert config.installer_path(host, arch) == tmp_path / "releases" / "levython-v1.0.2-windows-x64-setup.exe"

    def test_posix_outputs(self, config, tmp_path):
        host, arch = HostPlatform.MACOS, Architecture.ARM64
        assert config.executable_name(host) == "levython"
        assert config.archive_path(host, arch) == tmp_path / "releases" / "levython-v1.0.2-macos-arm64.tar.gz"
        assert config.built_executable(host, arch) == tmp_path / "build" / "arm64" / "levython"

    def test_build_dirs_per_architecture(self, config):
        assert config.object_dir(Architecture.X86) != config.object_dir(Architecture.X64)
        assert config.staging_dir(HostPlatform.LINUX, Architecture.X64).name == "levython-v1.0.2-linux-x64"

    def test_launcher_script(self, config):
        assert config.launcher_script(HostPlatform.WINDOWS) == "install.bat"
        assert config.launcher_script(HostPlatform.LINUX) == "install.sh"

    def test_installer_scripts_per_host(self, config, tmp_path):
        assert config.installer_script_paths(HostPlatform.WINDOWS) == [
            tmp_path / "windows" / "install.bat",
            tmp_path / "windows" / "install.ps1",
        ]


class TestLoad:
    """Test loading lvbuild.ini overrides."""

    def test_defaults_without_file(self, tmp_path):
        config = ReleaseConfig.load(tmp_path)
        assert config.project_dir == tmp_path.resolve()
        assert config.version == "1.0.2"
        assert config.sources == ["src/levython.cpp", "src/http_client.cpp"]

    def test_overrides(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text(
            "[release]\n"
            "version = 1.1.0\n"
            "sources =\n"
            "    src/levython.cpp\n"
            "    src/http_client.cpp\n"
            "    src/jit.cpp\n"
            "docs = README.md LICENSE\n"
            "release_dir = dist\n"
            "installer_scripts.linux = scripts/install.sh\n"
        )

        config = ReleaseConfig.load(tmp_path)

        assert config.version == "1.1.0"
        assert config.sources == ["src/levython.cpp", "src/http_client.cpp", "src/jit.cpp"]
        assert config.docs == ["README.md", "LICENSE"]
        assert config.release_path == tmp_path.resolve() / "dist"
        assert config.installer_scripts[HostPlatform.LINUX] == ["scripts/install.sh"]
        assert config.installer_scripts[HostPlatform.WINDOWS] == ["windows/install.bat", "windows/install.ps1"]
        assert config.name == "levython"

    def test_interpolation(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text(
            "[release]\nversion = 2.0.0\nrelease_dir = releases-${version}\n"
        )
        assert ReleaseConfig.load(tmp_path).release_dir == "releases-2.0.0"

    def test_other_sections_ignored(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text("[tools]\nseven_zip = 7z\n")
        assert ReleaseConfig.load(tmp_path).version == "1.0.2"

    def test_empty_sources_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text("[release]\nsources =\n")
        with pytest.raises(ConfigError, match="sources"):
            ReleaseConfig.load(tmp_path)

    def test_empty_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text("[release]\nversion =\n")
        with pytest.raises(ConfigError, match="version"):
            ReleaseConfig.load(tmp_path)

    def test_malformed_file(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text("version = 1.0\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            ReleaseConfig.load(tmp_path)

    def test_explicit_file_must_exist(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ReleaseConfig.load(tmp_path, config_file=tmp_path / "custom.ini")

    def test_explicit_file(self, tmp_path):
        custom = tmp_path / "ci.ini"
        custom.write_text("[release]\nbuild_dir = out\n")
        config = ReleaseConfig.load(tmp_path, config_file=custom)
        assert config.build_path == Path(tmp_path).resolve() / "out"
