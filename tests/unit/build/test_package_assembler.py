"""
Unit tests for PackageAssembler.

Tests:
- Required inputs (executable, installer scripts)
- Optional inputs appear only when present
- Existing archives and staging directories are replaced
- Repeated runs produce the same archive contents
"""

import os
import tarfile
import zipfile

import pytest
from unittest.mock import patch

from lvbuild.build.package_assembler import PackageAssembler
from lvbuild.config.release_config import ReleaseConfig
from lvbuild.errors import PackageFailed, PackageSourceMissing
from lvbuild.packages.platform_utils import Architecture, HostPlatform


@pytest.fixture
def project(tmp_path):
    """Create a minimal Levython source tree with a built x64 executable."""
    (tmp_path / "install.sh").write_text("#!/bin/sh\necho install\n")
    (tmp_path / "README.md").write_text("# Levython\n")
    (tmp_path / "LICENSE").write_text("MIT\n")
    examples = tmp_path / "examples"
    examples.mkdir()
    (examples / "hello.levy").write_text('say("hello")\n')
    ext = tmp_path / "vscode-levython"
    ext.mkdir()
    (ext / "levython-1.0.0.vsix").write_bytes(b"PK\x03\x04vsix")

    exe = tmp_path / "build" / "x64" / "levython"
    exe.parent.mkdir(parents=True)
    exe.write_bytes(b"\x7fELF" + b"\0" * 60)
    return tmp_path


@pytest.fixture
def config(project):
    return ReleaseConfig(project_dir=project)


def make_assembler(config, host=HostPlatform.LINUX):
    return PackageAssembler(config, host, show_progress=False)


def tar_contents(path):
    with tarfile.open(path, "r:gz") as tf:
        return {
            member.name: (tf.extractfile(member).read() if member.isfile() else None)
            for member in tf.getmembers()
        }


class TestPackageContents:
    """Test which files end up in the package."""

    def test_linux_package(self, config, project):
        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")

        assert result.archive_path == project / "releases" / "levython-v1.0.2-linux-x64.tar.gz"
        contents = tar_contents(result.archive_path)
        assert set(contents) == {
            "levython",
            "install.sh",
            "README.md",
            "LICENSE",
            "examples",
            "examples/hello.levy",
            "extensions",
            "extensions/levython-1.0.0.vsix",
        }
        assert contents["levython"] == b"\x7fELF" + b"\0" * 60

    def test_missing_optional_files_are_skipped(self, config, project):
        """CHANGELOG.md does not exist in the fixture tree."""
        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")
        assert "CHANGELOG.md" not in tar_contents(result.archive_path)
        assert "CHANGELOG.md" not in result.manifest.entries()

    def test_no_examples_entry_without_examples_dir(self, config, project):
        for child in (project / "examples").iterdir():
            child.unlink()
        (project / "examples").rmdir()

        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")

        assert not any(name.startswith("examples") for name in tar_contents(result.archive_path))

    def test_no_extension_without_bundle(self, config, project):
        (project / "vscode-levython" / "levython-1.0.0.vsix").unlink()
        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")
        assert "extensions" not in tar_contents(result.archive_path)

    def test_executable_mode_preserved(self, config, project):
        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")
        with tarfile.open(result.archive_path, "r:gz") as tf:
            assert tf.getmember("levython").mode & 0o111

    def test_windows_package(self, config, project):
        windows = project / "windows"
        windows.mkdir()
        (windows / "install.bat").write_text("@echo off\n")
        (windows / "install.ps1").write_text("Write-Host install\n")
        exe = project / "build" / "x64" / "levython.exe"
        exe.write_bytes(b"MZ" + b"\0" * 62)

        result = make_assembler(config, HostPlatform.WINDOWS).assemble(Architecture.X64, exe)

        assert result.archive_path.name == "levython-v1.0.2-windows-x64.zip"
        with zipfile.ZipFile(result.archive_path) as zf:
            names = set(zf.namelist())
            assert zf.read("levython.exe") == b"MZ" + b"\0" * 62
        assert {"levython.exe", "install.bat", "install.ps1", "README.md"} <= names
        assert "install.sh" not in names

    def test_release_executable_published(self, config, project):
        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")
        assert result.release_executable == project / "releases" / "levython-v1.0.2-linux-x64"
        assert result.release_executable.read_bytes() == b"\x7fELF" + b"\0" * 60

    def test_newest_extension_bundle(self, config, project):
        ext_dir = project / "vscode-levython"
        old = ext_dir / "levython-1.0.0.vsix"
        new = ext_dir / "levython-1.1.0.vsix"
        new.write_bytes(b"PK\x03\x04new")
        os.utime(old, (1_000_000, 1_000_000))
        os.utime(new, (2_000_000, 2_000_000))

        assert make_assembler(config).find_extension() == new


class TestRequiredInputs:
    """Test required input validation."""

    def test_missing_executable(self, config, project):
        with pytest.raises(PackageSourceMissing, match="Built executable not found"):
            make_assembler(config).assemble(Architecture.X86, project / "build" / "x86" / "levython")
        assert not (project / "releases" / "levython-v1.0.2-linux-x86.tar.gz").exists()

    def test_missing_installer_script(self, config, project):
        (project / "install.sh").unlink()
        with pytest.raises(PackageSourceMissing, match="install.sh"):
            make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")


class TestRebuild:
    """Test that previous outputs are replaced, not merged."""

    def test_existing_archive_replaced(self, config, project):
        archive = config.archive_path(HostPlatform.LINUX, Architecture.X64)
        archive.parent.mkdir(parents=True)
        archive.write_bytes(b"not an archive")

        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")

        assert "levython" in tar_contents(result.archive_path)
        assert not archive.with_name(archive.name + ".partial").exists()

    def test_stale_staging_files_removed(self, config, project):
        staging = config.staging_dir(HostPlatform.LINUX, Architecture.X64)
        staging.mkdir(parents=True)
        (staging / "leftover.txt").write_text("stale")

        result = make_assembler(config).assemble(Architecture.X64, project / "build" / "x64" / "levython")

        assert "leftover.txt" not in tar_contents(result.archive_path)
        assert not (staging / "leftover.txt").exists()

    def test_repeated_runs_have_equal_contents(self, config, project):
        exe = project / "build" / "x64" / "levython"
        assembler = make_assembler(config)

        first = tar_contents(assembler.assemble(Architecture.X64, exe).archive_path)
        second = tar_contents(assembler.assemble(Architecture.X64, exe).archive_path)

        assert len(first) == len(second)
        assert first == second


class TestArchiveErrors:
    """Test archive library failures."""

    @pytest.fixture
    def staging(self, tmp_path):
        staging = tmp_path / "staging"
        staging.mkdir()
        (staging / "levython").write_bytes(b"\x7fELF")
        return staging

    def test_tar_error_reported_as_package_failure(self, config, staging, tmp_path):
        archive = tmp_path / "out" / "levython.tar.gz"

        with patch.object(tarfile.TarFile, "add", side_effect=tarfile.TarError("bad member")):
            with pytest.raises(PackageFailed, match="bad member"):
                make_assembler(config).create_archive(staging, archive)

        assert not archive.exists()
        assert not archive.with_name(archive.name + ".partial").exists()

    def test_zip_error_reported_as_package_failure(self, config, staging, tmp_path):
        archive = tmp_path / "out" / "levython.zip"

        with patch.object(zipfile.ZipFile, "write", side_effect=zipfile.LargeZipFile("too large")):
            with pytest.raises(PackageFailed, match="too large"):
                make_assembler(config, HostPlatform.WINDOWS).create_archive(staging, archive)

        assert not archive.exists()
