"""
Unit tests for the lvbuild command-line interface.
"""

import pytest
from pathlib import Path
from unittest.mock import patch

from lvbuild import __version__
from lvbuild.build.orchestrator import ArchitectureResult, ReleaseResult, StageState
from lvbuild.cli import main
from lvbuild.errors import DependencyNotFound
from lvbuild.packages.library_resolver import LibraryLocation
from lvbuild.packages.platform_utils import Architecture
from lvbuild.packages.toolchain import CompilerKind, ToolchainDescriptor


def run_cli(*args):
    """Run main() with the given arguments and return the exit code."""
    with patch("sys.argv", ["lvbuild", *args]):
        with pytest.raises(SystemExit) as exc_info:
            main()
    return exc_info.value.code


@pytest.fixture
def orchestrator():
    with patch("lvbuild.cli.setup_logging", return_value=None), \
            patch("lvbuild.cli.ReleaseOrchestrator") as orchestrator_class:
        yield orchestrator_class


def done(arch):
    return ArchitectureResult(arch, state=StageState.DONE)


class TestTopLevel:
    """Test top-level arguments."""

    def test_no_command_prints_help(self, capsys):
        assert run_cli() == 0
        assert "usage: lvbuild" in capsys.readouterr().out

    def test_version(self, capsys):
        assert run_cli("--version") == 0
        assert f"lvbuild {__version__}" in capsys.readouterr().out

    def test_missing_project_dir(self, tmp_path, capsys):
        assert run_cli("release", str(tmp_path / "nope")) == 2
        assert "Path does not exist" in capsys.readouterr().out

    def test_project_dir_is_file(self, tmp_path):
        file_path = tmp_path / "file.txt"
        file_path.write_text("")
        assert run_cli("release", str(file_path)) == 2


class TestReleaseCommand:
    """Test the release command."""

    def test_success(self, tmp_path, orchestrator, capsys):
        orchestrator.return_value.run.return_value = ReleaseResult(results=[done(Architecture.X64)])

        assert run_cli("release", str(tmp_path), "-a", "x64") == 0

        assert "Release successful!" in capsys.readouterr().out

    def test_arguments_forwarded(self, tmp_path, orchestrator):
        orchestrator.return_value.run.return_value = ReleaseResult(
            results=[done(Architecture.X64), done(Architecture.X86)]
        )

        run_cli("release", str(tmp_path), "-a", "x64", "--arch", "x86", "--sfx", "--skip-build", "-c")

        args, kwargs = orchestrator.return_value.run.call_args
        assert args[0] == [Architecture.X64, Architecture.X86]
        assert kwargs == {"skip_build": True, "sfx": True, "clean": True, "smoke_test": False}

    def test_release_dir_override(self, tmp_path, orchestrator):
        orchestrator.return_value.run.return_value = ReleaseResult(results=[done(Architecture.X64)])

        run_cli("release", str(tmp_path), "-a", "x64", "--release-dir", "dist")

        config = orchestrator.call_args[0][0]
        assert config.release_path == tmp_path.resolve() / "dist"

    def test_failure_exit_code(self, tmp_path, orchestrator, capsys):
        failed = ArchitectureResult(Architecture.X86, state=StageState.FAILED)
        failed.failed_stage = StageState.BUILDING
        orchestrator.return_value.run.return_value = ReleaseResult(
            results=[failed],
            aborted=True,
            message=str(DependencyNotFound("OpenSSL not found for x86.")),
        )

        assert run_cli("release", str(tmp_path), "-a", "x86") == 1

        out = capsys.readouterr().out
        assert "Release failed!" in out
        assert "[dependency] OpenSSL not found for x86." in out
        assert "x86: failed during building" in out

    def test_unknown_architecture(self, tmp_path, orchestrator, capsys):
        assert run_cli("release", str(tmp_path), "-a", "sparc") == 1
        assert "Unknown architecture" in capsys.readouterr().out
        orchestrator.return_value.run.assert_not_called()

    def test_invalid_config(self, tmp_path, orchestrator, capsys):
        (tmp_path / "lvbuild.ini").write_text("[release]\nsources =\n")

        assert run_cli("release", str(tmp_path)) == 1

        assert "stage 'config'" in capsys.readouterr().out

    def test_keyboard_interrupt(self, tmp_path, orchestrator):
        orchestrator.return_value.run.side_effect = KeyboardInterrupt
        assert run_cli("release", str(tmp_path), "-a", "x64") == 130

    def test_unexpected_error(self, tmp_path, orchestrator, capsys):
        orchestrator.return_value.run.side_effect = RuntimeError("boom")
        assert run_cli("release", str(tmp_path), "-a", "x64") == 1
        assert "RuntimeError: boom" in capsys.readouterr().out


class TestDetectCommand:
    """Test the detect command."""

    @pytest.fixture
    def discovery(self, tmp_path):
        toolchain = ToolchainDescriptor(CompilerKind.GCC, Path("/usr/bin/g++"), supports_m32_m64=True)

        def resolve(arch):
            if arch is Architecture.X64:
                return LibraryLocation(tmp_path / "include", tmp_path / "lib", arch, "system install")
            raise DependencyNotFound(f"OpenSSL not found for {arch}.", output="Searched:\n  - /usr")

        with patch("lvbuild.cli.ToolchainLocator") as locator_class, \
                patch("lvbuild.cli.LibraryResolver") as resolver_class:
            locator_class.return_value.locate.return_value = toolchain
            resolver_class.return_value.resolve.side_effect = resolve
            yield locator_class, resolver_class

    def test_all_found(self, tmp_path, discovery, capsys):
        assert run_cli("detect", str(tmp_path), "-a", "x64") == 0
        out = capsys.readouterr().out
        assert "Toolchain: gcc (/usr/bin/g++)" in out
        assert "OpenSSL x64:" in out

    def test_missing_architecture(self, tmp_path, discovery, capsys):
        assert run_cli("detect", str(tmp_path), "-a", "x64", "-a", "x86", "-v") == 1
        out = capsys.readouterr().out
        assert "OpenSSL x86: not found" in out
        assert "Searched:" in out
