"""Unit tests for CLI utilities including ErrorFormatter."""

import pytest

from lvbuild.cli_utils import ErrorFormatter, PathValidator
from lvbuild.errors import CompileFailed, LinkFailed


class TestErrorFormatter:
    """Tests for ErrorFormatter class."""

    def test_print_error(self, capsys):
        ErrorFormatter.print_error("Release failed", "details here")
        out = capsys.readouterr().out
        assert "✗ Release failed" in out
        assert "details here" in out
        assert ErrorFormatter.RED in out

    def test_print_success(self, capsys):
        ErrorFormatter.print_success("Release successful!")
        assert f"{ErrorFormatter.GREEN}✓ Release successful!" in capsys.readouterr().out

    def test_release_error_names_stage_and_output(self, capsys):
        error = CompileFailed("src/levython.cpp", "Compilation failed for levython.cpp", output="error: boom")

        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_release_error(error)

        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert "stage 'compile'" in out
        assert "[compile] Compilation failed for levython.cpp" in out
        assert "error: boom" in out

    def test_keyboard_interrupt_exit_code(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_keyboard_interrupt()
        assert exc_info.value.code == 130
        assert "interrupted" in capsys.readouterr().out

    def test_unexpected_error_with_traceback(self, capsys):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            with pytest.raises(SystemExit):
                ErrorFormatter.handle_unexpected_error(e, verbose=True)

        out = capsys.readouterr().out
        assert "ValueError: bad value" in out
        assert "Traceback:" in out

    def test_permission_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_permission_error(PermissionError("releases/"))
        assert exc_info.value.code == 1
        assert "Permission denied" in capsys.readouterr().out


class TestReleaseErrorText:
    """Tests for diagnostic text of pipeline errors."""

    def test_message_without_output(self):
        assert str(LinkFailed("Linking failed")) == "[link] Linking failed"

    def test_output_appended_verbatim(self):
        error = LinkFailed("Linking failed", output="ld: cannot find -lssl\n")
        assert str(error) == "[link] Linking failed\nld: cannot find -lssl"


class TestPathValidator:
    """Tests for project directory validation."""

    def test_valid_directory(self, tmp_path):
        PathValidator.validate_project_dir(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            PathValidator.validate_project_dir(tmp_path / "missing")
        assert exc_info.value.code == 2
