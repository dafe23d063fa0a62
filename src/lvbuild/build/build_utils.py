"""Build utilities for lvbuild.

This module provides helpers for printing the release summary shown at the
end of a run.
"""

from pathlib import Path
from typing import Optional

from .orchestrator import ReleaseResult


def format_size(size: int) -> str:
    """Human-readable file size (e.g. '1.4 MB')."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class ReleaseSummaryPrinter:
    """Utility class for printing release artifact information."""

    @staticmethod
    def _print_artifact(label: str, path: Optional[Path]) -> None:
        if path is None or not path.exists():
            return
        print(f"    {label:<10} {path.name} ({format_size(path.stat().st_size)})")

    @staticmethod
    def print_summary(result: ReleaseResult) -> None:
        """
        Print every architecture's state and produced files.

        Args:
            result: Result of a release run
        """
        print("Release files:")
        for arch_result in result.results:
            status = str(arch_result.state)
            if arch_result.failed_stage is not None:
                status += f" during {arch_result.failed_stage}"
            print(f"  {arch_result.architecture}: {status}")
            ReleaseSummaryPrinter._print_artifact("Binary:", arch_result.release_executable)
            ReleaseSummaryPrinter._print_artifact("Package:", arch_result.archive)
            ReleaseSummaryPrinter._print_artifact("Installer:", arch_result.installer)
            if arch_result.sfx_skipped_reason:
                print(f"    Installer: skipped ({arch_result.sfx_skipped_reason})")
