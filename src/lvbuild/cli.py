"""
Command-line interface for lvbuild.

This module provides the `lvbuild` CLI tool for building and packaging
Levython releases.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from lvbuild import __version__
from lvbuild.build import ReleaseOrchestrator, ReleaseSummaryPrinter
from lvbuild.cli_utils import ErrorFormatter, PathValidator
from lvbuild.config import ReleaseConfig
from lvbuild.errors import ReleaseError
from lvbuild.log_setup import setup_logging
from lvbuild.packages import (
    LibraryResolver,
    PlatformDetector,
    PlatformError,
    ToolchainLocator,
    parse_architectures,
)


@dataclass
class ReleaseArgs:
    """Arguments for the release command."""

    project_dir: Path
    architectures: List[str] = field(default_factory=lambda: ["auto"])
    skip_build: bool = False
    sfx: bool = False
    clean: bool = False
    smoke_test: bool = False
    release_dir: Optional[str] = None
    verbose: bool = False


@dataclass
class DetectArgs:
    """Arguments for the detect command."""

    project_dir: Path
    architectures: List[str] = field(default_factory=lambda: ["all"])
    verbose: bool = False


def release_command(args: ReleaseArgs) -> None:
    """Build and package release artifacts.

    Examples:
        lvbuild release                    # Build for the host architecture
        lvbuild release -a x64 -a x86      # Build x64 then x86
        lvbuild release -a all --sfx       # All architectures plus installers
        lvbuild release --skip-build       # Package previously built binaries
    """
    try:
        config = ReleaseConfig.load(args.project_dir)
        if args.release_dir:
            config.release_dir = args.release_dir

        log_file = setup_logging(config.build_path, verbose=args.verbose)
        if log_file is not None and args.verbose:
            print(f"Log: {log_file}")

        architectures = parse_architectures(args.architectures)
        orchestrator = ReleaseOrchestrator(config, verbose=args.verbose)
        result = orchestrator.run(
            architectures,
            skip_build=args.skip_build,
            sfx=args.sfx,
            clean=args.clean,
            smoke_test=args.smoke_test,
        )

        print()
        ReleaseSummaryPrinter.print_summary(result)

        if result.success:
            ErrorFormatter.print_success("Release successful!")
            print(f"Release time: {result.build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Release failed!", result.message)
            sys.exit(1)

    except ReleaseError as e:
        ErrorFormatter.handle_release_error(e)
    except PlatformError as e:
        ErrorFormatter.print_error("Unsupported platform", str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def detect_command(args: DetectArgs) -> None:
    """Show the host, toolchain and OpenSSL locations a release would use."""
    try:
        host = PlatformDetector.detect_platform()
        print(f"Host: {host} ({PlatformDetector.detect_architecture()})")

        toolchain = ToolchainLocator(host).locate()
        print(f"Toolchain: {toolchain.describe()}")
        for arch, compiler in toolchain.arch_compilers.items():
            print(f"  {arch}: {compiler}")

        resolver = LibraryResolver(toolchain, host)
        missing = 0
        for arch in parse_architectures(args.architectures):
            try:
                location = resolver.resolve(arch)
                print(f"OpenSSL {arch}: {location.lib_dir} (via {location.source})")
            except ReleaseError as e:
                missing += 1
                print(f"OpenSSL {arch}: not found")
                if args.verbose:
                    print(e.output)
        sys.exit(1 if missing else 0)

    except ReleaseError as e:
        ErrorFormatter.handle_release_error(e)
    except PlatformError as e:
        ErrorFormatter.print_error("Unsupported platform", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def main() -> None:
    """lvbuild - Levython release builder."""
    parser = argparse.ArgumentParser(
        prog="lvbuild",
        description="lvbuild - build and package Levython releases",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"lvbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Release command
    release_parser = subparsers.add_parser(
        "release",
        help="Build executables and package release archives",
    )
    release_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Source tree root (default: current directory)",
    )
    release_parser.add_argument(
        "-a",
        "--arch",
        dest="architectures",
        action="append",
        default=None,
        help="Target architecture: x86, x64, arm64, auto or all (repeatable, default: auto)",
    )
    release_parser.add_argument(
        "--skip-build",
        action="store_true",
        help="Package previously built executables without compiling",
    )
    release_parser.add_argument(
        "--sfx",
        action="store_true",
        help="Also create self-extracting installers (requires 7-Zip)",
    )
    release_parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Remove previous object files before building",
    )
    release_parser.add_argument(
        "--smoke-test",
        action="store_true",
        help="Run each host-compatible executable with --version after building",
    )
    release_parser.add_argument(
        "--release-dir",
        default=None,
        help="Output directory relative to the project (default: releases)",
    )
    release_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    # Detect command
    detect_parser = subparsers.add_parser(
        "detect",
        help="Show the toolchain and OpenSSL installs that would be used",
    )
    detect_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Source tree root (default: current directory)",
    )
    detect_parser.add_argument(
        "-a",
        "--arch",
        dest="architectures",
        action="append",
        default=None,
        help="Architectures to check (default: all)",
    )
    detect_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show searched locations",
    )

    # Parse arguments
    parsed_args = parser.parse_args()

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    # Validate project directory exists
    if hasattr(parsed_args, "project_dir"):
        PathValidator.validate_project_dir(parsed_args.project_dir)

    # Execute command
    if parsed_args.command == "release":
        release_args = ReleaseArgs(
            project_dir=parsed_args.project_dir,
            architectures=parsed_args.architectures or ["auto"],
            skip_build=parsed_args.skip_build,
            sfx=parsed_args.sfx,
            clean=parsed_args.clean,
            smoke_test=parsed_args.smoke_test,
            release_dir=parsed_args.release_dir,
            verbose=parsed_args.verbose,
        )
        release_command(release_args)
    elif parsed_args.command == "detect":
        detect_args = DetectArgs(
            project_dir=parsed_args.project_dir,
            architectures=parsed_args.architectures or ["all"],
            verbose=parsed_args.verbose,
        )
        detect_command(detect_args)


if __name__ == "__main__":
    main()
