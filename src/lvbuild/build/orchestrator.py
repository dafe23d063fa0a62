"""
Release orchestration.

This module coordinates a complete multi-architecture release:

1. Locate a toolchain (once, only when building)
2. For each requested architecture, in order:
   a. Resolve OpenSSL for the architecture
   b. Compile and link the executable (BuildPlanner)
   c. Stage and archive the package (PackageAssembler)
   d. Optionally build the self-extracting installer (SelfExtractorAssembler)

Per-architecture state machine:

    PENDING -> BUILDING -> PACKAGING -> ASSEMBLING_SFX -> DONE
                  |            |              |
                  +------------+--------------+--> FAILED

Failure policy:
    - Toolchain, dependency, compile, link and incomplete-build failures abort
      the whole run; later architectures stay PENDING.
    - Packaging failures (and SFX failures other than a missing archiver or
      stub module) fail that architecture only; the run continues.
    - A missing archiver or stub module skips the installer and is reported.
      Installers are Windows-only; other hosts report them as skipped.
    - Artifacts already written are never rolled back.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config.release_config import ReleaseConfig
from ..errors import BUILD_STAGE_ERRORS, NON_FATAL_ERRORS, ArchiverUnavailable, ReleaseError
from ..packages.library_resolver import LibraryResolver
from ..packages.platform_utils import Architecture, HostPlatform, PlatformDetector, PlatformError
from ..packages.toolchain import ToolchainDescriptor, ToolchainLocator
from ..process_runner import ProcessRunner
from .build_planner import BuildPlanner, BuildTarget
from .package_assembler import PackageAssembler
from .sfx_assembler import SelfExtractorAssembler

# Seconds a built executable gets to answer --version
SMOKE_TEST_TIMEOUT = 30


class StageState(str, Enum):
    """Pipeline state of one architecture."""

    PENDING = "pending"
    BUILDING = "building"
    PACKAGING = "packaging"
    ASSEMBLING_SFX = "assembling-sfx"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class ArchitectureResult:
    """Outcome of one architecture's pipeline."""

    architecture: Architecture
    state: StageState = StageState.PENDING
    executable: Optional[Path] = None
    release_executable: Optional[Path] = None
    archive: Optional[Path] = None
    installer: Optional[Path] = None
    sfx_skipped_reason: Optional[str] = None
    failed_stage: Optional[StageState] = None
    error: Optional[Exception] = None
    build_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.state is StageState.DONE

    def fail(self, error: Exception) -> None:
        self.failed_stage = self.state
        self.state = StageState.FAILED
        self.error = error


@dataclass
class ReleaseResult:
    """Result of a complete release run."""

    results: List[ArchitectureResult] = field(default_factory=list)
    aborted: bool = False
    build_time: float = 0.0
    message: str = ""
    toolchain: Optional[ToolchainDescriptor] = None

    @property
    def success(self) -> bool:
        return not self.aborted and bool(self.results) and all(r.success for r in self.results)

    def failures(self) -> List[ArchitectureResult]:
        return [r for r in self.results if r.state is StageState.FAILED]


ResolverFactory = Callable[[ToolchainDescriptor, HostPlatform], LibraryResolver]


class ReleaseOrchestrator:
    """
    Orchestrates the release of every requested architecture.

    Example usage:
        orchestrator = ReleaseOrchestrator(ReleaseConfig.load(Path(".")))
        result = orchestrator.run([Architecture.X64, Architecture.X86], sfx=True)
        if result.success:
            for arch_result in result.results:
                print(arch_result.archive)
    """

    def __init__(
        self,
        config: ReleaseConfig,
        host: Optional[HostPlatform] = None,
        locator: Optional[ToolchainLocator] = None,
        resolver_factory: Optional[ResolverFactory] = None,
        runner: Optional[ProcessRunner] = None,
        sfx_assembler: Optional[SelfExtractorAssembler] = None,
        verbose: bool = False,
    ):
        """
        Initialize release orchestrator.

        Args:
            config: Release configuration
            host: Host platform (detected when omitted)
            locator: Toolchain locator (default: ToolchainLocator for host)
            resolver_factory: Builds a LibraryResolver for the toolchain
            runner: Process runner shared by every stage
            sfx_assembler: Self-extractor assembler (default: 7-Zip based)
            verbose: Enable verbose output
        """
        self.config = config
        self.host = host or PlatformDetector.detect_platform()
        self.runner = runner or ProcessRunner()
        self.locator = locator or ToolchainLocator(self.host, runner=self.runner)
        self.resolver_factory = resolver_factory or (lambda tc, host: LibraryResolver(tc, host))
        self.sfx_assembler = sfx_assembler or SelfExtractorAssembler(self.runner, show_progress=True)
        self.verbose = verbose
        self.assembler = PackageAssembler(config, self.host, show_progress=verbose)

    def run(
        self,
        architectures: Sequence[Architecture],
        skip_build: bool = False,
        sfx: bool = False,
        clean: bool = False,
        smoke_test: bool = False,
    ) -> ReleaseResult:
        """
        Execute the release for each architecture in order.

        Args:
            architectures: Target architectures, processed in this order
            skip_build: Package previously built executables; the toolchain
                is never located or invoked
            sfx: Also build self-extracting installers
            clean: Remove previous objects before compiling
            smoke_test: Run built executables with --version when the host
                can execute them

        Returns:
            ReleaseResult with one ArchitectureResult per architecture
        """
        start_time = time.time()
        release = ReleaseResult(results=[ArchitectureResult(arch) for arch in architectures])
        current: Optional[ArchitectureResult] = None

        print(f"{self.config.display_name} v{self.config.version} release ({self.host}: "
              + ", ".join(str(arch) for arch in architectures) + ")")

        try:
            planner = None
            resolver = None
            if not skip_build:
                print("Locating toolchain...")
                release.toolchain = self.locator.locate()
                print(f"      Toolchain: {release.toolchain.describe()}")
                resolver = self.resolver_factory(release.toolchain, self.host)
                planner = BuildPlanner(
                    release.toolchain,
                    self.host,
                    runner=self.runner,
                    show_progress=True,
                    keep_objects=self.verbose,
                )

            for index, arch_result in enumerate(release.results, start=1):
                current = arch_result
                print()
                print(f"[{index}/{len(release.results)}] {arch_result.architecture}")
                self._run_architecture(arch_result, planner, resolver, sfx, clean, smoke_test)

        except BUILD_STAGE_ERRORS as e:
            if current is not None and current.state is not StageState.FAILED:
                current.fail(e)
            release.aborted = True
            release.message = str(e)
            logging.error(f"Release aborted: {e}")

        release.build_time = time.time() - start_time
        if not release.aborted:
            failures = release.failures()
            if failures:
                release.message = "\n".join(
                    f"{r.architecture}: {r.error}" for r in failures
                )
            else:
                release.message = "Release successful"
        return release

    def _run_architecture(
        self,
        result: ArchitectureResult,
        planner: Optional[BuildPlanner],
        resolver: Optional[LibraryResolver],
        sfx: bool,
        clean: bool,
        smoke_test: bool,
    ) -> None:
        """Drive one architecture through its stages.

        Build-stage errors propagate to run(); later-stage errors are recorded
        on the result.
        """
        arch = result.architecture
        arch_start = time.time()
        executable = self.config.built_executable(self.host, arch)

        if planner is not None and resolver is not None:
            result.state = StageState.BUILDING
            try:
                print("      Resolving OpenSSL...")
                library = resolver.resolve(arch)
                if self.verbose:
                    print(f"      OpenSSL: {library.lib_dir}")

                target = BuildTarget(
                    architecture=arch,
                    output_path=executable,
                    source_files=tuple(self.config.source_paths()),
                    object_dir=self.config.object_dir(arch),
                )
                output = planner.build(target, library, clean=clean)
            except BUILD_STAGE_ERRORS as e:
                result.fail(e)
                result.build_time = time.time() - arch_start
                raise

            print(f"      Built {output.executable.name}: {output.size:,} bytes "
                  + f"(compile {output.compile_time:.1f}s, link {output.link_time:.1f}s)")
            if smoke_test:
                self._smoke_test(arch, output.executable)
        else:
            print(f"      Skipping build, using {executable}")

        result.executable = executable
        result.state = StageState.PACKAGING
        try:
            package = self.assembler.assemble(arch, executable)
        except (ReleaseError, OSError) as e:
            result.fail(e)
            result.build_time = time.time() - arch_start
            logging.error(f"Packaging failed for {arch}: {e}")
            print(f"      Packaging failed: {e}")
            return

        result.archive = package.archive_path
        result.release_executable = package.release_executable
        print(f"      Package: {package.archive_path.name} ({package.archive_size:,} bytes)")

        if sfx:
            result.state = StageState.ASSEMBLING_SFX
            try:
                if self.host is not HostPlatform.WINDOWS:
                    raise ArchiverUnavailable(
                        f"Self-extracting installers are only built on Windows hosts, not {self.host}"
                    )
                blob = self.sfx_assembler.assemble(
                    staging_dir=package.staging_dir,
                    output=self.config.installer_path(self.host, arch),
                    title=f"{self.config.display_name} {self.config.version} Setup",
                    prompt=f"Install {self.config.display_name} {self.config.version} ({arch})?",
                    run_program=self.config.launcher_script(self.host) or self.config.executable_name(self.host),
                    work_dir=self.config.build_path,
                )
                result.installer = blob.path
                print(f"      Installer: {blob.path.name} ({blob.total_size:,} bytes)")
            except NON_FATAL_ERRORS as e:
                result.sfx_skipped_reason = e.message
                logging.warning(f"Installer skipped for {arch}: {e}")
                print(f"      Installer unavailable: {e.message}")
            except (ReleaseError, OSError) as e:
                result.fail(e)
                result.build_time = time.time() - arch_start
                logging.error(f"Installer failed for {arch}: {e}")
                print(f"      Installer failed: {e}")
                return

        result.state = StageState.DONE
        result.build_time = time.time() - arch_start

    def _smoke_test(self, arch: Architecture, executable: Path) -> None:
        """Run the executable with --version if the host can execute it."""
        try:
            host_arch = PlatformDetector.detect_architecture()
        except PlatformError:
            return
        if host_arch is not arch:
            print(f"      Smoke test skipped ({arch} binary on {host_arch} host)")
            return

        result = self.runner.run([executable, "--version"], timeout=SMOKE_TEST_TIMEOUT)
        if result.success:
            first_line = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
            print(f"      Smoke test: {first_line or 'ok'}")
        else:
            logging.warning(f"Smoke test failed for {executable}: {result.output}")
            print(f"      Warning: {executable.name} --version exited with {result.returncode}")
