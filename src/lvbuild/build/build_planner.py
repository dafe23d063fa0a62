"""Per-architecture compile and link.

The build planner turns one BuildTarget into one executable:

1. Compile each source unit to an object file, in order, reporting the
   elapsed time of every unit. The first failing unit aborts the target;
   later units are never attempted.
2. Link all objects once with the architecture flag, static runtime flags
   and whole-program link-time optimization.
3. Verify that the executable exists and is non-empty. A zero exit code
   alone is not trusted.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import BuildIncomplete, CompileFailed, LinkFailed, ToolchainNotFound
from ..packages.library_resolver import LibraryLocation
from ..packages.platform_utils import Architecture, HostPlatform
from ..packages.toolchain import ToolchainDescriptor, load_msvc_environment
from ..process_runner import ProcessRunner
from .flag_builder import FlagBuilder, FlagBuilderError


@dataclass(frozen=True)
class BuildTarget:
    """One architecture's build request."""

    architecture: Architecture
    output_path: Path
    source_files: Tuple[Path, ...]
    object_dir: Path


@dataclass(frozen=True)
class ObjectArtifact:
    """A compiled unit owned by the BuildTarget that produced it."""

    source: Path
    object_path: Path
    elapsed: float


@dataclass
class BuildOutput:
    """Result of a successful BuildTarget."""

    executable: Path
    objects: List[ObjectArtifact]
    compile_time: float
    link_time: float

    @property
    def size(self) -> int:
        return self.executable.stat().st_size


class BuildPlanner:
    """
    Compiles and links one BuildTarget with a discovered toolchain.

    Example usage:
        planner = BuildPlanner(toolchain, HostPlatform.LINUX)
        output = planner.build(target, library)
        print(f"Built {output.executable} ({output.size} bytes)")
    """

    def __init__(
        self,
        toolchain: ToolchainDescriptor,
        host: HostPlatform,
        runner: Optional[ProcessRunner] = None,
        show_progress: bool = True,
        keep_objects: bool = False,
        host_arch: Optional[Architecture] = None,
    ):
        """
        Initialize build planner.

        Args:
            toolchain: Toolchain used for every invocation
            host: Host platform (also the target OS)
            runner: Process runner for compiler/linker calls
            show_progress: Print per-unit progress
            keep_objects: Keep object files after a successful link
            host_arch: Host CPU architecture (detected when omitted)
        """
        self.toolchain = toolchain
        self.host = host
        self.runner = runner or ProcessRunner()
        self.show_progress = show_progress
        self.keep_objects = keep_objects
        self.host_arch = host_arch

    @staticmethod
    def object_path_for(source: Path, object_dir: Path, index: int) -> Path:
        """Object file path for a unit; the index keeps same-named units apart."""
        return object_dir / f"{index:02d}_{source.stem}.o"

    def build(
        self,
        target: BuildTarget,
        library: Optional[LibraryLocation] = None,
        clean: bool = False,
    ) -> BuildOutput:
        """
        Compile and link a BuildTarget.

        Args:
            target: Architecture, sources and output path
            library: OpenSSL location for include and library paths
            clean: Remove previous objects before compiling

        Returns:
            BuildOutput describing the verified executable

        Raises:
            CompileFailed: If any unit fails (identifies the unit)
            LinkFailed: If the link step exits non-zero
            ToolchainNotFound: If the toolchain cannot target the architecture
            BuildIncomplete: If the executable is missing or empty
        """
        try:
            flags = FlagBuilder(
                self.toolchain, self.host, target.architecture, library, host_arch=self.host_arch
            )
            flags.arch_flags()
        except FlagBuilderError as e:
            raise ToolchainNotFound(str(e)) from e

        env = load_msvc_environment(self.toolchain, target.architecture, self.runner)

        if clean and target.object_dir.exists():
            shutil.rmtree(target.object_dir)
        target.object_dir.mkdir(parents=True, exist_ok=True)
        target.output_path.parent.mkdir(parents=True, exist_ok=True)

        objects = self.compile_all(target, flags, env)
        compile_time = sum(obj.elapsed for obj in objects)

        link_time = self.link(target, flags, objects, env)
        self.verify_output(target)

        if not self.keep_objects:
            for obj in objects:
                obj.object_path.unlink(missing_ok=True)

        return BuildOutput(
            executable=target.output_path,
            objects=objects,
            compile_time=compile_time,
            link_time=link_time,
        )

    def compile_all(self, target: BuildTarget, flags: FlagBuilder, env=None) -> List[ObjectArtifact]:
        """Compile every unit in order, stopping at the first failure."""
        objects: List[ObjectArtifact] = []
        total = len(target.source_files)

        for index, source in enumerate(target.source_files, start=1):
            if self.show_progress:
                print(f"      [{index}/{total}] Compiling {source.name}...", end="", flush=True)

            if not source.is_file():
                if self.show_progress:
                    print(" missing")
                raise CompileFailed(source, f"Source file not found: {source}")

            object_path = self.object_path_for(source, target.object_dir, index)
            result = self.runner.run(flags.compile_command(source, object_path), env=env)

            if not result.success:
                if self.show_progress:
                    print(" failed")
                raise CompileFailed(
                    source,
                    f"Compilation failed for {source.name} ({target.architecture}, exit {result.returncode})",
                    output=result.output,
                )

            if self.show_progress:
                print(f" {result.elapsed:.1f}s")

            objects.append(ObjectArtifact(source=source, object_path=object_path, elapsed=result.elapsed))

        return objects

    def link(
        self,
        target: BuildTarget,
        flags: FlagBuilder,
        objects: List[ObjectArtifact],
        env=None,
    ) -> float:
        """Link all objects into the target executable. Returns elapsed time."""
        if self.show_progress:
            print(f"      Linking {target.output_path.name} ({target.architecture}, LTO)...", end="", flush=True)

        # A stale executable must not satisfy the output check.
        target.output_path.unlink(missing_ok=True)

        command = flags.link_command([obj.object_path for obj in objects], target.output_path)
        result = self.runner.run(command, env=env)

        if not result.success:
            if self.show_progress:
                print(" failed")
            raise LinkFailed(
                f"Linking failed for {target.output_path.name} ({target.architecture}, exit {result.returncode})",
                output=result.output,
            )

        if self.show_progress:
            print(f" {result.elapsed:.1f}s")
        return result.elapsed

    @staticmethod
    def verify_output(target: BuildTarget) -> None:
        """Check the executable exists and is non-empty."""
        output = target.output_path
        if not output.is_file():
            raise BuildIncomplete(f"Linker reported success but {output} was not created")
        if output.stat().st_size == 0:
            raise BuildIncomplete(f"Linker reported success but {output} is empty")
