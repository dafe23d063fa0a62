"""Toolchain discovery for native C++ builds.

This module locates a C++ compiler able to build the runtime. Strategies are
tried in a fixed preference order and the first one that resolves wins:

1. CXX environment override
2. GCC-like compiler (MinGW-w64 on Windows, system g++ elsewhere), which can
   target both x64 and x86 from one install through -m64/-m32
3. MSVC, discovered through the vswhere locator utility
4. Clang-like compiler

Discovery is read-only: it inspects PATH and well-known install locations
and never spawns a compiler. Only vswhere.exe may be executed.
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..errors import ToolchainNotFound
from ..process_runner import ProcessRunner
from .platform_utils import Architecture, HostPlatform, PlatformDetector


class CompilerKind(str, Enum):
    """Family of a C++ compiler; selects flag syntax."""

    GCC = "gcc"
    MSVC = "msvc"
    CLANG = "clang"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ToolchainDescriptor:
    """A discovered toolchain.

    Attributes:
        kind: Compiler family
        compiler: Default compiler driver (used for compile and link)
        arch_compilers: Dedicated per-architecture drivers (e.g. a 32-bit-only
            MinGW install, an aarch64 cross compiler, MSVC per-arch cl.exe)
        supports_m32_m64: Default driver can switch width with -m32/-m64
        supports_lto: Whole-program link-time optimization is available
        install_root: Root of the toolchain install (parent of bin/)
        vcvarsall: MSVC environment script, if any
    """

    kind: CompilerKind
    compiler: Path
    arch_compilers: Mapping[Architecture, Path] = field(default_factory=dict)
    supports_m32_m64: bool = False
    supports_lto: bool = True
    install_root: Optional[Path] = None
    vcvarsall: Optional[Path] = None

    def compiler_for(self, arch: Architecture) -> Tuple[Path, bool]:
        """Select the compiler driver for an architecture.

        Returns:
            Tuple of (compiler path, needs_arch_flag). needs_arch_flag is False
            when a dedicated per-architecture binary is used.
        """
        dedicated = self.arch_compilers.get(arch)
        if dedicated is not None:
            return dedicated, False
        return self.compiler, True

    def describe(self) -> str:
        return f"{self.kind} ({self.compiler})"


def _exe(name: str, host: HostPlatform) -> str:
    return f"{name}.exe" if host is HostPlatform.WINDOWS else name


def infer_compiler_kind(compiler: Path) -> CompilerKind:
    """Guess the compiler family from the executable name."""
    name = compiler.name.lower()
    if name.endswith(".exe"):
        name = name[:-4]
    if "clang" in name:
        return CompilerKind.CLANG
    if name in ("cl", "clang-cl"):
        return CompilerKind.MSVC
    return CompilerKind.GCC


class ToolchainLocator:
    """Finds the preferred available C++ toolchain.

    Example usage:
        locator = ToolchainLocator()
        toolchain = locator.locate()
        print(toolchain.describe())
    """

    # MinGW-w64 installs searched when g++ is not on PATH (Windows only)
    MINGW_ROOTS = [
        Path(r"C:\msys64\mingw64"),
        Path(r"C:\msys64\ucrt64"),
        Path(r"C:\mingw64"),
        Path(r"C:\ProgramData\mingw64\mingw64"),
    ]

    # 32-bit-only MinGW installs, used directly for x86 with no -m32 flag
    MINGW32_ROOTS = [
        Path(r"C:\msys64\mingw32"),
        Path(r"C:\mingw32"),
    ]

    CROSS_PREFIXES = {
        HostPlatform.WINDOWS: {
            Architecture.X86: "i686-w64-mingw32",
            Architecture.ARM64: "aarch64-w64-mingw32",
        },
        HostPlatform.LINUX: {
            Architecture.X86: "i686-linux-gnu",
            Architecture.ARM64: "aarch64-linux-gnu",
        },
    }

    VSWHERE_RELATIVE = Path("Microsoft Visual Studio") / "Installer" / "vswhere.exe"
    MSVC_COMPONENT = "Microsoft.VisualStudio.Component.VC.Tools.x86.x64"

    def __init__(
        self,
        host: Optional[HostPlatform] = None,
        environ: Optional[Mapping[str, str]] = None,
        runner: Optional[ProcessRunner] = None,
    ):
        """Initialize toolchain locator.

        Args:
            host: Host platform (detected when omitted)
            environ: Environment to read overrides from (defaults to os.environ)
            runner: Process runner used to query vswhere
        """
        self.host = host or PlatformDetector.detect_platform()
        self.environ = environ if environ is not None else os.environ
        self.runner = runner or ProcessRunner(timeout=60)

    def strategies(self) -> List[Tuple[str, Callable[[], Optional[ToolchainDescriptor]]]]:
        """Ranked discovery strategies, most preferred first."""
        return [
            ("CXX override", self.find_from_env),
            ("GCC", self.find_gcc),
            ("MSVC", self.find_msvc),
            ("Clang", self.find_clang),
        ]

    def locate(self) -> ToolchainDescriptor:
        """Return the first toolchain that resolves.

        Raises:
            ToolchainNotFound: If no strategy finds a compiler
        """
        tried = []
        for name, strategy in self.strategies():
            descriptor = strategy()
            if descriptor is not None:
                logging.info(f"Toolchain found via {name}: {descriptor.describe()}")
                return descriptor
            tried.append(name)

        raise ToolchainNotFound(
            "No C++ compiler found (tried: " + ", ".join(tried) + "). "
            + self._install_hint()
        )

    def _install_hint(self) -> str:
        if self.host is HostPlatform.WINDOWS:
            return "Install MinGW-w64 (MSYS2), Visual Studio Build Tools, or LLVM."
        if self.host is HostPlatform.MACOS:
            return "Install the command line tools with: xcode-select --install"
        return "Install g++ or clang++ (e.g. sudo apt install build-essential)."

    def _which(self, name: str) -> Optional[Path]:
        found = shutil.which(name, path=self.environ.get("PATH"))
        return Path(found) if found else None

    def find_from_env(self) -> Optional[ToolchainDescriptor]:
        """Honor an explicit CXX compiler."""
        cxx = self.environ.get("CXX")
        if not cxx:
            return None

        compiler = Path(cxx)
        if not compiler.is_file():
            resolved = self._which(cxx)
            if resolved is None:
                logging.warning(f"CXX={cxx} does not resolve to an executable, ignoring")
                return None
            compiler = resolved

        kind = infer_compiler_kind(compiler)
        return ToolchainDescriptor(
            kind=kind,
            compiler=compiler,
            supports_m32_m64=kind is not CompilerKind.MSVC,
            install_root=compiler.parent.parent,
        )

    def find_gcc(self) -> Optional[ToolchainDescriptor]:
        """Find a GCC-like compiler able to target several architectures."""
        # Apple ships clang as g++; leave it to the Clang strategy.
        if self.host is HostPlatform.MACOS:
            return None

        compiler = self._which(_exe("g++", self.host))
        if compiler is None and self.host is HostPlatform.WINDOWS:
            compiler = self._first_existing(root / "bin" / "g++.exe" for root in self.MINGW_ROOTS)
        if compiler is None:
            return None

        return ToolchainDescriptor(
            kind=CompilerKind.GCC,
            compiler=compiler,
            arch_compilers=self._find_dedicated_gcc(),
            supports_m32_m64=True,
            install_root=compiler.parent.parent,
        )

    def _find_dedicated_gcc(self) -> Dict[Architecture, Path]:
        dedicated: Dict[Architecture, Path] = {}
        for arch, prefix in self.CROSS_PREFIXES.get(self.host, {}).items():
            cross = self._which(_exe(f"{prefix}-g++", self.host))
            if cross is not None:
                dedicated[arch] = cross

        if Architecture.X86 not in dedicated and self.host is HostPlatform.WINDOWS:
            mingw32 = self._first_existing(root / "bin" / "g++.exe" for root in self.MINGW32_ROOTS)
            if mingw32 is not None:
                dedicated[Architecture.X86] = mingw32
        return dedicated

    @staticmethod
    def _first_existing(paths) -> Optional[Path]:
        for path in paths:
            if path.is_file():
                return path
        return None

    def vswhere_path(self) -> Path:
        program_files = self.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")
        return Path(program_files) / self.VSWHERE_RELATIVE

    def find_msvc(self) -> Optional[ToolchainDescriptor]:
        """Find MSVC through vswhere."""
        if self.host is not HostPlatform.WINDOWS:
            return None

        vswhere = self.vswhere_path()
        if not vswhere.is_file():
            return None

        result = self.runner.run([
            vswhere,
            "-latest",
            "-products", "*",
            "-requires", self.MSVC_COMPONENT,
            "-property", "installationPath",
        ])
        install_path = result.stdout.strip().splitlines()[0].strip() if result.stdout.strip() else ""
        if not result.success or not install_path:
            logging.info("vswhere found no Visual Studio install with C++ tools")
            return None

        vs_root = Path(install_path)
        tools_root = self._latest_msvc_tools(vs_root / "VC" / "Tools" / "MSVC")
        if tools_root is None:
            return None

        arch_compilers: Dict[Architecture, Path] = {}
        for host_dir in ("Hostx64", "Hostx86"):
            for arch in Architecture:
                cl = tools_root / "bin" / host_dir / arch.value / "cl.exe"
                if arch not in arch_compilers and cl.is_file():
                    arch_compilers[arch] = cl
        if not arch_compilers:
            return None

        default = arch_compilers.get(Architecture.X64) or next(iter(arch_compilers.values()))
        vcvarsall = vs_root / "VC" / "Auxiliary" / "Build" / "vcvarsall.bat"
        return ToolchainDescriptor(
            kind=CompilerKind.MSVC,
            compiler=default,
            arch_compilers=arch_compilers,
            supports_m32_m64=False,
            install_root=tools_root,
            vcvarsall=vcvarsall if vcvarsall.is_file() else None,
        )

    @staticmethod
    def _latest_msvc_tools(msvc_dir: Path) -> Optional[Path]:
        if not msvc_dir.is_dir():
            return None

        def version_key(path: Path) -> Tuple[int, ...]:
            return tuple(int(part) for part in re.findall(r"\d+", path.name))

        versions = sorted((d for d in msvc_dir.iterdir() if d.is_dir()), key=version_key)
        return versions[-1] if versions else None

    def find_clang(self) -> Optional[ToolchainDescriptor]:
        """Find a Clang-like compiler on PATH."""
        compiler = self._which(_exe("clang++", self.host))
        if compiler is None:
            return None

        return ToolchainDescriptor(
            kind=CompilerKind.CLANG,
            compiler=compiler,
            supports_m32_m64=self.host is not HostPlatform.MACOS,
            install_root=compiler.parent.parent,
        )


# vcvarsall.bat argument per (host x64) target architecture
VCVARS_ARCH_ARGS = {
    Architecture.X64: "x64",
    Architecture.X86: "x64_x86",
    Architecture.ARM64: "x64_arm64",
}


def load_msvc_environment(
    toolchain: ToolchainDescriptor,
    arch: Architecture,
    runner: ProcessRunner,
) -> Optional[Dict[str, str]]:
    """Capture the environment vcvarsall.bat sets up for an architecture.

    Returns:
        Environment mapping, or None when the toolchain has no vcvarsall.bat
        (the current environment is then used unchanged)

    Raises:
        ToolchainNotFound: If vcvarsall.bat fails for the architecture
    """
    if toolchain.kind is not CompilerKind.MSVC or toolchain.vcvarsall is None:
        return None

    command = f'cmd /s /c ""{toolchain.vcvarsall}" {VCVARS_ARCH_ARGS[arch]} >nul && set"'
    result = runner.run(command)
    if not result.success:
        raise ToolchainNotFound(
            f"vcvarsall.bat failed for {arch}", output=result.output
        )

    env: Dict[str, str] = {}
    for line in result.stdout.splitlines():
        key, sep, value = line.partition("=")
        if sep and key:
            env[key] = value
    return env
