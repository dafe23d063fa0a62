"""Third-party library discovery (OpenSSL).

The runtime links against OpenSSL. Its headers and architecture-matched
binaries are searched in an ordered list of candidate base directories:

1. Explicit override via OPENSSL_ROOT_DIR / OPENSSL_DIR
2. Package-manager user directories (vcpkg, scoop, MSYS2, Homebrew)
3. Well-known system install paths
4. The discovered toolchain's own install root

Each candidate must contain include/ and lib/. Within lib/, an
architecture-specific nested layout is checked before the flat layout:

    MSVC:      lib/VC/<arch>/MT, lib/VC/<arch>/MD, lib/VC/static
    GCC/Clang: lib/<multiarch-triplet>, lib64 or lib32
    Any:       lib/ containing a binary that matches the naming convention

The first fully satisfying candidate wins.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

from ..errors import DependencyNotFound
from .platform_utils import MULTIARCH_TRIPLETS, Architecture, HostPlatform
from .toolchain import CompilerKind, ToolchainDescriptor


@dataclass(frozen=True)
class LibraryLocation:
    """Where a library was found for one architecture."""

    include_dir: Path
    lib_dir: Path
    architecture: Architecture
    source: str = ""


# Library binary names per compiler family. {bits} is 32 or 64.
GNU_LIB_PATTERNS = ["libssl.a", "libssl.dll.a", "libssl.so", "libssl.so.*", "libssl.dylib", "libssl.*.dylib"]
MSVC_LIB_PATTERNS = ["libssl.lib", "libssl_static.lib", "libssl{bits}MT*.lib", "libssl{bits}MD*.lib"]

VCPKG_TRIPLETS = {
    HostPlatform.WINDOWS: {
        Architecture.X64: ["x64-windows-static", "x64-windows", "x64-mingw-static", "x64-mingw-dynamic"],
        Architecture.X86: ["x86-windows-static", "x86-windows", "x86-mingw-static", "x86-mingw-dynamic"],
        Architecture.ARM64: ["arm64-windows-static", "arm64-windows"],
    },
    HostPlatform.LINUX: {
        Architecture.X64: ["x64-linux"],
        Architecture.X86: ["x86-linux"],
        Architecture.ARM64: ["arm64-linux"],
    },
    HostPlatform.MACOS: {
        Architecture.X64: ["x64-osx"],
        Architecture.ARM64: ["arm64-osx"],
    },
}

MSYS2_PREFIXES = {
    Architecture.X64: [Path(r"C:\msys64\mingw64"), Path(r"C:\msys64\ucrt64"), Path(r"C:\msys64\clang64")],
    Architecture.X86: [Path(r"C:\msys64\mingw32"), Path(r"C:\msys64\clang32")],
    Architecture.ARM64: [Path(r"C:\msys64\clangarm64")],
}

WINDOWS_SYSTEM_DIRS = {
    Architecture.X64: [Path(r"C:\Program Files\OpenSSL-Win64"), Path(r"C:\OpenSSL-Win64"), Path(r"C:\Program Files\OpenSSL")],
    Architecture.X86: [Path(r"C:\Program Files (x86)\OpenSSL-Win32"), Path(r"C:\OpenSSL-Win32")],
    Architecture.ARM64: [Path(r"C:\Program Files\OpenSSL-Win64-ARM"), Path(r"C:\OpenSSL-Win64-ARM")],
}

POSIX_SYSTEM_DIRS = [Path("/usr/local"), Path("/usr")]

HOMEBREW_DIRS = {
    Architecture.ARM64: [Path("/opt/homebrew/opt/openssl@3"), Path("/opt/homebrew/opt/openssl")],
    Architecture.X64: [Path("/usr/local/opt/openssl@3"), Path("/usr/local/opt/openssl")],
}

CandidateStrategy = Callable[[Architecture], List[Path]]


class LibraryResolver:
    """Resolves OpenSSL include and library directories per architecture.

    The candidate list is an explicit ranked sequence of strategies; each
    strategy yields base directories which are validated in order.

    Example usage:
        resolver = LibraryResolver(toolchain, HostPlatform.WINDOWS)
        location = resolver.resolve(Architecture.X64)
        print(location.include_dir, location.lib_dir)
    """

    ENV_OVERRIDES = ("OPENSSL_ROOT_DIR", "OPENSSL_DIR")
    HEADER = Path("openssl") / "ssl.h"

    def __init__(
        self,
        toolchain: ToolchainDescriptor,
        host: HostPlatform,
        environ: Optional[Mapping[str, str]] = None,
        home: Optional[Path] = None,
    ):
        """Initialize library resolver.

        Args:
            toolchain: Toolchain the library must be linkable with
            host: Host platform
            environ: Environment for overrides (defaults to os.environ)
            home: User home directory (defaults to Path.home())
        """
        self.toolchain = toolchain
        self.host = host
        self.environ = environ if environ is not None else os.environ
        self.home = home or Path.home()

    def strategies(self) -> List[Tuple[str, CandidateStrategy]]:
        """Ranked candidate strategies, most preferred first."""
        return [
            ("environment override", self.env_candidates),
            ("package manager", self.package_manager_candidates),
            ("system install", self.system_candidates),
            ("toolchain root", self.toolchain_candidates),
        ]

    def resolve(self, arch: Architecture) -> LibraryLocation:
        """Find OpenSSL for an architecture.

        Args:
            arch: Target architecture

        Returns:
            First candidate satisfying the include/lib layout

        Raises:
            DependencyNotFound: If every candidate fails
        """
        tried: List[Path] = []
        for name, strategy in self.strategies():
            for base in strategy(arch):
                if base in tried:
                    continue
                tried.append(base)
                location = self.check_candidate(base, arch, source=name)
                if location is not None:
                    logging.info(f"OpenSSL for {arch} found via {name}: {location.lib_dir}")
                    return location
                logging.debug(f"OpenSSL candidate rejected for {arch}: {base}")

        searched = "\n".join(f"  - {path}" for path in tried) or "  (no candidates)"
        raise DependencyNotFound(
            f"OpenSSL not found for {arch}. Set {self.ENV_OVERRIDES[0]} to an "
            + "install containing include/ and lib/.",
            output=f"Searched:\n{searched}",
        )

    def env_candidates(self, arch: Architecture) -> List[Path]:
        return [Path(self.environ[var]) for var in self.ENV_OVERRIDES if self.environ.get(var)]

    def package_manager_candidates(self, arch: Architecture) -> List[Path]:
        candidates: List[Path] = []

        vcpkg_root = self.environ.get("VCPKG_ROOT")
        if vcpkg_root:
            for triplet in VCPKG_TRIPLETS.get(self.host, {}).get(arch, []):
                candidates.append(Path(vcpkg_root) / "installed" / triplet)

        if self.host is HostPlatform.WINDOWS:
            candidates.append(self.home / "scoop" / "apps" / "openssl" / "current")
            candidates.extend(MSYS2_PREFIXES.get(arch, []))
        elif self.host is HostPlatform.MACOS:
            candidates.extend(HOMEBREW_DIRS.get(arch, []))
        return candidates

    def system_candidates(self, arch: Architecture) -> List[Path]:
        if self.host is HostPlatform.WINDOWS:
            program_files = self.environ.get("ProgramFiles")
            dirs = list(WINDOWS_SYSTEM_DIRS.get(arch, []))
            if program_files and arch is not Architecture.X86:
                suffix = "OpenSSL-Win64-ARM" if arch is Architecture.ARM64 else "OpenSSL-Win64"
                dirs.insert(0, Path(program_files) / suffix)
            return dirs
        return list(POSIX_SYSTEM_DIRS)

    def toolchain_candidates(self, arch: Architecture) -> List[Path]:
        root = self.toolchain.install_root
        return [root] if root is not None else []

    def check_candidate(
        self, base: Path, arch: Architecture, source: str = ""
    ) -> Optional[LibraryLocation]:
        """Validate one base directory for an architecture.

        Returns:
            LibraryLocation when include/ exists and a lib directory with a
            matching binary is found, else None
        """
        include_dir = base / "include"
        lib_root = base / "lib"
        if not include_dir.is_dir() or not lib_root.is_dir():
            return None
        if not (include_dir / self.HEADER).is_file():
            logging.debug(f"{include_dir} has no {self.HEADER}")

        for lib_dir in self.lib_dir_candidates(base, arch):
            if lib_dir.is_dir() and self.has_matching_binary(lib_dir, arch):
                return LibraryLocation(
                    include_dir=include_dir,
                    lib_dir=lib_dir,
                    architecture=arch,
                    source=source,
                )
        return None

    def lib_dir_candidates(self, base: Path, arch: Architecture) -> List[Path]:
        """Library directories to try, nested layouts before the flat one."""
        lib_root = base / "lib"
        nested: List[Path] = []
        if self.toolchain.kind is CompilerKind.MSVC:
            nested.extend([
                lib_root / "VC" / arch.value / "MT",
                lib_root / "VC" / arch.value / "MD",
                lib_root / "VC" / "static",
            ])
        else:
            nested.append(lib_root / MULTIARCH_TRIPLETS[arch])
            if arch is Architecture.X86:
                nested.append(base / "lib32")
            else:
                nested.append(base / "lib64")
        return nested + [lib_root]

    def binary_patterns(self, arch: Architecture) -> List[str]:
        bits = "32" if arch is Architecture.X86 else "64"
        if self.toolchain.kind is CompilerKind.MSVC:
            return [pattern.format(bits=bits) for pattern in MSVC_LIB_PATTERNS]
        return list(GNU_LIB_PATTERNS)

    def has_matching_binary(self, lib_dir: Path, arch: Architecture) -> bool:
        return any(self._glob_files(lib_dir, self.binary_patterns(arch)))

    @staticmethod
    def _glob_files(directory: Path, patterns: Iterable[str]) -> Iterable[Path]:
        for pattern in patterns:
            for match in directory.glob(pattern):
                if match.is_file():
                    yield match
