"""Compile and link flag selection.

This module maps (compiler kind, host platform, target architecture) to the
command lines used by the build planner.

Design:
    - Compile flags are per-unit (-c) and carry LTO bytecode (-flto / /GL)
    - Link flags add architecture, static runtime and whole-program LTO
    - Dedicated per-architecture compilers get no width flag
    - A default GCC driver only targets the host CPU family
"""

from pathlib import Path
from typing import List, Optional, Sequence

from ..packages.library_resolver import LibraryLocation
from ..packages.platform_utils import Architecture, HostPlatform, PlatformDetector, PlatformError
from ..packages.toolchain import CompilerKind, ToolchainDescriptor

GNU_COMPILE_FLAGS = [
    "-std=c++17",
    "-O3",
    "-DNDEBUG",
    "-ffast-math",
    "-funroll-loops",
]

MSVC_COMPILE_FLAGS = [
    "/nologo",
    "/std:c++17",
    "/O2",
    "/EHsc",
    "/MT",
    "/DNDEBUG",
    "/DWIN32_LEAN_AND_MEAN",
]

WINDOWS_SYSTEM_LIBS = ["ws2_32", "crypt32", "user32", "advapi32"]
MACOS_FRAMEWORKS = ["Security", "CoreFoundation"]
OPENSSL_LIBS = ["ssl", "crypto"]

CLANG_TARGETS = {
    HostPlatform.WINDOWS: {
        Architecture.X64: "x86_64-w64-windows-gnu",
        Architecture.X86: "i686-w64-windows-gnu",
        Architecture.ARM64: "aarch64-w64-windows-gnu",
    },
    HostPlatform.LINUX: {
        Architecture.X64: "x86_64-linux-gnu",
        Architecture.X86: "i686-linux-gnu",
        Architecture.ARM64: "aarch64-linux-gnu",
    },
}

MACOS_ARCH_NAMES = {
    Architecture.X64: "x86_64",
    Architecture.ARM64: "arm64",
}


class FlagBuilderError(Exception):
    """Raised when no flag set exists for a toolchain/architecture pair."""

    pass


class FlagBuilder:
    """Builds compiler and linker command lines for one architecture."""

    def __init__(
        self,
        toolchain: ToolchainDescriptor,
        host: HostPlatform,
        arch: Architecture,
        library: Optional[LibraryLocation] = None,
        host_arch: Optional[Architecture] = None,
    ):
        """Initialize flag builder.

        Args:
            toolchain: Discovered toolchain
            host: Host platform (which is also the target OS)
            arch: Target architecture
            library: OpenSSL location (None links without explicit paths)
            host_arch: Host CPU architecture (detected when omitted)
        """
        self.toolchain = toolchain
        self.host = host
        self.arch = arch
        self.library = library
        self._host_arch = host_arch
        self.compiler, self.needs_arch_flag = toolchain.compiler_for(arch)

    @property
    def host_arch(self) -> Architecture:
        if self._host_arch is None:
            try:
                self._host_arch = PlatformDetector.detect_architecture()
            except PlatformError as e:
                raise FlagBuilderError(str(e)) from e
        return self._host_arch

    @property
    def is_msvc(self) -> bool:
        return self.toolchain.kind is CompilerKind.MSVC

    def arch_flags(self) -> List[str]:
        """Flags that select the target architecture on the default driver.

        Raises:
            FlagBuilderError: If the driver cannot target the architecture
        """
        if not self.needs_arch_flag or self.is_msvc:
            return []

        if self.host is HostPlatform.MACOS:
            if self.arch not in MACOS_ARCH_NAMES:
                raise FlagBuilderError(f"macOS builds do not support {self.arch}")
            return ["-arch", MACOS_ARCH_NAMES[self.arch]]

        if self.toolchain.kind is CompilerKind.CLANG and (
            self.arch is Architecture.ARM64 or self.host_arch is Architecture.ARM64
        ):
            return [f"--target={CLANG_TARGETS[self.host][self.arch]}"]

        # -m32/-m64 only switch width within the host CPU family.
        crosses_family = (self.arch is Architecture.ARM64) != (self.host_arch is Architecture.ARM64)
        if crosses_family:
            raise FlagBuilderError(
                f"{self.compiler.name} cannot build {self.arch} executables on a {self.host_arch} host; "
                + f"install a dedicated {self.arch} cross compiler"
            )
        if self.arch is Architecture.ARM64:
            return []

        if not self.toolchain.supports_m32_m64:
            if self.arch is self.host_arch:
                return []
            raise FlagBuilderError(f"{self.compiler.name} cannot switch to {self.arch} with -m32/-m64")
        return ["-m64"] if self.arch is Architecture.X64 else ["-m32"]

    def compile_command(self, source: Path, output: Path) -> List[str]:
        """Command line compiling one unit to an object file."""
        include_flags: List[str] = []
        if self.library is not None:
            include_flags.append(
                f"/I{self.library.include_dir}" if self.is_msvc else f"-I{self.library.include_dir}"
            )

        if self.is_msvc:
            flags = list(MSVC_COMPILE_FLAGS)
            if self.toolchain.supports_lto:
                flags.append("/GL")
            return [str(self.compiler), *flags, *include_flags, "/c", str(source), f"/Fo{output}"]

        flags = list(GNU_COMPILE_FLAGS)
        if self.toolchain.supports_lto:
            flags.append("-flto")
        if self.host is HostPlatform.LINUX:
            flags.append("-pthread")
        return [
            str(self.compiler),
            *self.arch_flags(),
            *flags,
            *include_flags,
            "-c", str(source),
            "-o", str(output),
        ]

    def link_command(self, objects: Sequence[Path], output: Path) -> List[str]:
        """Command line linking all objects into the executable."""
        if self.is_msvc:
            return self._msvc_link_command(objects, output)

        cmd = [str(self.compiler), *self.arch_flags(), "-O3"]
        if self.toolchain.supports_lto:
            cmd.append("-flto")
        cmd.extend(str(obj) for obj in objects)
        cmd.extend(["-o", str(output)])
        cmd.extend(self.static_flags())
        if self.library is not None:
            cmd.append(f"-L{self.library.lib_dir}")
        cmd.extend(f"-l{lib}" for lib in OPENSSL_LIBS)

        if self.host is HostPlatform.WINDOWS:
            cmd.extend(f"-l{lib}" for lib in WINDOWS_SYSTEM_LIBS)
        elif self.host is HostPlatform.MACOS:
            for framework in MACOS_FRAMEWORKS:
                cmd.extend(["-framework", framework])
        else:
            cmd.extend(["-pthread", "-s"])
        return cmd

    def static_flags(self) -> List[str]:
        """Flags avoiding a runtime dependency on the toolchain's shared libraries."""
        if self.host is HostPlatform.MACOS:
            return []
        if self.toolchain.kind is CompilerKind.CLANG and self.host is HostPlatform.LINUX:
            return ["-static-libstdc++"]
        flags = ["-static-libgcc", "-static-libstdc++"]
        if self.host is HostPlatform.WINDOWS:
            flags.append("-static")
        return flags

    def _msvc_link_command(self, objects: Sequence[Path], output: Path) -> List[str]:
        cmd = [str(self.compiler), "/nologo", *(str(obj) for obj in objects), f"/Fe{output}", "/link"]
        if self.toolchain.supports_lto:
            cmd.append("/LTCG")
        if self.library is not None:
            cmd.append(f"/LIBPATH:{self.library.lib_dir}")
        cmd.extend(self.msvc_library_names())
        cmd.extend(f"{lib}.lib" for lib in WINDOWS_SYSTEM_LIBS)
        return cmd

    def msvc_library_names(self) -> List[str]:
        """OpenSSL import library names present in the resolved lib dir."""
        if self.library is not None:
            bits = "32" if self.arch is Architecture.X86 else "64"
            for ssl, crypto in (
                ("libssl.lib", "libcrypto.lib"),
                ("libssl_static.lib", "libcrypto_static.lib"),
                (f"libssl{bits}MT.lib", f"libcrypto{bits}MT.lib"),
                (f"libssl{bits}MD.lib", f"libcrypto{bits}MD.lib"),
            ):
                if (self.library.lib_dir / ssl).is_file():
                    return [ssl, crypto]
        return ["libssl.lib", "libcrypto.lib"]
