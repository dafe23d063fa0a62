"""Platform Detection Utilities.

This module provides utilities for detecting the host platform and CPU
architecture, and for resolving the architecture selector given on the
command line into an ordered list of target architectures.

Supported Architectures:
    - x86: 32-bit Intel/AMD
    - x64: 64-bit Intel/AMD
    - arm64: 64-bit ARM (AArch64)

Supported Platforms:
    - windows, linux, macos
"""

import os
import platform
from enum import Enum
from typing import Iterable, List


class PlatformError(Exception):
    """Raised when platform detection fails or platform is unsupported."""

    pass


class Architecture(str, Enum):
    """Target CPU architecture of a produced executable."""

    X86 = "x86"
    X64 = "x64"
    ARM64 = "arm64"

    def __str__(self) -> str:
        return self.value

    @property
    def is_64bit(self) -> bool:
        return self is not Architecture.X86


class HostPlatform(str, Enum):
    """Operating system the release is built on (and for)."""

    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"

    def __str__(self) -> str:
        return self.value


# Architecture selectors accepted in addition to concrete architectures
ARCH_AUTO = "auto"
ARCH_ALL = "all"

SUPPORTED_ARCHITECTURES = (Architecture.X64, Architecture.X86, Architecture.ARM64)

# Debian-style multiarch triplets (lib/<triplet>)
MULTIARCH_TRIPLETS = {
    Architecture.X86: "i386-linux-gnu",
    Architecture.X64: "x86_64-linux-gnu",
    Architecture.ARM64: "aarch64-linux-gnu",
}

_MACHINE_ALIASES = {
    "x86_64": Architecture.X64,
    "amd64": Architecture.X64,
    "x64": Architecture.X64,
    "em64t": Architecture.X64,
    "i386": Architecture.X86,
    "i486": Architecture.X86,
    "i586": Architecture.X86,
    "i686": Architecture.X86,
    "x86": Architecture.X86,
    "aarch64": Architecture.ARM64,
    "arm64": Architecture.ARM64,
}


class PlatformDetector:
    """Detects the host platform and architecture."""

    @staticmethod
    def detect_platform() -> HostPlatform:
        """Detect the host operating system.

        Raises:
            PlatformError: If the operating system is unsupported
        """
        system = platform.system().lower()
        if system == "windows":
            return HostPlatform.WINDOWS
        if system == "linux":
            return HostPlatform.LINUX
        if system == "darwin":
            return HostPlatform.MACOS
        raise PlatformError(f"Unsupported platform: {system}")

    @staticmethod
    def normalize_machine(machine: str) -> Architecture:
        """Map a machine string (uname -m, PROCESSOR_ARCHITECTURE) to an Architecture.

        Raises:
            PlatformError: If the machine string is unknown
        """
        arch = _MACHINE_ALIASES.get(machine.strip().lower())
        if arch is None:
            raise PlatformError(f"Unsupported architecture: {machine}")
        return arch

    @staticmethod
    def detect_architecture() -> Architecture:
        """Detect the native architecture of the host.

        On Windows the PROCESSOR_ARCHITEW6432 variable is checked first so a
        32-bit Python running under WOW64 still reports the native machine.

        Returns:
            Host architecture

        Raises:
            PlatformError: If the architecture is unsupported
        """
        for var in ("PROCESSOR_ARCHITEW6432", "PROCESSOR_ARCHITECTURE"):
            value = os.environ.get(var)
            if value:
                return PlatformDetector.normalize_machine(value)
        return PlatformDetector.normalize_machine(platform.machine())


def parse_architectures(selectors: Iterable[str]) -> List[Architecture]:
    """Resolve architecture selectors into an ordered, de-duplicated list.

    Args:
        selectors: Values like "x64", "x86", "arm64", "auto" or "all"

    Returns:
        Architectures in the order requested

    Raises:
        PlatformError: If a selector is not recognized

    Example:
        >>> parse_architectures(["x64", "x86"])
        [<Architecture.X64: 'x64'>, <Architecture.X86: 'x86'>]
    """
    result: List[Architecture] = []
    for selector in selectors:
        value = selector.strip().lower()
        if value == ARCH_ALL:
            candidates = list(SUPPORTED_ARCHITECTURES)
        elif value == ARCH_AUTO:
            candidates = [PlatformDetector.detect_architecture()]
        else:
            try:
                candidates = [Architecture(value)]
            except ValueError:
                raise PlatformError(
                    f"Unknown architecture '{selector}'. "
                    + f"Expected one of: x86, x64, arm64, {ARCH_AUTO}, {ARCH_ALL}"
                )
        for arch in candidates:
            if arch not in result:
                result.append(arch)
    return result
