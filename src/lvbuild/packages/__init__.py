"""Toolchain and third-party library discovery for lvbuild.

This package locates what a release build needs from the host: a C++
toolchain and the OpenSSL headers and binaries for each target architecture.
"""

from .library_resolver import LibraryLocation, LibraryResolver
from .platform_utils import (
    Architecture,
    HostPlatform,
    PlatformDetector,
    PlatformError,
    parse_architectures,
)
from .toolchain import (
    CompilerKind,
    ToolchainDescriptor,
    ToolchainLocator,
    load_msvc_environment,
)

__all__ = [
    "Architecture",
    "HostPlatform",
    "PlatformDetector",
    "PlatformError",
    "parse_architectures",
    "CompilerKind",
    "ToolchainDescriptor",
    "ToolchainLocator",
    "load_msvc_environment",
    "LibraryLocation",
    "LibraryResolver",
]
