"""Error taxonomy for release builds.

Every stage of the release pipeline raises a subclass of ReleaseError so the
orchestrator can decide whether a failure is fatal to the whole run, fatal to
one architecture, or merely reported.
"""

from typing import Optional


class ReleaseError(Exception):
    """Base class for release pipeline failures.

    Attributes:
        stage: Pipeline stage that failed (e.g. "compile", "package")
        output: Verbatim output captured from the failing tool, if any
    """

    stage = "release"

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.output = output or ""

    def __str__(self) -> str:
        text = f"[{self.stage}] {self.message}"
        if self.output:
            text += f"\n{self.output.rstrip()}"
        return text


class ConfigError(ReleaseError):
    """Raised when the release configuration is invalid."""

    stage = "config"


class ToolchainNotFound(ReleaseError):
    """Raised when no usable C++ toolchain can be located."""

    stage = "toolchain"


class DependencyNotFound(ReleaseError):
    """Raised when a third-party library cannot be located for an architecture."""

    stage = "dependency"


class CompileFailed(ReleaseError):
    """Raised when a single source unit fails to compile."""

    stage = "compile"

    def __init__(self, unit, message: str, output: Optional[str] = None):
        super().__init__(message, output)
        self.unit = unit


class LinkFailed(ReleaseError):
    """Raised when the link step exits non-zero."""

    stage = "link"


class BuildIncomplete(ReleaseError):
    """Raised when a tool reports success but its output is missing or empty."""

    stage = "build"


class PackageSourceMissing(ReleaseError):
    """Raised when a required input of a package is absent."""

    stage = "package"


class PackageFailed(ReleaseError):
    """Raised when the archive library cannot write a package."""

    stage = "package"


class ArchiverUnavailable(ReleaseError):
    """Raised when the self-extractor archiving utility cannot be found."""

    stage = "sfx"


class SfxModuleMissing(ReleaseError):
    """Raised when the archiver ships no self-extractor stub module."""

    stage = "sfx"


# Failures that stop every remaining architecture.
BUILD_STAGE_ERRORS = (
    ToolchainNotFound,
    DependencyNotFound,
    CompileFailed,
    LinkFailed,
    BuildIncomplete,
)

# Failures reported without failing the architecture.
NON_FATAL_ERRORS = (ArchiverUnavailable, SfxModuleMissing)
