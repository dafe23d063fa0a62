"""
Build system components for lvbuild.

This module provides the release pipeline:
- Compile/link flag selection
- Per-architecture compile and link (BuildPlanner)
- Package staging and archiving (PackageAssembler)
- Self-extracting installer assembly (SelfExtractorAssembler)
- Release orchestration across architectures
"""

from .build_planner import BuildOutput, BuildPlanner, BuildTarget, ObjectArtifact
from .build_utils import ReleaseSummaryPrinter
from .flag_builder import FlagBuilder, FlagBuilderError
from .orchestrator import (
    ArchitectureResult,
    ReleaseOrchestrator,
    ReleaseResult,
    StageState,
)
from .package_assembler import PackageAssembler, PackageManifest, PackageResult
from .sfx_assembler import InstallerBlob, SelfExtractorAssembler, build_directive

__all__ = [
    "BuildOutput",
    "BuildPlanner",
    "BuildTarget",
    "ObjectArtifact",
    "FlagBuilder",
    "FlagBuilderError",
    "PackageAssembler",
    "PackageManifest",
    "PackageResult",
    "InstallerBlob",
    "SelfExtractorAssembler",
    "build_directive",
    "ArchitectureResult",
    "ReleaseOrchestrator",
    "ReleaseResult",
    "StageState",
    "ReleaseSummaryPrinter",
]
