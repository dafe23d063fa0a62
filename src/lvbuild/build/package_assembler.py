"""Package Assembler.

This module stages a built executable and its companion files into a fresh
directory and compresses that directory into the release archive.

Design:
    - The staging directory is cleared and rebuilt for every architecture
    - Required inputs (executable, installer scripts) must exist; optional
      inputs (docs, examples, editor extension) are staged only if present
    - The archive is written only after staging completes, to a temporary
      name, after any existing archive at the destination has been removed
    - .zip (deflate level 9) on Windows, .tar.gz (level 9) elsewhere
"""

import logging
import os
import shutil
import tarfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from tqdm import tqdm

from ..config.release_config import ReleaseConfig
from ..errors import PackageFailed, PackageSourceMissing
from ..packages.platform_utils import Architecture, HostPlatform

EXTENSIONS_DIR = "extensions"


@dataclass
class PackageManifest:
    """Files staged into one package.

    Attributes:
        executable: Built executable (staged under its canonical name)
        executable_name: Canonical name inside the package
        installer_scripts: Installer re-launch scripts (required)
        docs: Documentation files that exist
        examples_dir: Examples directory, if present
        extension: Editor extension bundle, if present
    """

    executable: Path
    executable_name: str
    installer_scripts: List[Path] = field(default_factory=list)
    docs: List[Path] = field(default_factory=list)
    examples_dir: Optional[Path] = None
    extension: Optional[Path] = None

    def copy_plan(self) -> List[Tuple[Path, str]]:
        """(source, name relative to the staging root) for every entry."""
        plan: List[Tuple[Path, str]] = [(self.executable, self.executable_name)]
        plan.extend((script, script.name) for script in self.installer_scripts)
        plan.extend((doc, doc.name) for doc in self.docs)
        if self.examples_dir is not None:
            plan.append((self.examples_dir, self.examples_dir.name))
        if self.extension is not None:
            plan.append((self.extension, f"{EXTENSIONS_DIR}/{self.extension.name}"))
        return plan

    def entries(self) -> List[str]:
        """Top-level names the package will contain."""
        return sorted({name.split("/")[0] for _, name in self.copy_plan()})


@dataclass
class PackageResult:
    """Outputs of packaging one architecture."""

    archive_path: Path
    staging_dir: Path
    manifest: PackageManifest
    release_executable: Optional[Path] = None

    @property
    def archive_size(self) -> int:
        return self.archive_path.stat().st_size


class PackageAssembler:
    """Stages and archives the release package for one architecture.

    Example usage:
        assembler = PackageAssembler(config, HostPlatform.WINDOWS)
        result = assembler.assemble(Architecture.X64, built_exe)
        print(f"Archive: {result.archive_path}")
    """

    def __init__(self, config: ReleaseConfig, host: HostPlatform, show_progress: bool = True):
        """Initialize package assembler.

        Args:
            config: Release configuration (inputs and naming)
            host: Host platform; selects scripts, executable name and format
            show_progress: Show staging progress
        """
        self.config = config
        self.host = host
        self.show_progress = show_progress

    def build_manifest(self, executable: Path) -> PackageManifest:
        """Collect the files for a package.

        Raises:
            PackageSourceMissing: If the executable or an installer script is absent
        """
        if not executable.is_file():
            raise PackageSourceMissing(f"Built executable not found: {executable}")

        scripts = self.config.installer_script_paths(self.host)
        missing = [script for script in scripts if not script.is_file()]
        if missing:
            raise PackageSourceMissing(
                "Installer script(s) not found: " + ", ".join(str(path) for path in missing)
            )

        project = self.config.project_dir
        docs = [project / doc for doc in self.config.docs if (project / doc).is_file()]

        examples = project / self.config.examples_dir
        return PackageManifest(
            executable=executable,
            executable_name=self.config.executable_name(self.host),
            installer_scripts=scripts,
            docs=docs,
            examples_dir=examples if examples.is_dir() else None,
            extension=self.find_extension(),
        )

    def find_extension(self) -> Optional[Path]:
        """Newest packaged editor extension, if any."""
        ext_dir = self.config.project_dir / self.config.extension_dir
        if not ext_dir.is_dir():
            return None
        bundles = [path for path in ext_dir.glob(self.config.extension_glob) if path.is_file()]
        if not bundles:
            return None
        return max(bundles, key=lambda path: (path.stat().st_mtime, path.name))

    def stage(self, manifest: PackageManifest, staging_dir: Path) -> Path:
        """Recreate the staging directory and copy the manifest into it."""
        if staging_dir.exists():
            shutil.rmtree(staging_dir)
        staging_dir.mkdir(parents=True)

        plan = manifest.copy_plan()
        for source, name in tqdm(plan, desc="Staging", unit="file", disable=not self.show_progress):
            dest = staging_dir / name
            dest.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir():
                shutil.copytree(source, dest)
            else:
                shutil.copy2(source, dest)

        # Executables keep their mode bits inside tar archives.
        if self.host is not HostPlatform.WINDOWS:
            exe = staging_dir / manifest.executable_name
            exe.chmod(exe.stat().st_mode | 0o755)

        logging.info(f"Staged {len(plan)} entries into {staging_dir}")
        return staging_dir

    @staticmethod
    def _staged_files(staging_dir: Path) -> List[Path]:
        paths = []
        for root, dirs, files in os.walk(staging_dir):
            dirs.sort()
            root_path = Path(root)
            if root_path != staging_dir:
                paths.append(root_path)
            paths.extend(root_path / name for name in sorted(files))
        return paths

    def create_archive(self, staging_dir: Path, archive_path: Path) -> Path:
        """Compress the staging directory at maximum compression.

        Entries are stored relative to the staging root. Any existing archive
        at archive_path is removed before the new one is written.
        """
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        if archive_path.exists():
            archive_path.unlink()

        partial = archive_path.with_name(archive_path.name + ".partial")
        partial.unlink(missing_ok=True)
        paths = self._staged_files(staging_dir)

        try:
            if archive_path.name.endswith(".zip"):
                with zipfile.ZipFile(partial, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
                    for path in paths:
                        zf.write(path, path.relative_to(staging_dir).as_posix())
            else:
                with tarfile.open(partial, "w:gz", compresslevel=9) as tf:
                    for path in paths:
                        tf.add(path, arcname=path.relative_to(staging_dir).as_posix(), recursive=False)
            partial.replace(archive_path)
        except (tarfile.TarError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise PackageFailed(f"Could not write {archive_path.name}: {e}") from e
        finally:
            partial.unlink(missing_ok=True)

        logging.info(f"Wrote {archive_path} ({archive_path.stat().st_size} bytes, {len(paths)} entries)")
        return archive_path

    def publish_executable(self, executable: Path, arch: Architecture) -> Path:
        """Copy the bare executable to the release directory under its release name."""
        dest = self.config.release_executable(self.host, arch)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(executable, dest)
        return dest

    def assemble(self, arch: Architecture, executable: Path) -> PackageResult:
        """Stage and archive the package for one architecture.

        Args:
            arch: Target architecture (selects names and paths)
            executable: Built executable to package

        Returns:
            PackageResult with the archive and staging paths

        Raises:
            PackageSourceMissing: If a required input is absent
            PackageFailed: If the archive cannot be written
        """
        manifest = self.build_manifest(executable)
        staging_dir = self.stage(manifest, self.config.staging_dir(self.host, arch))
        archive = self.create_archive(staging_dir, self.config.archive_path(self.host, arch))
        release_exe = self.publish_executable(executable, arch)
        return PackageResult(
            archive_path=archive,
            staging_dir=staging_dir,
            manifest=manifest,
            release_executable=release_exe,
        )
