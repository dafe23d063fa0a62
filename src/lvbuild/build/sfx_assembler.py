"""Self-extracting installer assembly.

A self-extracting installer is three byte regions written back to back:

    +-----------------+------------------+------------------+
    | launcher stub   | directive block  | 7z archive       |
    +-----------------+------------------+------------------+

The stub is the extraction launcher shipped with 7-Zip (7zSD.sfx, 7zS.sfx or
7z.sfx). The directive block is a short UTF-8 text that tells the stub which
title and prompt to show and which script to run after extraction. There is
no framing or padding: region offsets follow from region lengths.

This stage is optional. A missing archiver or stub module is reported
through ArchiverUnavailable / SfxModuleMissing, which the orchestrator treats
as non-fatal.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from ..errors import ArchiverUnavailable, BuildIncomplete, SfxModuleMissing
from ..process_runner import ProcessRunner

ARCHIVER_NAMES = ["7z", "7za", "7zz"]
SFX_MODULES = ["7zSD.sfx", "7zS.sfx", "7z.sfx"]

DIRECTIVE_BEGIN = ";!@Install@!UTF-8!"
DIRECTIVE_END = ";!@InstallEnd@!"


@dataclass(frozen=True)
class InstallerBlob:
    """Layout of a written installer."""

    path: Path
    stub_size: int
    directive_size: int
    archive_size: int

    @property
    def total_size(self) -> int:
        return self.stub_size + self.directive_size + self.archive_size

    @property
    def directive_offset(self) -> int:
        return self.stub_size

    @property
    def archive_offset(self) -> int:
        return self.stub_size + self.directive_size


def build_directive(title: str, prompt: str, run_program: str) -> bytes:
    """Render the installer directive block (UTF-8, CRLF line endings)."""
    lines = [
        DIRECTIVE_BEGIN,
        f'Title="{title}"',
        f'BeginPrompt="{prompt}"',
        f'RunProgram="{run_program}"',
        DIRECTIVE_END,
    ]
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


def concatenate(stub: Path, directive: bytes, archive: Path, output: Path) -> InstallerBlob:
    """Write stub + directive + archive to output, byte for byte.

    Raises:
        BuildIncomplete: If the written size differs from the sum of the inputs
    """
    stub_bytes = stub.read_bytes()
    archive_bytes = archive.read_bytes()

    output.parent.mkdir(parents=True, exist_ok=True)
    if output.exists():
        output.unlink()
    with open(output, "wb") as f:
        f.write(stub_bytes)
        f.write(directive)
        f.write(archive_bytes)

    blob = InstallerBlob(
        path=output,
        stub_size=len(stub_bytes),
        directive_size=len(directive),
        archive_size=len(archive_bytes),
    )
    written = output.stat().st_size
    if written != blob.total_size:
        raise BuildIncomplete(
            f"Installer size mismatch: wrote {written} bytes, expected {blob.total_size}"
        )
    return blob


class SelfExtractorAssembler:
    """Builds a 7-Zip based self-extracting installer from a staging directory."""

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        archiver: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        show_progress: bool = True,
    ):
        """Initialize the assembler.

        Args:
            runner: Process runner for the archiver
            archiver: Explicit archiver path (skips discovery)
            environ: Environment used for PATH and Program Files lookup
            show_progress: Print progress
        """
        self.runner = runner or ProcessRunner()
        self.environ = environ if environ is not None else os.environ
        self._archiver = archiver
        self.show_progress = show_progress

    def archiver_candidates(self) -> List[Path]:
        candidates = []
        for var, default in (("ProgramFiles", r"C:\Program Files"), ("ProgramFiles(x86)", r"C:\Program Files (x86)")):
            candidates.append(Path(self.environ.get(var, default)) / "7-Zip" / "7z.exe")
        return candidates

    def find_archiver(self) -> Path:
        """Locate the 7-Zip executable.

        Raises:
            ArchiverUnavailable: If no 7-Zip executable is found
        """
        if self._archiver is not None:
            if self._archiver.is_file():
                return self._archiver
            raise ArchiverUnavailable(f"Archiver not found: {self._archiver}")

        path_var = self.environ.get("PATH")
        for name in ARCHIVER_NAMES:
            found = shutil.which(name, path=path_var)
            if found:
                return Path(found)
        for candidate in self.archiver_candidates():
            if candidate.is_file():
                return candidate
        raise ArchiverUnavailable("7-Zip not found; install it to build self-extracting installers")

    @staticmethod
    def find_sfx_module(archiver: Path) -> Path:
        """Locate the stub module shipped next to the archiver.

        Raises:
            SfxModuleMissing: If no stub module exists
        """
        # PATH entries are often symlinks into the real install.
        dirs = [archiver.parent, archiver.resolve().parent]
        for directory in dirs:
            for name in SFX_MODULES:
                module = directory / name
                if module.is_file():
                    return module
        raise SfxModuleMissing(
            f"No self-extractor module ({', '.join(SFX_MODULES)}) next to {archiver}"
        )

    def compress(self, archiver: Path, staging_dir: Path, archive_path: Path) -> Path:
        """Create a solid 7z archive of the staging directory at maximum ratio."""
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        archive_path.unlink(missing_ok=True)

        result = self.runner.run(
            [archiver, "a", "-t7z", "-mx=9", "-ms=on", "-y", archive_path, "*"],
            cwd=staging_dir,
        )
        if not result.success:
            raise BuildIncomplete(
                f"7-Zip failed to archive {staging_dir} (exit {result.returncode})",
                output=result.output,
            )
        if not archive_path.is_file() or archive_path.stat().st_size == 0:
            raise BuildIncomplete(f"7-Zip reported success but {archive_path} is missing or empty")
        return archive_path

    def assemble(
        self,
        staging_dir: Path,
        output: Path,
        title: str,
        prompt: str,
        run_program: str,
        work_dir: Optional[Path] = None,
    ) -> InstallerBlob:
        """Build the installer.

        Args:
            staging_dir: Directory to pack (the package contents)
            output: Installer path to write
            title: Installer window title
            prompt: Confirmation prompt shown before extraction
            run_program: Script (relative to the package root) run after extraction
            work_dir: Where the intermediate .7z is written (defaults to output's dir)

        Returns:
            InstallerBlob describing the written file

        Raises:
            ArchiverUnavailable: If 7-Zip cannot be found
            SfxModuleMissing: If 7-Zip has no stub module
            BuildIncomplete: If archiving or concatenation fails
        """
        archiver = self.find_archiver()
        work_dir = work_dir or output.parent
        archive_path = work_dir / f"{output.stem}.7z"

        if self.show_progress:
            print(f"      Compressing {staging_dir.name} with {archiver.name}...")
        self.compress(archiver, staging_dir, archive_path)

        stub = self.find_sfx_module(archiver)
        directive = build_directive(title, prompt, run_program)

        blob = concatenate(stub, directive, archive_path, output)
        logging.info(
            f"Installer {output}: stub={blob.stub_size} directive={blob.directive_size} "
            + f"archive={blob.archive_size} total={blob.total_size}"
        )
        archive_path.unlink(missing_ok=True)
        return blob
