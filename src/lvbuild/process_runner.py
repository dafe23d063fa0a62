"""External process execution.

Every compiler, linker and archiver invocation goes through ProcessRunner so
that each one yields a ProcessResult with exit status, captured output and
elapsed time. A non-zero exit status is the only failure signal the pipeline
interprets; callers decide which error to raise.

Design:
    - Blocking child-process calls, one at a time
    - Output captured as text for verbatim diagnostics
    - On KeyboardInterrupt the whole child process tree is killed
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import psutil

CommandArg = Union[str, Path]


@dataclass(frozen=True)
class ProcessResult:
    """Result of one external tool invocation."""

    command: Union[str, List[str]]
    returncode: int
    stdout: str
    stderr: str
    elapsed: float

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stderr and stdout, stderr first."""
        parts = [part.rstrip() for part in (self.stderr, self.stdout) if part and part.strip()]
        return "\n".join(parts)


def kill_process_tree(pid: int) -> None:
    """Kill a process and all of its descendants."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    children = parent.children(recursive=True)
    for child in children:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    try:
        parent.kill()
    except psutil.NoSuchProcess:
        pass
    psutil.wait_procs(children + [parent], timeout=5)


class ProcessRunner:
    """Runs external tools and wraps their outcome in a ProcessResult."""

    def __init__(self, timeout: Optional[float] = None):
        """Initialize process runner.

        Args:
            timeout: Per-invocation timeout in seconds (None waits forever)
        """
        self.timeout = timeout

    def run(
        self,
        command: Union[str, Sequence[CommandArg]],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """Run a command to completion.

        Args:
            command: Executable followed by its arguments, or a single
                pre-quoted command line passed to the OS unchanged
            cwd: Working directory
            env: Full environment for the child (None inherits ours)
            timeout: Timeout for this invocation (default: the runner's)

        Returns:
            ProcessResult for the invocation. A missing executable is reported
            as exit status 127 rather than raised.
        """
        if isinstance(command, str):
            cmd: Union[str, List[str]] = command
            display = command
            tool = command.split()[0] if command.split() else command
        else:
            cmd = [str(arg) for arg in command]
            display = subprocess.list2cmdline(cmd)
            tool = cmd[0]
        logging.debug(f"Running: {display}")
        if timeout is None:
            timeout = self.timeout

        start = time.time()
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            elapsed = time.time() - start
            logging.error(f"Failed to start {tool}: {e}")
            return ProcessResult(cmd, 127, "", str(e), elapsed)

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            kill_process_tree(proc.pid)
            stdout, stderr = proc.communicate()
            elapsed = time.time() - start
            logging.error(f"Timed out after {elapsed:.1f}s: {tool}")
            message = f"{stderr or ''}\nTimed out after {timeout}s"
            return ProcessResult(cmd, -1, stdout or "", message.strip(), elapsed)
        except KeyboardInterrupt:
            kill_process_tree(proc.pid)
            raise

        elapsed = time.time() - start
        logging.info(f"{Path(tool).name} exited with {proc.returncode} in {elapsed:.2f}s")
        return ProcessResult(cmd, proc.returncode, stdout or "", stderr or "", elapsed)
