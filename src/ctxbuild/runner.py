"""External command execution.

This module wraps the external tools (csolution, cpackget, cbuildgen, cmake)
behind a small Runner interface so the orchestration logic can be tested by
substituting a fake runner, without spawning any process.

Design:
    - Runner.execute(program, quiet, *args) returns the combined output text
    - Output is decoded as UTF-8; undecodable bytes are replaced
    - Failures raise ToolInvocationError; a missing binary raises
      ToolNotFoundError before anything is spawned
    - There is no timeout unless one is configured; when it fires, or the
      user interrupts, the whole child process tree is killed
"""

import logging
import os
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Mapping, Optional

import psutil

from ctxbuild.exceptions import ToolInvocationError, ToolNotFoundError

logger = logging.getLogger(__name__)


class Runner(ABC):
    """Interface for running external programs."""

    @abstractmethod
    def execute(self, program: str, quiet: bool, *args: str) -> str:
        """Run a program and return its captured output.

        Args:
            program: Program path or name
            quiet: Capture output only, do not echo it
            *args: Program arguments

        Returns:
            Combined stdout/stderr text

        Raises:
            ToolInvocationError: If the program fails or cannot be run
        """
        pass


class CommandRunner(Runner):
    """Runs external programs through subprocess."""

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the runner.

        Args:
            env: Environment for child processes (default: inherit)
            timeout: Seconds before a program is killed (default: no timeout)
        """
        self.env = dict(env) if env is not None else None
        self.timeout = timeout

    def execute(self, program: str, quiet: bool, *args: str) -> str:
        executable = self._locate(program)
        cmd = [executable, *args]
        logger.debug("Running: %s", " ".join(cmd))

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                env=self.env,
            )
        except OSError as e:
            raise ToolInvocationError(
                f"Failed to start {program}: {e}", program=program
            ) from e

        timed_out = threading.Event()
        timer = None
        if self.timeout is not None:
            timer = threading.Timer(self.timeout, self._on_timeout, (proc, timed_out))
            timer.daemon = True
            timer.start()

        lines: List[str] = []
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                lines.append(line)
                if not quiet:
                    logger.info(line.rstrip("\r\n"))
            returncode = proc.wait()
        except KeyboardInterrupt:
            kill_process_tree(proc.pid)
            proc.wait()
            raise
        except Exception as e:
            kill_process_tree(proc.pid)
            proc.wait()
            raise ToolInvocationError(
                f"Failed to read output of {Path(program).name}: {e}",
                program=program,
                output="".join(lines),
            ) from e
        finally:
            if timer is not None:
                timer.cancel()
            if proc.stdout is not None:
                proc.stdout.close()

        output = "".join(lines)
        if timed_out.is_set():
            raise ToolInvocationError(
                f"{Path(program).name} timed out after {self.timeout}s",
                program=program,
                returncode=returncode,
                output=output,
            )
        if returncode != 0:
            message = f"{Path(program).name} exited with code {returncode}"
            if output.strip():
                message += f"\n{output.strip()}"
            raise ToolInvocationError(
                message, program=program, returncode=returncode, output=output
            )
        return output

    def _locate(self, program: str) -> str:
        """Resolve a program to an existing executable path."""
        if os.sep in program or (os.altsep and os.altsep in program):
            if not Path(program).is_file():
                raise ToolNotFoundError(f"Tool not found: {program}", program=program)
            return program

        search_path = self.env.get("PATH") if self.env is not None else None
        found = shutil.which(program, path=search_path)
        if found is None:
            raise ToolNotFoundError(f"Tool not found on PATH: {program}", program=program)
        return found

    @staticmethod
    def _on_timeout(proc: subprocess.Popen, timed_out: threading.Event) -> None:
        timed_out.set()
        logger.warning("Command timed out, killing process %d", proc.pid)
        kill_process_tree(proc.pid)


def kill_process_tree(pid: int, timeout: float = 3) -> int:
    """Terminate a process and all of its children.

    Children are terminated before their parents. Processes still alive after
    the grace period are force killed.

    Args:
        pid: Root process ID
        timeout: Seconds to wait for graceful termination

    Returns:
        Number of processes signalled
    """
    try:
        root = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return 0

    try:
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    processes = list(reversed(children)) + [root]
    signalled = []
    for proc in processes:
        try:
            proc.terminate()
            signalled.append(proc)
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning("Failed to terminate process %d: %s", proc.pid, e)

    _gone, alive = psutil.wait_procs(signalled, timeout=timeout)
    for proc in alive:
        try:
            proc.kill()
            logger.warning("Force killed stubborn process %d", proc.pid)
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning("Failed to force kill process %d: %s", proc.pid, e)

    return len(signalled)
