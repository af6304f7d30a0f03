"""Platform-specific spawning and termination of the engine process.

Termination always targets the pid this launcher spawned (and its children),
never every process sharing the executable name.
"""
import logging
import os
import signal
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

logger = logging.getLogger(__name__)

# Windows process creation flags
CREATE_NEW_CONSOLE = 0x00000010
CREATE_NEW_PROCESS_GROUP = 0x00000200


class ProcessLauncher(ABC):
    """Interface for starting and stopping the engine process."""

    @abstractmethod
    def launch(self, command: List[str], cwd: Optional[str] = None) -> subprocess.Popen:
        """Spawn ``command`` detached from the caller."""

    @abstractmethod
    def terminate(self, process: subprocess.Popen, grace_seconds: float = 10.0) -> None:
        """Stop ``process`` and every child it started."""

    def is_alive(self, process: subprocess.Popen) -> bool:
        return process.poll() is None


class PosixProcessLauncher(ProcessLauncher):
    """Runs the engine in its own session with output sent to a log file."""

    def __init__(self, log_file: Optional[str] = None):
        self.log_file = log_file

    def launch(self, command: List[str], cwd: Optional[str] = None) -> subprocess.Popen:
        output = open(self.log_file, "ab") if self.log_file else subprocess.DEVNULL
        try:
            process = subprocess.Popen(
                command,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        finally:
            # The child keeps its own descriptor
            if output is not subprocess.DEVNULL:
                output.close()

        if self.log_file:
            logger.info(f"Engine output is written to {self.log_file}")
        return process

    def terminate(self, process: subprocess.Popen, grace_seconds: float = 10.0) -> None:
        # start_new_session makes the child a group leader, so pgid == pid
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except ProcessLookupError:
            return

        try:
            process.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"Engine process group {process.pid} ignored SIGTERM, sending SIGKILL")
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                return
            process.wait(timeout=grace_seconds)


class WindowsProcessLauncher(ProcessLauncher):
    """Opens the engine in a new, visible console window."""

    def launch(self, command: List[str], cwd: Optional[str] = None) -> subprocess.Popen:
        process = subprocess.Popen(
            command,
            cwd=cwd,
            creationflags=CREATE_NEW_CONSOLE | CREATE_NEW_PROCESS_GROUP,
        )
        logger.info("Engine logs are visible in its console window")
        return process

    def terminate(self, process: subprocess.Popen, grace_seconds: float = 10.0) -> None:
        result = subprocess.run(
            ["taskkill", "/PID", str(process.pid), "/T", "/F"],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            logger.warning(f"taskkill for pid {process.pid} returned {result.returncode}: {result.stderr.strip()}")

        try:
            process.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            process.kill()


def default_launcher(log_file: Optional[str] = None) -> ProcessLauncher:
    """Launcher for the current platform."""
    if os.name == "nt":
        return WindowsProcessLauncher()
    return PosixProcessLauncher(log_file=log_file)
