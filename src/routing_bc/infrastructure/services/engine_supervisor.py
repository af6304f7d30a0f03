"""Lifecycle of the external GraphHopper process.

One supervisor owns at most one engine process. ``start`` is serialized so
concurrent callers spawn a single process; state reads use a separate,
short-lived lock so they never wait on a health poll in progress.
"""
import logging
import os
import shlex
import subprocess
import threading
import warnings
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from core.config import settings
from src.routing_bc.domain.exceptions import (
    EngineNotFoundError,
    EngineStartError,
    EngineUnhealthyWarning,
)
from src.routing_bc.infrastructure.services.graphhopper_client import GraphHopperClient
from src.routing_bc.infrastructure.services.process_launcher import ProcessLauncher, default_launcher

logger = logging.getLogger(__name__)

STOP_GRACE_SECONDS = 15.0


class EngineState(str, Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    HEALTHY = "healthy"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class EngineHandle:
    """The process spawned by this supervisor."""
    process: subprocess.Popen
    jar_path: str
    command: List[str]
    started_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def pid(self) -> int:
        return self.process.pid


class EngineSupervisor:
    """Locates, launches, health-checks and stops the routing engine."""

    def __init__(
        self,
        client: Optional[GraphHopperClient] = None,
        launcher: Optional[ProcessLauncher] = None,
        jar_paths: Optional[List[str]] = None,
        config_path: Optional[str] = None,
        graph_cache: Optional[str] = None,
        java_bin: Optional[str] = None,
        java_opts: Optional[str] = None,
        health_attempts: Optional[int] = None,
        health_interval: Optional[float] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        gh = settings.graphhopper
        self.client = client or GraphHopperClient()
        self.launcher = launcher or default_launcher(log_file=gh.GRAPHHOPPER_LOG_FILE)
        self.jar_paths = jar_paths if jar_paths is not None else gh.jar_paths
        self.config_path = config_path or gh.GRAPHHOPPER_CONFIG_PATH
        self.graph_cache = graph_cache or gh.GRAPHHOPPER_GRAPH_CACHE
        self.java_bin = java_bin or gh.GRAPHHOPPER_JAVA_BIN
        self.java_opts = java_opts if java_opts is not None else gh.GRAPHHOPPER_JAVA_OPTS
        self.health_attempts = health_attempts or gh.GRAPHHOPPER_HEALTH_ATTEMPTS
        self.health_interval = health_interval if health_interval is not None else gh.GRAPHHOPPER_HEALTH_INTERVAL

        self._start_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait

        self._state = EngineState.NOT_STARTED
        self._handle: Optional[EngineHandle] = None
        self._background_start: Optional[threading.Thread] = None

    @property
    def state(self) -> EngineState:
        with self._state_lock:
            return self._state

    @property
    def handle(self) -> Optional[EngineHandle]:
        with self._state_lock:
            return self._handle

    @property
    def is_healthy(self) -> bool:
        return self.state == EngineState.HEALTHY

    @property
    def status(self) -> dict:
        """Snapshot for the health endpoint."""
        with self._state_lock:
            state, handle = self._state, self._handle
        return {
            "state": state.value,
            "pid": handle.pid if handle else None,
            "jar_path": handle.jar_path if handle else None,
            "started_at": handle.started_at.isoformat() if handle else None,
            "base_url": self.client.base_url,
        }

    def _set_state(self, state: EngineState, handle: Optional[EngineHandle] = None, clear_handle: bool = False):
        with self._state_lock:
            self._state = state
            if handle is not None:
                self._handle = handle
            elif clear_handle:
                self._handle = None

    def locate_jar(self) -> str:
        """First existing path among the configured candidates."""
        for path in self.jar_paths:
            if os.path.isfile(path):
                return path
        raise EngineNotFoundError("GraphHopper JAR not found", searched_paths=list(self.jar_paths))

    def check_setup(self) -> None:
        if not os.path.isfile(self.config_path):
            raise EngineNotFoundError(f"GraphHopper configuration not found: {self.config_path}")
        if not os.path.isdir(self.graph_cache):
            raise EngineNotFoundError(
                f"Graph cache not found at {self.graph_cache}, run setup first"
            )

    def build_command(self, jar_path: str) -> List[str]:
        return [
            self.java_bin,
            *shlex.split(self.java_opts),
            "-jar",
            jar_path,
            "server",
            self.config_path,
        ]

    def _has_live_process(self) -> bool:
        handle = self.handle
        return handle is not None and self.launcher.is_alive(handle.process)

    def start(self) -> EngineState:
        """Start the engine unless this supervisor already runs one.

        Blocks until the engine is healthy or the health-poll budget is spent;
        an exhausted budget only warns. Raises EngineNotFoundError when the
        JAR, config or graph cache is missing and EngineStartError when the
        process cannot be spawned.
        """
        with self._start_lock:
            if self._has_live_process():
                logger.info(f"GraphHopper already running (pid {self.handle.pid})")
                return self.state

            self._stop_event.clear()

            if self.client.health():
                logger.info(f"GraphHopper already reachable at {self.client.base_url}, not spawning")
                self._set_state(EngineState.HEALTHY)
                return EngineState.HEALTHY

            jar_path = self.locate_jar()
            self.check_setup()
            command = self.build_command(jar_path)

            logger.info(f"Starting GraphHopper: {' '.join(command)}")
            try:
                process = self.launcher.launch(command)
            except OSError as e:
                self._set_state(EngineState.FAILED)
                raise EngineStartError(f"Could not start GraphHopper: {e}") from e

            handle = EngineHandle(process=process, jar_path=jar_path, command=command)
            self._set_state(EngineState.STARTING, handle=handle)
            logger.info(f"GraphHopper started (pid {handle.pid}), waiting for it to become healthy")

            self._wait_until_healthy(handle)
            return self.state

    def _wait_until_healthy(self, handle: EngineHandle) -> bool:
        for attempt in range(1, self.health_attempts + 1):
            if self._stop_event.is_set():
                return False

            if self.client.health():
                self._set_state(EngineState.HEALTHY)
                logger.info(f"GraphHopper healthy at {self.client.base_url} after {attempt} check(s)")
                return True

            if not self.launcher.is_alive(handle.process):
                self._set_state(EngineState.FAILED)
                logger.error(
                    f"GraphHopper exited during startup with code {handle.process.returncode}"
                )
                return False

            if attempt % 30 == 0:
                logger.info(f"Still waiting for GraphHopper ({attempt}/{self.health_attempts})")
            if attempt < self.health_attempts:
                self._sleep(self.health_interval)

        message = (
            f"GraphHopper not healthy after {self.health_attempts} checks; "
            f"it may still be loading (pid {handle.pid})"
        )
        logger.warning(message)
        warnings.warn(message, EngineUnhealthyWarning)
        return False

    def stop(self) -> None:
        """Terminate the spawned process and its children, and nothing else."""
        # Interrupt a health poll in progress
        self._stop_event.set()
        with self._start_lock:
            handle = self.handle
            if handle is None:
                if self.state != EngineState.NOT_STARTED:
                    self._set_state(EngineState.STOPPED)
                return

            if self.launcher.is_alive(handle.process):
                logger.info(f"Stopping GraphHopper (pid {handle.pid})...")
                self.launcher.terminate(handle.process, grace_seconds=STOP_GRACE_SECONDS)
            self._set_state(EngineState.STOPPED, clear_handle=True)
            logger.info("GraphHopper stopped")

    def health_check(self) -> bool:
        """Check the engine and update the recorded state."""
        healthy = self.client.health()
        with self._state_lock:
            if healthy:
                if self._state != EngineState.STOPPED or self._handle is not None:
                    self._state = EngineState.HEALTHY
            elif self._state == EngineState.HEALTHY:
                self._state = EngineState.FAILED
        return healthy

    def ensure_running(self) -> bool:
        """Healthy now? If not and nothing is starting, start in the background."""
        if self.health_check():
            return True

        if self._start_lock.locked():
            return False

        if settings.graphhopper.GRAPHHOPPER_AUTOSTART:
            thread = self._background_start
            if thread is None or not thread.is_alive():
                self._background_start = threading.Thread(
                    target=self._start_quietly, name="graphhopper-start", daemon=True
                )
                self._background_start.start()
        return False

    def _start_quietly(self) -> None:
        try:
            self.start()
        except (EngineNotFoundError, EngineStartError) as e:
            logger.error(f"GraphHopper could not be started: {e}")
