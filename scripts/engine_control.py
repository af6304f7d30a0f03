#!/usr/bin/env python3
"""Control the local GraphHopper engine.

Usage:
    # Start GraphHopper and wait until it is healthy (Ctrl+C stops it)
    python scripts/engine_control.py start

    # Check whether the engine answers /health
    python scripts/engine_control.py health

    # Print the command that would be run, without starting anything
    python scripts/engine_control.py command

The engine is started as a child of this script; stopping it only ever
terminates that process and its children.
"""

import sys
import argparse
import logging
import signal
import threading
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv()

from core.logging_config import setup_logging
from src.routing_bc.domain.exceptions import EngineNotFoundError, EngineStartError
from src.routing_bc.infrastructure.services.engine_supervisor import EngineState, EngineSupervisor

logger = logging.getLogger(__name__)


def cmd_start(supervisor: EngineSupervisor) -> int:
    try:
        state = supervisor.start()
    except (EngineNotFoundError, EngineStartError) as e:
        logger.error(str(e))
        return 1

    if state == EngineState.FAILED:
        return 1
    if supervisor.handle is None:
        # Adopted an engine that was already running
        return 0

    done = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())
    signal.signal(signal.SIGTERM, lambda *_: done.set())
    logger.info("GraphHopper running, press Ctrl+C to stop")
    while not done.wait(5):
        if not supervisor.launcher.is_alive(supervisor.handle.process):
            logger.error("GraphHopper exited")
            return 1
    supervisor.stop()
    return 0


def cmd_health(supervisor: EngineSupervisor) -> int:
    healthy = supervisor.client.health()
    print(f"GraphHopper at {supervisor.client.base_url}: {'healthy' if healthy else 'not reachable'}")
    return 0 if healthy else 1


def cmd_command(supervisor: EngineSupervisor) -> int:
    try:
        jar_path = supervisor.locate_jar()
        supervisor.check_setup()
    except EngineNotFoundError as e:
        logger.error(str(e))
        return 1
    print(" ".join(supervisor.build_command(jar_path)))
    return 0


COMMANDS = {
    "start": cmd_start,
    "health": cmd_health,
    "command": cmd_command,
}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Control the GraphHopper routing engine")
    parser.add_argument("command", choices=sorted(COMMANDS))
    args = parser.parse_args(argv)

    setup_logging()
    return COMMANDS[args.command](EngineSupervisor())


if __name__ == "__main__":
    sys.exit(main())
