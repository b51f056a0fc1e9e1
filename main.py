#!/usr/bin/env python3
"""Unified entry point for Family Connect.

This module starts the family API, the SMS relay and the reminder
dispatcher using subprocess.
"""

import subprocess
import signal
import sys
import time
import logging
import os
from typing import List

from config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICES = [
    ("family API", "api_server.py"),
    ("SMS relay", "relay_server.py"),
    ("reminder dispatcher", "background_worker.py"),
]

# Global list to track all running processes
processes: List[subprocess.Popen] = []
shutdown_requested = False


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global shutdown_requested
    if shutdown_requested:
        logger.warning("Force shutdown requested")
        sys.exit(1)

    shutdown_requested = True
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_services()


def shutdown_services():
    """Stop all running services."""
    logger.info("Stopping all services...")
    for process in processes:
        if process.poll() is None:
            logger.info(f"Terminating process (PID: {process.pid})")
            process.terminate()

    # Wait for graceful termination (max 5 seconds per process)
    for process in processes:
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning(f"Force killing process (PID: {process.pid})")
            process.kill()
            process.wait()

    logger.info("All services stopped")
    sys.exit(0)


def start_service(script: str, cwd: str) -> subprocess.Popen:
    """Start one service script with the current interpreter.

    Output goes straight to this process's console; services also keep
    their own rotating log files.
    """
    return subprocess.Popen([sys.executable, script], cwd=cwd)


def main():
    """Main entry point - start all services."""
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("=" * 60)
    logger.info("Family Connect - Unified Startup")
    logger.info("=" * 60)

    current_dir = os.path.dirname(os.path.abspath(__file__))

    try:
        for name, script in SERVICES:
            if script == "background_worker.py" and not settings.WORKER_ENABLED:
                logger.info(f"Skipping {name} (WORKER_ENABLED=false)")
                continue
            logger.info(f"Starting {name}...")
            processes.append(start_service(script, current_dir))
            time.sleep(2)

        logger.info("=" * 60)
        logger.info("All services started successfully!")
        logger.info(f"  - Family API: http://127.0.0.1:{settings.API_PORT}")
        logger.info(f"  - API Docs: http://127.0.0.1:{settings.API_PORT}/docs")
        logger.info(f"  - SMS Relay: http://127.0.0.1:{settings.RELAY_PORT}{settings.RELAY_PATH}")
        logger.info("=" * 60)

        # Stop everything if any service dies
        while not shutdown_requested:
            for i, process in enumerate(processes):
                if process.poll() is not None:
                    logger.error(f"Process {i+1} (PID: {process.pid}) has stopped unexpectedly!")
                    shutdown_services()
            time.sleep(5)

    except Exception as e:
        logger.error(f"Error starting services: {e}")
        shutdown_services()


if __name__ == "__main__":
    main()
