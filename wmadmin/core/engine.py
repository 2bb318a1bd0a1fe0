"""
WMAdmin Engine Runner
=====================
Runs the WireMock standalone jar as a child process with the
``--key=value`` arguments built by the supervisor, and stops it when the
supervisor's cancellation event is set.
Cross-platform compatible (Linux, macOS, Windows).
"""

from __future__ import annotations

import logging
import os
import platform
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from wmadmin.core.errors import WorkerRuntimeError

logger = logging.getLogger(__name__)
engine_log = logging.getLogger("wmadmin.engine")


class WireMockRunner:
    """
    Entry point handed to ``EmbeddedEngineSupervisor``.

    Blocks for the lifetime of the engine process; returns when the process
    exits after a stop request and raises ``WorkerRuntimeError`` when it dies
    on its own.
    """

    POLL_INTERVAL = 0.2
    KILL_GRACE = 1.0

    def __init__(self, jar: str, java: str = "java", jvm_args: Sequence[str] = ()):
        self.jar = jar
        self.java = java
        self.jvm_args = list(jvm_args)
        self.process: Optional[subprocess.Popen] = None

    def build_command(self, args: List[str]) -> List[str]:
        return [self.java, *self.jvm_args, "-jar", self.jar, *args]

    def check(self) -> None:
        """Fail early when the jar is not configured or missing."""
        if not self.jar:
            raise WorkerRuntimeError(
                "wiremock.embedded.jar is not set (path to wiremock-standalone.jar)"
            )
        if not Path(self.jar).is_file():
            raise WorkerRuntimeError(f"WireMock jar not found: {self.jar}")

    def __call__(self, args: List[str], stop_event: threading.Event) -> None:
        self.check()
        command = self.build_command(args)
        logger.debug(f"Launching WireMock: {' '.join(command)}")

        try:
            proc = self._spawn(command)
        except OSError as e:
            raise WorkerRuntimeError(f"Cannot launch WireMock ({command[0]}): {e}") from e
        self.process = proc

        pump = threading.Thread(
            target=self._pump_output, args=(proc,), name="wiremock-output", daemon=True
        )
        pump.start()

        stopped = False
        while proc.poll() is None:
            if stop_event.wait(self.POLL_INTERVAL):
                stopped = True
                self._terminate(proc)
                break

        return_code = proc.wait()
        pump.join(self.KILL_GRACE)

        if not stopped and return_code != 0:
            raise WorkerRuntimeError(
                f"WireMock exited with code {return_code}", return_code=return_code
            )
        logger.debug(f"WireMock process ended (rc={return_code})")

    # ── Process helpers ──────────────────────────────────────────────────

    def _spawn(self, command: List[str]) -> subprocess.Popen:
        is_windows = platform.system() == "Windows"
        return subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
            start_new_session=not is_windows,
        )

    @staticmethod
    def _pump_output(proc: subprocess.Popen) -> None:
        """Forward engine stdout/stderr to the ``wmadmin.engine`` logger."""
        if proc.stdout is None:
            return
        for line in proc.stdout:
            line = line.rstrip()
            if line:
                engine_log.info(line)

    def _terminate(self, proc: subprocess.Popen) -> None:
        """Cross-platform process termination."""
        try:
            if platform.system() == "Windows":
                proc.kill()
            else:
                os.killpg(os.getpgid(proc.pid), signal.SIGTERM)
                deadline = time.time() + self.KILL_GRACE
                while proc.poll() is None and time.time() < deadline:
                    time.sleep(0.05)
                if proc.poll() is None:
                    os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
        except (ProcessLookupError, PermissionError, OSError):
            try:
                proc.kill()
            except OSError as e:
                logger.debug(f"WireMock process already gone: {e}")
